"""Shared test doubles and async helpers."""

import asyncio
from typing import Callable, Dict

from sqlalchemy import event


class FakeCurrencyService:
    """In-memory stand-in for the external currency-transfer service."""

    def __init__(self):
        self.balances: Dict[str, float] = {}

    def has(self, actor_uuid: str, amount: float) -> bool:
        return self.balances.get(actor_uuid, 0.0) >= amount

    def withdraw(self, actor_uuid: str, amount: float) -> bool:
        if not self.has(actor_uuid, amount):
            return False
        self.balances[actor_uuid] -= amount
        return True

    def deposit(self, actor_uuid: str, amount: float) -> bool:
        self.balances[actor_uuid] = self.balances.get(actor_uuid, 0.0) + amount
        return True

    def balance(self, actor_uuid: str) -> float:
        return self.balances.get(actor_uuid, 0.0)


class PoolCounter:
    """Counts connection checkouts/checkins on an engine's pool."""

    def __init__(self, engine):
        self.checked_out = 0
        self.checked_in = 0
        event.listen(engine, "checkout", self._on_checkout)
        event.listen(engine, "checkin", self._on_checkin)

    def _on_checkout(self, dbapi_conn, record, proxy):
        self.checked_out += 1

    def _on_checkin(self, dbapi_conn, record):
        self.checked_in += 1

    @property
    def outstanding(self) -> int:
        return self.checked_out - self.checked_in


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll predicate on the event loop until it holds or timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()
