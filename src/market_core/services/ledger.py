"""
Ledger writer: batched, transactional appends to the transaction table.

A batch is all-or-nothing. The connection is scoped with context managers so
that rollback and release happen on every exit path, including faults raised
halfway through the batch.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..db.tables import ActorIdentityORM, TransactionORM
from ..errors import LedgerWriteError, StorageError
from ..models import LedgerEvent, LedgerRow, TransactionAction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerWriteResult:
    """Outcome of one append_batch call."""

    success: bool
    rows: int = 0
    error: Optional[LedgerWriteError] = None

    def __bool__(self) -> bool:
        return self.success


def _event_row(event: LedgerEvent) -> Dict[str, Any]:
    return {
        "actor_uuid": event.actor_uuid,
        "action": int(event.action),
        "item_alias": event.item_alias,
        "amount": event.amount,
        "price": event.price,
    }


class LedgerWriter:
    """Appends economic events to the append-only ledger."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def append_batch(self, events: Iterable[LedgerEvent]) -> LedgerWriteResult:
        """
        Insert all events in a single transaction with a single commit.

        On a storage error the transaction is rolled back, the connection is
        returned to the pool and a failed result carrying the error is
        returned. An empty batch succeeds without opening a connection.
        """
        rows: List[Dict[str, Any]] = [_event_row(e) for e in events]
        if not rows:
            return LedgerWriteResult(success=True, rows=0)

        try:
            with self.engine.connect() as conn:
                # Commits on normal exit, rolls back if anything inside raises
                with conn.begin():
                    conn.execute(insert(TransactionORM.__table__), rows)
        except SQLAlchemyError as e:
            error = LedgerWriteError(len(rows))
            error.__cause__ = e
            logger.error(f"Ledger batch of {len(rows)} row(s) rolled back: {e}")
            return LedgerWriteResult(success=False, rows=0, error=error)

        logger.debug(f"Appended {len(rows)} ledger row(s)")
        return LedgerWriteResult(success=True, rows=len(rows))

    def recent(self, actor_uuid: Optional[str] = None, limit: int = 10) -> List[LedgerRow]:
        """Return up to limit ledger rows, newest first, optionally for one actor."""
        tx = TransactionORM.__table__
        actors = ActorIdentityORM.__table__
        stmt = (
            select(tx, actors.c.name)
            .select_from(tx.outerjoin(actors, actors.c.uuid == tx.c.actor_uuid))
            .order_by(tx.c.id.desc())
            .limit(limit)
        )
        if actor_uuid is not None:
            stmt = stmt.where(tx.c.actor_uuid == actor_uuid)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            raise StorageError("recent_transactions") from e

        return [
            LedgerRow(
                id=row["id"],
                actor_uuid=row["actor_uuid"],
                action=TransactionAction(row["action"]),
                item_alias=row["item_alias"],
                amount=row["amount"],
                price=row["price"],
                actor_name=row["name"],
            )
            for row in result
        ]
