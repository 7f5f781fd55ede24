import logging

import pytest

from market_core.config import Settings, get_settings
from market_core.db.engine import create_market_engine
from market_core.services.persistence import PersistenceGateway
from market_core.services.registry import ProductRegistry
from tests.helpers import FakeCurrencyService, PoolCounter


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'market.db'}"


@pytest.fixture
def engine(db_url):
    eng = create_market_engine(db_url)
    yield eng
    eng.dispose()


@pytest.fixture
def gateway(engine) -> PersistenceGateway:
    gw = PersistenceGateway(engine)
    gw.setup()
    return gw


@pytest.fixture
def registry() -> ProductRegistry:
    return ProductRegistry()


@pytest.fixture
def settings(db_url) -> Settings:
    # Long intervals: tests drive job bodies directly unless they opt in
    return Settings(
        database_url=db_url,
        save_interval=3600,
        decay_interval=3600,
        decay_amount=2,
    )


@pytest.fixture
def currency() -> FakeCurrencyService:
    return FakeCurrencyService()


@pytest.fixture
def pool_counter(engine) -> PoolCounter:
    return PoolCounter(engine)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def restore_root_logging():
    """Undo configure_logging() side effects on the root logger."""
    import market_core.logging as market_logging

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            h.close()
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    market_logging._configured = False
