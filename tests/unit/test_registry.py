import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from market_core.models import Product
from market_core.services.registry import ProductRegistry


def test_get_or_create_concurrent_callers_share_one_instance(registry):
    callers = 16
    barrier = threading.Barrier(callers)
    created = []
    lock = threading.Lock()

    def factory():
        with lock:
            created.append(1)
        return Product(alias="diamond", type="DIAMOND")

    def call():
        barrier.wait()
        return registry.get_or_create("Diamond", factory)

    with ThreadPoolExecutor(max_workers=callers) as pool:
        results = list(pool.map(lambda _: call(), range(callers)))

    assert len(created) == 1
    assert len(registry) == 1
    assert all(r is results[0] for r in results)


def test_get_or_create_returns_existing_without_calling_factory(registry):
    original = registry.get_or_create("stone", lambda: Product(alias="stone", type="STONE"))

    def boom():
        raise AssertionError("factory must not run")

    assert registry.get_or_create("STONE", boom) is original


def test_factory_alias_mismatch_is_rejected(registry):
    with pytest.raises(ValueError):
        registry.get_or_create("stone", lambda: Product(alias="dirt", type="DIRT"))
    assert "stone" not in registry


def test_update_is_atomic_per_entry(registry):
    registry.put(Product(alias="stone", type="STONE"))

    def bump(product):
        current = product.demand
        product.demand = current + 1

    with ThreadPoolExecutor(max_workers=8) as pool:
        for _ in range(2000):
            pool.submit(registry.update, "stone", bump)

    assert registry.get("stone").demand == 2000


def test_update_unknown_alias_returns_none(registry):
    assert registry.update("missing", lambda p: None) is None


def test_snapshot_returns_independent_copies(registry):
    registry.put(Product(alias="stone", type="STONE", demand=3, price=1.5))
    snap = registry.snapshot()
    snap[0].demand = 99
    assert registry.get("stone").demand == 3


def test_snapshot_tolerates_concurrent_inserts_and_removals(registry):
    inserts = 20_000
    done = threading.Event()
    errors = []

    def writer():
        try:
            for i in range(inserts):
                registry.get_or_create(f"item{i}", lambda i=i: Product(alias=f"item{i}", type="ITEM"))
                if i % 3 == 0:
                    registry.remove(f"item{i}")
        except Exception as e:
            errors.append(e)
        finally:
            done.set()

    t = threading.Thread(target=writer)
    t.start()
    try:
        while True:
            try:
                snap = registry.snapshot()
                registry.aliases()
                registry.find("ITEM", 1)
            except Exception as e:
                errors.append(e)
                break
            assert len({p.alias for p in snap}) == len(snap)
            if done.is_set():
                break
    finally:
        t.join()

    assert errors == []
    assert len(registry) == inserts - len(range(0, inserts, 3))


def test_remove_and_find(registry):
    registry.put(Product(alias="wool:14", type="WOOL", variant=14))
    registry.put(Product(alias="wool", type="WOOL"))

    assert registry.find("wool", 14).alias == "wool:14"
    assert registry.find("WOOL", 0).alias == "wool"
    assert registry.find("wool", 3) is None

    removed = registry.remove("WOOL:14")
    assert removed.alias == "wool:14"
    assert registry.remove("wool:14") is None
    assert registry.aliases() == ["wool"]


def test_stripes_must_be_positive():
    with pytest.raises(ValueError):
        ProductRegistry(stripes=0)
