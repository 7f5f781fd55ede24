import pytest

from market_core.models import Product
from market_core.services.decay import decay_demand


def _product(demand: int) -> Product:
    return Product(alias="stone", type="STONE", demand=demand)


@pytest.mark.parametrize(
    "demand, amount, expected_demand, expected_return",
    [
        (10, 3, 7, 3),
        (2, 5, 0, 2),
        (0, 3, 0, 0),
        (4, 0, 4, 0),
        (3, 3, 0, 3),
    ],
)
def test_decay_demand(demand, amount, expected_demand, expected_return):
    p = _product(demand)
    assert decay_demand(p, amount) == expected_return
    assert p.demand == expected_demand


def test_decay_never_goes_below_zero_over_many_cycles():
    p = _product(7)
    removed = sum(decay_demand(p, 2) for _ in range(10))
    assert p.demand == 0
    assert removed == 7


def test_negative_decay_amount_is_rejected():
    p = _product(5)
    with pytest.raises(ValueError):
        decay_demand(p, -1)
    assert p.demand == 5
