import pytest

from market_core.models import (
    SYSTEM_UUID,
    LedgerEvent,
    Product,
    TransactionAction,
    check_price,
    format_price,
    normalize_alias,
)
from market_core.pricing import FixedPriceModel, reprice


def test_alias_is_normalized_on_construction():
    p = Product(alias="  Diamond_Sword ", type="DIAMOND_SWORD")
    assert p.alias == "diamond_sword"
    assert normalize_alias("STONE") == "stone"


def test_product_rejects_negative_demand_and_price():
    with pytest.raises(ValueError):
        Product(alias="stone", type="STONE", demand=-1)
    with pytest.raises(ValueError):
        Product(alias="stone", type="STONE", price=-0.01)


def test_product_rejects_empty_alias():
    with pytest.raises(ValueError):
        Product(alias="   ", type="STONE")


@pytest.mark.parametrize(
    "price, expected",
    [
        (1.23459, "1.2345"),
        (0.99999, "0.9999"),
        (5.0, "5.0000"),
        (0.0, "0.0000"),
        (12.3, "12.3000"),
    ],
)
def test_display_price_rounds_toward_zero(price, expected):
    assert format_price(price) == expected
    assert Product(alias="x", type="X", price=price).display_price == expected


def test_matches_is_case_insensitive_on_type_and_exact_on_variant():
    p = Product(alias="wool:14", type="WOOL", variant=14)
    assert p.matches("wool", 14)
    assert not p.matches("WOOL", 0)


def test_transaction_action_codes_are_stable():
    assert [a.value for a in TransactionAction] == [0, 1, 2, 3, 4]
    assert TransactionAction(2) is TransactionAction.DECAY


def test_decay_event_uses_system_actor_and_zero_price():
    evt = LedgerEvent.decay("stone", 3)
    assert evt.actor_uuid == SYSTEM_UUID
    assert evt.action is TransactionAction.DECAY
    assert evt.amount == 3.0
    assert evt.price == 0.0


def test_fixed_price_model_leaves_price_unchanged():
    p = Product(alias="stone", type="STONE", demand=10, price=2.5)
    assert reprice(p, FixedPriceModel()) == 2.5


def test_reprice_clamps_negative_model_output():
    p = Product(alias="stone", type="STONE", demand=10, price=2.5)
    assert reprice(p, lambda product: -4.0) == 0.0
    assert p.price == 0.0


@pytest.mark.parametrize("price", [float("nan"), float("inf"), float("-inf")])
def test_product_rejects_non_finite_price(price):
    with pytest.raises(ValueError):
        Product(alias="stone", type="STONE", price=price)
    with pytest.raises(ValueError):
        check_price(price)


def test_check_price_accepts_finite_non_negative_values():
    assert check_price(0) == 0.0
    assert check_price(2.5) == 2.5
    with pytest.raises(ValueError):
        check_price(-1.0)


def test_display_price_handles_very_large_prices():
    expected = "1" + "0" * 25 + ".0000"
    assert format_price(1e25) == expected
    assert Product(alias="x", type="X", price=1e25).display_price == expected
    assert format_price(1.5e30) == "15" + "0" * 29 + ".0000"


def test_display_price_of_largest_float_has_four_digits():
    text = format_price(1.7976931348623157e308)
    assert text.endswith(".0000")
    assert len(text.split(".")[0]) == 309


def test_format_price_rejects_non_finite():
    with pytest.raises(ValueError):
        format_price(float("inf"))
    with pytest.raises(ValueError):
        format_price(float("nan"))


@pytest.mark.parametrize("bad", [float("nan"), float("inf")])
def test_reprice_keeps_current_price_when_model_returns_non_finite(bad):
    p = Product(alias="stone", type="STONE", demand=10, price=2.5)
    assert reprice(p, lambda product: bad) == 2.5
    assert p.price == 2.5
