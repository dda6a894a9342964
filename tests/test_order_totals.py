import pytest

from delivery_api.logic.delivery_fee import delivery_logic_from_dict
from delivery_api.logic.errors import DeliveryLogicError, InvalidCoordinate, OrderBelowMinimum
from delivery_api.logic.order_totals import calculate_order_totals, calculate_subtotal_cents, quote_shops
from delivery_api.providers.auto_fee_source import FixedAutoFeeSource

PRICES = {"biryani": 5000, "naan": 2500}
SHOP = (24.8607, 67.0011)
# 0.01 grau de latitude ao norte da loja, ~1112 m
NEARBY = (24.8707, 67.0011)


def test_subtotal_sums_price_times_quantity():
    items = [{"merchant_item_id": "biryani", "quantity": 2}, {"item_id": "naan", "quantity": 1}]
    assert calculate_subtotal_cents(items, PRICES) == 12500


def test_subtotal_ignores_unknown_items():
    items = [{"merchant_item_id": "biryani", "quantity": 1}, {"merchant_item_id": "gone", "quantity": 3}]
    assert calculate_subtotal_cents(items, PRICES) == 5000


@pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", None, True])
def test_subtotal_rejects_bad_quantity(quantity):
    with pytest.raises(DeliveryLogicError):
        calculate_subtotal_cents([{"merchant_item_id": "biryani", "quantity": quantity}], PRICES)


def test_order_totals_with_surcharge(custom_logic):
    items = [{"merchant_item_id": "biryani", "quantity": 2}, {"merchant_item_id": "naan", "quantity": 1}]
    totals = calculate_order_totals(items, PRICES, SHOP, SHOP, custom_logic)
    assert totals == {
        "subtotal_cents": 12500,
        "delivery_fee_cents": 2000,
        "surcharge_cents": 4000,
        "total_cents": 18500,
        "distance_meters": 0.0,
        "free_delivery_applied": False,
        "out_of_zone": False,
    }


def test_order_totals_beyond_last_tier(custom_logic):
    items = [{"merchant_item_id": "biryani", "quantity": 5}]
    totals = calculate_order_totals(items, PRICES, SHOP, NEARBY, custom_logic)
    # ~712 m além da última faixa = 3 unidades de 250 m
    assert totals["delivery_fee_cents"] == 6000
    assert totals["surcharge_cents"] == 0
    assert totals["total_cents"] == 25000 + 6000
    assert totals["out_of_zone"] is True
    assert totals["distance_meters"] == pytest.approx(1112, abs=1)


def test_order_totals_free_delivery(custom_logic):
    items = [{"merchant_item_id": "biryani", "quantity": 20}]
    totals = calculate_order_totals(items, PRICES, SHOP, SHOP, custom_logic)
    assert totals["free_delivery_applied"] is True
    assert totals["delivery_fee_cents"] == 0
    assert totals["surcharge_cents"] == 0
    assert totals["total_cents"] == 100000


def test_order_totals_cap_absorbs_surcharge(custom_logic):
    items = [{"merchant_item_id": "biryani", "quantity": 3}]
    far = (SHOP[0] + 0.1, SHOP[1])
    totals = calculate_order_totals(items, PRICES, SHOP, far, custom_logic)
    assert totals["delivery_fee_cents"] == 13000
    assert totals["surcharge_cents"] == 0
    assert totals["total_cents"] == 15000 + 13000


def test_order_below_least_value_is_rejected(custom_logic):
    with pytest.raises(OrderBelowMinimum) as exc:
        calculate_order_totals([{"merchant_item_id": "naan", "quantity": 1}], PRICES, SHOP, SHOP, custom_logic)
    assert exc.value.least_order_value == 100


def test_order_totals_without_config_uses_default_fee():
    totals = calculate_order_totals([{"merchant_item_id": "naan", "quantity": 1}], PRICES, SHOP, SHOP, None)
    assert totals["delivery_fee_cents"] == 6000
    assert totals["surcharge_cents"] == 0
    assert totals["total_cents"] == 8500


def test_order_totals_auto_mode(auto_logic):
    items = [{"merchant_item_id": "biryani", "quantity": 3}]
    totals = calculate_order_totals(items, PRICES, SHOP, NEARBY, auto_logic, FixedAutoFeeSource(55))
    assert totals["delivery_fee_cents"] == 5500
    assert totals["surcharge_cents"] == 4000


def test_order_totals_invalid_address(custom_logic):
    with pytest.raises(InvalidCoordinate):
        calculate_order_totals([{"merchant_item_id": "biryani", "quantity": 3}], PRICES, SHOP, (None, 67.0), custom_logic)


# --- listagem de lojas ---

def test_quote_shops(custom_logic, auto_logic):
    shops = [
        {"id": "shop-1", "name": "Custom", "latitude": SHOP[0], "longitude": SHOP[1]},
        {"id": "shop-2", "name": "Auto", "latitude": SHOP[0], "longitude": SHOP[1]},
        {"id": "shop-3", "name": "Sem coordenadas", "latitude": None, "longitude": None},
        {"id": "shop-4", "name": "Sem lógica", "latitude": SHOP[0], "longitude": SHOP[1]},
    ]
    logics = {"shop-1": custom_logic, "shop-2": auto_logic}
    quotes = quote_shops(shops, *NEARBY, logics, FixedAutoFeeSource(45))

    by_id = {q["shop_id"]: q for q in quotes}
    assert [q["shop_id"] for q in quotes] == ["shop-1", "shop-2", "shop-3", "shop-4"]
    assert by_id["shop-1"]["delivery_fee"] == 60
    assert by_id["shop-1"]["out_of_zone"] is True
    assert by_id["shop-2"]["delivery_fee"] == 45
    assert by_id["shop-3"]["delivery_fee"] is None
    assert by_id["shop-3"]["distance_meters"] is None
    assert by_id["shop-4"]["delivery_fee"] is None
    assert by_id["shop-4"]["distance_meters"] == pytest.approx(1112, abs=1)


def test_quote_shops_auto_without_source_has_no_fee(auto_logic):
    shops = [{"id": "shop-2", "latitude": SHOP[0], "longitude": SHOP[1]}]
    quotes = quote_shops(shops, *SHOP, {"shop-2": auto_logic})
    assert quotes[0]["delivery_fee"] is None
    assert quotes[0]["distance_meters"] == 0


def test_quote_shops_skips_shop_with_bad_coordinates(custom_logic):
    shops = [{"id": "shop-1", "latitude": 123, "longitude": SHOP[1]}]
    quotes = quote_shops(shops, *SHOP, {"shop-1": custom_logic})
    assert quotes[0]["delivery_fee"] is None


def test_quote_shops_rejects_bad_consumer_location(custom_logic):
    with pytest.raises(InvalidCoordinate):
        quote_shops([], "abc", 0, {})


def test_quote_shops_matches_distance_layer_only(custom_logic):
    # a listagem não aplica sobretaxa nem entrega grátis
    logic = delivery_logic_from_dict({**custom_logic, "free_delivery_threshold": 0})
    quotes = quote_shops([{"id": "shop-1", "latitude": SHOP[0], "longitude": SHOP[1]}], *SHOP, {"shop-1": logic})
    assert quotes[0]["delivery_fee"] == 20


def test_quote_shops_broken_logic_does_not_break_listing(custom_logic):
    shops = [
        {"id": "shop-1", "latitude": SHOP[0], "longitude": SHOP[1]},
        {"id": "shop-5", "latitude": SHOP[0], "longitude": SHOP[1]},
    ]
    logics = {"shop-1": custom_logic, "shop-5": {**custom_logic, "shop_id": "shop-5", "distance_tiers": []}}
    quotes = quote_shops(shops, *SHOP, logics)

    by_id = {q["shop_id"]: q for q in quotes}
    assert by_id["shop-1"]["delivery_fee"] == 20
    assert by_id["shop-5"]["delivery_fee"] is None
    assert by_id["shop-5"]["out_of_zone"] is False
    assert by_id["shop-5"]["distance_meters"] == 0


@pytest.mark.parametrize("shop", [
    {"name": "Sem id", "latitude": SHOP[0], "longitude": SHOP[1]},
    {"id": None, "latitude": SHOP[0], "longitude": SHOP[1]},
    "shop-1",
])
def test_quote_shops_skips_shop_without_id(custom_logic, shop):
    logics = {"None": custom_logic, "shop-1": custom_logic}
    quotes = quote_shops([shop, {"id": "shop-1", "latitude": SHOP[0], "longitude": SHOP[1]}], *SHOP, logics)
    assert [q["shop_id"] for q in quotes] == ["shop-1"]


@pytest.mark.parametrize("item", ["biryani", None, ["biryani", 1]])
def test_subtotal_rejects_item_that_is_not_an_object(item):
    with pytest.raises(DeliveryLogicError):
        calculate_subtotal_cents([item], PRICES)


@pytest.mark.parametrize("price", ["abc", -100, 12.5, True, float("inf"), float("nan"), [5000]])
def test_subtotal_rejects_bad_price(price):
    with pytest.raises(DeliveryLogicError):
        calculate_subtotal_cents([{"merchant_item_id": "biryani", "quantity": 1}], {"biryani": price})


def test_subtotal_accepts_integral_price_in_any_numeric_form():
    items = [{"merchant_item_id": "biryani", "quantity": 2}]
    assert calculate_subtotal_cents(items, {"biryani": "5000"}) == 10000
    assert calculate_subtotal_cents(items, {"biryani": 5000.0}) == 10000
