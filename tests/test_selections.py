# tests/test_selections.py
import json
from decimal import Decimal

from storefront.cart import CartLine
from storefront.selections import SELECTION_PROPERTY, ChosenAddon, SelectionStore


def _addon(addon_id, name, price, value="selected"):
    return ChosenAddon(addon_id=str(addon_id), name=name, value=value, price=Decimal(price))


def _line(**overrides):
    data = dict(key="1:a", variant_id="111", product_id="123", quantity=1,
                unit_price=Decimal("25.00"), title="Mug")
    data.update(overrides)
    return CartLine(**data)


def test_total_is_sum_of_addon_prices(store):
    selection = store.record("123", [_addon(1, "Gift Wrap", "3.50"), _addon(2, "Card", "2.45")])
    assert selection.total_price == Decimal("5.95")
    assert store.get("123").total_price == Decimal("5.95")


def test_record_overwrites_and_keeps_selection_id(store, clock):
    first = store.record("123", [_addon(1, "Gift Wrap", "5.00")])
    clock.advance(1000)
    second = store.record("123", [_addon(2, "Card", "1.00")])

    stored = store.get("123")
    assert [a.name for a in stored.chosen_addons] == ["Card"]
    assert second.selection_id == first.selection_id
    assert stored.timestamp == clock.now


def test_record_accepts_plain_dicts(store):
    selection = store.record("123", [{"addonId": 1, "name": "Gift Wrap", "value": "selected", "price": "5.00"}])
    assert selection.chosen_addons[0].price == Decimal("5.00")


def test_storage_layout(store, storage, settings):
    store.record("123", [_addon(1, "Gift Wrap", "5.00")], variant_id="111")

    data = json.loads(storage.get_item(settings.selections_key))
    assert data["123"]["productId"] == "123"
    assert data["123"]["variantId"] == "111"
    assert data["123"]["totalPrice"] == "5.00"
    assert data["123"]["addons"][0]["name"] == "Gift Wrap"


def test_unreadable_storage_counts_as_empty(store, storage, settings):
    storage.set_item(settings.selections_key, "{not json")
    assert store.all() == []
    assert settings.selections_key not in storage


def test_remove_and_clear(store):
    store.record("1", [_addon(1, "A", "1")])
    store.record("2", [_addon(2, "B", "1")])

    store.remove("1")
    assert [s.product_id for s in store.all()] == ["2"]
    store.clear()
    assert store.all() == []


def test_purge_expired(store, clock):
    store.record("old", [_addon(1, "A", "1")])
    clock.advance(25 * 60 * 60 * 1000)
    store.record("new", [_addon(2, "B", "1")])

    assert store.purge_expired() == 1
    assert [s.product_id for s in store.all()] == ["new"]


def test_match_by_selection_property_beats_variant(store):
    by_variant = store.record("999", [_addon(1, "A", "1")], variant_id="111")
    tagged = store.record("123", [_addon(2, "B", "2")])

    line = _line(properties={SELECTION_PROPERTY: tagged.selection_id})

    assert store.find_matching_cart_line(line).product_id == "123"
    assert by_variant.product_id == "999"


def test_match_by_variant_then_product(store):
    store.record("123", [_addon(1, "A", "1")])
    store.record("555", [_addon(2, "B", "2")], variant_id="111")

    assert store.find_matching_cart_line(_line()).product_id == "555"
    assert store.find_matching_cart_line(_line(variant_id="222")).product_id == "123"


def test_match_by_handle(store):
    store.record("classic-mug", [_addon(1, "A", "1")])
    line = _line(product_id="0", variant_id="0", handle="classic-mug")
    assert store.find_matching_cart_line(line).product_id == "classic-mug"


def test_fuzzy_match_on_rendered_text(store):
    store.record("gift-box", [_addon(1, "Gift Wrap", "5.00"), _addon(2, "Engraving", "3.00", value="Initials")])
    line = _line(product_id="0", variant_id="0",
                 rendered_text="Mug Gift Wrap: Yes (+£5.00) Engraving: Initials (+£3.00)")

    assert store.find_matching_cart_line(line).product_id == "gift-box"


def test_fuzzy_match_below_threshold_is_no_match(store):
    store.record("x", [_addon(1, "Gift Wrap", "5.00"), _addon(2, "Card", "1.11"), _addon(3, "Ribbon", "2.22")])
    line = _line(product_id="0", variant_id="0", rendered_text="Mug with Gift Wrap")

    assert store.find_matching_cart_line(line) is None


def test_fuzzy_tie_is_no_match(store):
    store.record("a", [_addon(1, "Gift Wrap", "5.00")])
    store.record("b", [_addon(2, "Gift Wrap", "5.00")])
    line = _line(product_id="0", variant_id="0", rendered_text="Mug Gift Wrap £5.00")

    assert store.find_matching_cart_line(line) is None


def test_fuzzy_matching_can_be_disabled(storage, settings, clock):
    settings.fuzzy_matching = False
    store = SelectionStore(storage, settings=settings, clock=clock)
    store.record("gift-box", [_addon(1, "Gift Wrap", "5.00")])
    line = _line(product_id="0", variant_id="0", rendered_text="Gift Wrap")

    assert store.find_matching_cart_line(line) is None


def test_no_selections_no_match(store):
    assert store.find_matching_cart_line(_line()) is None


def test_fuzzy_price_needs_whole_amount(store):
    store.record("gift-box", [_addon(1, "Gift Wrap", "5.00")])

    for text in ("Mug £25.00", "Mug £15.00", "Mug £105.00", "Mug 5.005"):
        line = _line(product_id="0", variant_id="0", rendered_text=text)
        assert store.find_matching_cart_line(line) is None

    line = _line(product_id="0", variant_id="0", rendered_text="Mug extras (+5.00)")
    assert store.find_matching_cart_line(line).product_id == "gift-box"
