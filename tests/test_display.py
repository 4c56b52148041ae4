import pytest

from storefront.db.sqlite import SqliteCartStorage, load_blob
from storefront.models import CartEntry, Product
from storefront.services.cart import CartStore
from storefront.services.display import get_display_cart


def _entry(entry_id, product_id, price, name=None):
    return CartEntry(entry_id=entry_id, product_id=product_id, name=name or product_id, price=price)


def test_groups_in_first_appearance_order():
    entries = [
        _entry("e1", "b", 2.0),
        _entry("e2", "a", 1.0),
        _entry("e3", "b", 2.0),
        _entry("e4", "c", 3.0),
        _entry("e5", "a", 1.0),
    ]
    rows = get_display_cart(entries)
    assert [r.product_id for r in rows] == ["b", "a", "c"]
    assert [r.quantity for r in rows] == [2, 2, 1]
    assert rows[0].entry_ids == ["e1", "e3"]
    assert rows[1].entry_ids == ["e2", "e5"]


def test_snapshot_from_first_entry():
    entries = [_entry("e1", "a", 5.0, "Old name"), _entry("e2", "a", 7.0, "New name")]
    row = get_display_cart(entries)[0]
    assert row.name == "Old name"
    assert row.unit_price == 5.0


def test_is_pure():
    entries = [_entry("e1", "a", 1.0), _entry("e2", "a", 1.0)]
    first = get_display_cart(entries)
    first[0].entry_ids.append("junk")
    second = get_display_cart(entries)
    assert second[0].entry_ids == ["e1", "e2"]
    assert len(entries) == 2


def test_display_reflects_latest_state(cart, p1):
    cart.add_to_cart(p1)
    assert cart.get_display_cart()[0].quantity == 1
    cart.add_to_cart(p1)
    assert cart.get_display_cart()[0].quantity == 2


def test_sqlite_round_trip(tmp_settings):
    storage = SqliteCartStorage()
    cart = CartStore(storage)
    p1 = Product(id="p1", name="Poster", price=9.99)
    p2 = Product(id="p2", name="E-book", price=4.5)
    for product in (p1, p1, p2):
        cart.add_to_cart(product)

    restored = CartStore(SqliteCartStorage())
    assert restored.entries == cart.entries

    rows = restored.get_display_cart()
    assert len(rows) == 2
    assert (rows[0].product_id, rows[0].quantity) == ("p1", 2)
    assert rows[0].subtotal == pytest.approx(19.98)
    assert (rows[1].product_id, rows[1].quantity) == ("p2", 1)
    assert rows[1].subtotal == pytest.approx(4.5)
    assert restored.get_item_count() == 3


def test_sqlite_blob_stored_under_cart_key(tmp_settings, p1):
    CartStore(SqliteCartStorage(), key="tmn-cart:42").add_to_cart(p1)
    assert load_blob("tmn-cart:42") is not None
    assert load_blob("tmn-cart") is None
    assert CartStore(SqliteCartStorage()).is_empty()
