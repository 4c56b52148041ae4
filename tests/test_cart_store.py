import pytest

from storefront.models import Product
from storefront.services.cart import CartStore, MemoryCartStorage


def test_item_count_matches_number_of_adds(cart, p1, p2):
    for product in (p1, p2, p1, p1, p2):
        cart.add_to_cart(product)
    assert cart.get_item_count() == 5
    assert cart.quantity_of("p1") == 3
    assert not cart.is_empty()


def test_empty_cart():
    cart = CartStore(MemoryCartStorage())
    assert cart.is_empty()
    assert cart.get_total_value() == 0
    assert cart.get_item_count() == 0
    assert cart.get_display_cart() == []


def test_entry_ids_unique_and_quantity_one(cart, p1):
    entries = [cart.add_to_cart(p1) for _ in range(50)]
    assert len({e.entry_id for e in entries}) == 50
    assert all(e.quantity == 1 for e in cart.entries)


def test_snapshot_not_affected_by_later_catalog_change(cart, p1):
    cart.add_to_cart(p1)
    cheaper = Product(id="p1", name="Poster (sale)", price=1.0)
    cart.add_to_cart(cheaper)
    assert [e.price for e in cart.entries] == [9.99, 1.0]
    assert cart.get_display_cart()[0].name == "Poster"


def test_remove_one_takes_oldest(cart, p1, p2):
    first = cart.add_to_cart(p1)
    cart.add_to_cart(p2)
    second = cart.add_to_cart(p1)

    assert cart.remove_from_cart("p1") == 1
    ids = [e.entry_id for e in cart.entries]
    assert first.entry_id not in ids
    assert second.entry_id in ids


def test_remove_all(cart, p1, p2):
    for product in (p1, p2, p1):
        cart.add_to_cart(product)
    assert cart.remove_from_cart("p1", remove_all=True) == 2
    assert all(r.product_id != "p1" for r in cart.get_display_cart())
    assert cart.get_item_count() == 1


def test_remove_missing_is_noop(cart, p1, storage):
    cart.add_to_cart(p1)
    before = storage.load(cart.key)
    assert cart.remove_from_cart("nope") == 0
    assert cart.remove_from_cart("nope", remove_all=True) == 0
    assert storage.load(cart.key) == before


@pytest.mark.parametrize("n", [0, 1, 2, 5])
def test_update_quantity_sets_exact_count(cart, p1, p2, n):
    cart.add_to_cart(p1)
    cart.add_to_cart(p2)
    cart.add_to_cart(p1)
    cart.update_quantity("p1", n)
    assert cart.quantity_of("p1") == n
    assert cart.quantity_of("p2") == 1


def test_update_quantity_grows_by_cloning(cart, p1):
    original = cart.add_to_cart(p1)
    cart.update_quantity("p1", 3)
    clones = [e for e in cart.entries if e.entry_id != original.entry_id]
    assert len(clones) == 2
    for e in clones:
        assert (e.name, e.price, e.description, e.category) == (
            original.name, original.price, original.description, original.category
        )
    assert len({e.entry_id for e in cart.entries}) == 3


def test_update_quantity_shrinks_keeping_first(cart, p1):
    entries = [cart.add_to_cart(p1) for _ in range(4)]
    cart.update_quantity("p1", 2)
    assert [e.entry_id for e in cart.entries] == [e.entry_id for e in entries[:2]]


def test_update_quantity_zero_same_as_remove_all(storage, p1, p2):
    a = CartStore(storage, key="a")
    b = CartStore(storage, key="b")
    for cart in (a, b):
        for product in (p1, p2, p1):
            cart.add_to_cart(product)
    a.update_quantity("p1", 0)
    b.remove_from_cart("p1", remove_all=True)
    assert [r.product_id for r in a.get_display_cart()] == [r.product_id for r in b.get_display_cart()]
    assert a.get_item_count() == b.get_item_count() == 1


def test_update_quantity_negative_removes_all(cart, p1):
    cart.add_to_cart(p1)
    cart.update_quantity("p1", -3)
    assert cart.is_empty()


def test_update_quantity_absent_product_is_noop(cart, p1):
    cart.add_to_cart(p1)
    cart.update_quantity("p2", 3)
    assert cart.get_item_count() == 1


def test_add_three_then_set_one(cart):
    a = Product(id="A", name="A", price=10)
    for _ in range(3):
        cart.add_to_cart(a)
    cart.update_quantity("A", 1)
    assert cart.quantity_of("A") == 1
    assert cart.get_total_value() == 10


def test_total_value_sums_entry_prices(cart, p1, p2):
    for product in (p1, p1, p2):
        cart.add_to_cart(product)
    assert cart.get_total_value() == pytest.approx(9.99 + 9.99 + 4.5)


def test_clear_cart(cart, p1, storage):
    cart.add_to_cart(p1)
    cart.clear_cart()
    assert cart.is_empty()
    assert storage.load(cart.key) == []


def test_every_mutation_is_persisted(storage, p1, p2):
    cart = CartStore(storage)
    cart.add_to_cart(p1)
    cart.add_to_cart(p2)
    cart.update_quantity("p1", 3)
    cart.remove_from_cart("p2")

    restored = CartStore(storage)
    assert [e.entry_id for e in restored.entries] == [e.entry_id for e in cart.entries]
    assert restored.quantity_of("p1") == 3
