import json

import pytest

from cart import AddItem, CartLine, CartState, CartStore, ClearCart, RemoveItem, SetQuantity, reduce
from schemas import OrderCreate


class MemoryStorage:
    def __init__(self, initial=None):
        self.data = dict(initial or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value


def line(id="p1", **kw):
    values = {"id": id, "name": "Royal Oud", "price": 2500, "quantity": 1}
    values.update(kw)
    return CartLine(**values)


def test_add_merges_same_product():
    state = reduce(CartState(), AddItem(line=line(quantity=1)))
    state = reduce(state, AddItem(line=line(quantity=2)))
    state = reduce(state, AddItem(line=line("p2", name="Mitti", price=160)))
    assert [(l.id, l.quantity) for l in state.items] == [("p1", 3), ("p2", 1)]
    assert state.item_count == 4


def test_reducer_does_not_mutate_previous_state():
    before = reduce(CartState(), AddItem(line=line()))
    after = reduce(before, SetQuantity(id="p1", quantity=5))
    assert before.items[0].quantity == 1
    assert after.items[0].quantity == 5


def test_set_quantity_to_zero_removes_line():
    state = reduce(CartState(), AddItem(line=line()))
    assert reduce(state, SetQuantity(id="p1", quantity=0)).items == []
    assert reduce(state, RemoveItem(id="p1")).items == []
    assert reduce(state, ClearCart()).items == []


def test_totals_apply_discount_and_tax():
    state = reduce(CartState(), AddItem(line=line(price=200, discount=10, quantity=2)))
    assert state.subtotal == pytest.approx(360)
    assert state.totals(tax_rate=0.1) == {"subtotal": 360, "tax": 36, "total": 396}


def test_store_persists_through_injected_backend():
    backend = MemoryStorage()
    store = CartStore(backend)
    store.dispatch(AddItem(line=line(quantity=2)))

    saved = json.loads(backend.data["cart-storage"])
    assert saved["items"][0]["quantity"] == 2

    reopened = CartStore(backend)
    assert reopened.state.item_count == 2
    reopened.dispatch(ClearCart())
    assert CartStore(backend).state.items == []


def test_cart_checkout_payload_is_a_valid_order():
    state = reduce(CartState(), AddItem(line=line(price=200, discount=10, quantity=2, image="/images/1.png")))
    totals = state.totals(tax_rate=0.1)
    order = OrderCreate(
        items=state.to_order_items(),
        customer_name="Ayesha Khan",
        customer_email="ayesha@example.com",
        customer_phone="03001234567",
        shipping_address="12 Mall Road, Lahore",
        **totals,
    )
    assert order.items[0].price == 180
    assert order.items[0].product_id == "p1"
    assert order.total == 396
