"""
Storefront cart.

The cart is a plain serializable value (``CartState``) changed only through
``reduce``. Persistence is handed in from outside: ``CartStore`` writes the
JSON snapshot to any backend exposing ``get(key)`` and ``set(key, value)``,
which in a browser is local storage and in tests a dict.
"""
from __future__ import annotations
from typing import List, Optional, Protocol, Union
from pydantic import BaseModel, Field

from config import settings
from schemas import ApiModel

STORAGE_KEY = "cart-storage"


class CartLine(ApiModel):
    id: str
    name: str
    price: float = Field(ge=0)
    discount: float = Field(0, ge=0, le=100)
    image: Optional[str] = None
    size: Optional[str] = None
    quantity: int = Field(1, ge=1)

    @property
    def unit_price(self) -> float:
        if self.discount > 0:
            return self.price * (100 - self.discount) / 100
        return self.price

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


class CartState(ApiModel):
    items: List[CartLine] = []

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def subtotal(self) -> float:
        return sum(line.line_total for line in self.items)

    def totals(self, tax_rate: Optional[float] = None) -> dict:
        rate = settings.TAX_RATE if tax_rate is None else tax_rate
        subtotal = self.subtotal
        tax = subtotal * rate
        return {"subtotal": round(subtotal, 2), "tax": round(tax, 2), "total": round(subtotal + tax, 2)}

    def to_order_items(self) -> List[dict]:
        return [
            {
                "productId": line.id,
                "name": line.name,
                "price": round(line.unit_price, 2),
                "quantity": line.quantity,
                "image": line.image,
            }
            for line in self.items
        ]


# Actions

class AddItem(BaseModel):
    line: CartLine


class RemoveItem(BaseModel):
    id: str


class SetQuantity(BaseModel):
    id: str
    quantity: int


class ClearCart(BaseModel):
    pass


Action = Union[AddItem, RemoveItem, SetQuantity, ClearCart]


def reduce(state: CartState, action: Action) -> CartState:
    if isinstance(action, AddItem):
        items = []
        merged = False
        for line in state.items:
            if line.id == action.line.id:
                line = line.model_copy(update={"quantity": line.quantity + action.line.quantity})
                merged = True
            items.append(line)
        if not merged:
            items.append(action.line)
        return CartState(items=items)

    if isinstance(action, RemoveItem):
        return CartState(items=[line for line in state.items if line.id != action.id])

    if isinstance(action, SetQuantity):
        if action.quantity <= 0:
            return reduce(state, RemoveItem(id=action.id))
        return CartState(items=[
            line.model_copy(update={"quantity": action.quantity}) if line.id == action.id else line
            for line in state.items
        ])

    if isinstance(action, ClearCart):
        return CartState()

    raise TypeError(f"Unknown cart action: {action!r}")


class StorageBackend(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class CartStore:
    def __init__(self, backend: StorageBackend, key: str = STORAGE_KEY):
        self.backend = backend
        self.key = key
        self.state = self.load()

    def load(self) -> CartState:
        raw = self.backend.get(self.key)
        if not raw:
            return CartState()
        return CartState.model_validate_json(raw)

    def dispatch(self, action: Action) -> CartState:
        self.state = reduce(self.state, action)
        self.backend.set(self.key, self.state.model_dump_json(by_alias=True))
        return self.state
