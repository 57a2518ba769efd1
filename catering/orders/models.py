# module catering.orders.models
"""Modèles échangés autour d'une commande.
- MenuItem / Child: données de référence lues ailleurs (menu du jour, registre des enfants).
- CartEntry: ligne de panier candidate, traduite 1:1 en ligne de commande au checkout.
- CheckoutRequest: corps JSON de POST /api/v1/orders/checkout.
Les lignes stockées (orders, order_line_items) restent des dict Supabase.
"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_CONFIRMED = "confirmed"
ORDER_STATUS_CANCELLED = "cancelled"

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_FAILED = "failed"


class MenuItem(BaseModel):
    id: str
    name: str
    price: int = Field(ge=0)


class Child(BaseModel):
    id: str
    name: str
    class_name: Optional[str] = None


class CartEntry(BaseModel):
    menu_item_id: str
    name: str = ""
    unit_price: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    delivery_date: date
    child_id: Optional[str] = None
    child_name: Optional[str] = None
    child_class: Optional[str] = None

    @property
    def key(self) -> str:
        """Identité composite (menu, date de livraison, enfant)."""
        return entry_key(self.menu_item_id, self.delivery_date, self.child_id)

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


def entry_key(menu_item_id: str, delivery_date: date, child_id: Optional[str]) -> str:
    return f"{menu_item_id}|{delivery_date.isoformat()}|{child_id or ''}"


class CheckoutRequest(BaseModel):
    items: List[CartEntry] = Field(default_factory=list)
    child_id: Optional[str] = None
    notes: Optional[str] = None
