"""
Logique panier pure (pas de Midtrans, pas de DB).

Le panier vit côté session parent, en mémoire, jusqu'au checkout. Les
entrées sont indexées par (menu, date de livraison, enfant): le même plat
commandé pour deux enfants ou deux dates donne deux lignes distinctes.
"""
from datetime import date
from typing import Dict, List

from catering.errors import ValidationError
from catering.orders.models import CartEntry, Child, MenuItem, entry_key


# module catering.orders.cart
class Cart:
    def __init__(self) -> None:
        self._entries: Dict[str, CartEntry] = {}

    def add(self, item: MenuItem, child: Child, delivery_date: date) -> CartEntry:
        """
        Ajoute un plat pour un enfant et une date.
        - Clé déjà présente: quantité + 1.
        - Sinon: nouvelle entrée à quantité 1, prix figé sur item.price.
        """
        key = entry_key(item.id, delivery_date, child.id)
        existing = self._entries.get(key)
        if existing:
            existing.quantity += 1
            return existing
        entry = CartEntry(
            menu_item_id=item.id,
            name=item.name,
            unit_price=item.price,
            quantity=1,
            delivery_date=delivery_date,
            child_id=child.id,
            child_name=child.name,
            child_class=child.class_name,
        )
        self._entries[key] = entry
        return entry

    def set_quantity(self, key: str, quantity: int) -> None:
        """0 retire l'entrée; une quantité négative est refusée."""
        if quantity < 0:
            raise ValidationError("Quantité négative refusée", code="invalid_quantity")
        if key not in self._entries:
            raise KeyError(key)
        if quantity == 0:
            del self._entries[key]
            return
        self._entries[key].quantity = quantity

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> List[CartEntry]:
        return list(self._entries.values())

    def total(self) -> int:
        return cart_total(self._entries.values())

    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)


def cart_total(entries) -> int:
    """Somme prix unitaire x quantité (entiers, pas de sous-unités)."""
    return sum(e.unit_price * e.quantity for e in entries)
