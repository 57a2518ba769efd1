"""
Cas d'usage 'orders': transforme un panier + un enfant en une commande persistée.

Ordre des écritures: en-tête (orders) puis lignes (order_line_items) en un lot.
Si le lot échoue, l'en-tête fraîchement créé est supprimé (compensation
best-effort) et l'erreur d'origine remonte telle quelle.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo
import logging
import warnings

from catering.config import SCHOOL_TIMEZONE
from catering.errors import CompensationFailedWarning, OrderNotFoundError, PersistenceError, ValidationError
from catering.children import repository as children_repository
from catering.orders import repository
from catering.orders.cart import cart_total
from catering.orders.models import (
    CartEntry,
    ORDER_STATUS_PENDING,
    PAYMENT_STATUS_PENDING,
)
from catering.utils.ids import IdGenerator, default_ids

logger = logging.getLogger(__name__)


def school_today() -> date:
    return datetime.now(ZoneInfo(SCHOOL_TIMEZONE)).date()

def _validate_entries(entries: Sequence[CartEntry], order_date: date) -> None:
    for entry in entries:
        if entry.delivery_date < order_date:
            raise ValidationError(
                f"Date de livraison passée pour {entry.name or entry.menu_item_id}: {entry.delivery_date.isoformat()}",
                code="delivery_date_in_past",
            )

def _resolve_children(entries: Sequence[CartEntry], selected: Dict[str, Any], user_id: str, user_token: Optional[str]) -> Dict[str, Dict[str, Any]]:
    """
    Vérifie que chaque enfant ciblé par le panier appartient au parent.
    Retourne {child_id: enfant}; une entrée sans child_id vise l'enfant sélectionné.
    """
    children = {str(selected["id"]): selected}
    for entry in entries:
        cid = entry.child_id
        if not cid or cid in children:
            continue
        child = children_repository.get_child_for_user(cid, user_id, user_token=user_token)
        if not child:
            raise ValidationError("Enfant introuvable pour ce compte", code="child_not_owned")
        children[cid] = child
    return children

def build_line_items(order_id: str, entries: Sequence[CartEntry], children: Dict[str, Dict[str, Any]], selected_child_id: str, order_date: date) -> List[Dict[str, Any]]:
    """Une ligne par entrée de panier: prix figé, instantané nom/classe de l'enfant."""
    rows: List[Dict[str, Any]] = []
    for entry in entries:
        child = children[entry.child_id or selected_child_id]
        rows.append({
            "order_id": order_id,
            "child_id": child.get("id"),
            "child_name": child.get("name"),
            "child_class": child.get("class_name"),
            "menu_item_id": entry.menu_item_id,
            "quantity": entry.quantity,
            "unit_price": entry.unit_price,
            "total_price": entry.unit_price * entry.quantity,
            "delivery_date": entry.delivery_date.isoformat(),
            "order_date": order_date.isoformat(),
            "notes": None,
        })
    return rows

def _compensate(order_id: str, user_token: Optional[str]) -> None:
    """Supprime l'en-tête orphelin; un échec ici est signalé mais ne masque pas l'erreur d'origine."""
    try:
        repository.delete_order(order_id, user_token=user_token)
    except Exception as e:
        failure = e
    else:
        logger.info("orders.service compensation: header deleted order_id=%s", order_id)
        return

    logger.error("orders.service compensation failed order_id=%s error=%s", order_id, failure)
    try:
        warnings.warn(
            f"Compensation impossible pour la commande {order_id}: {failure}",
            CompensationFailedWarning,
            stacklevel=3,
        )
    except CompensationFailedWarning:
        # Filtre "error" actif: l'échec est déjà journalisé, l'erreur d'origine doit remonter
        logger.debug("orders.service compensation warning promoted to error order_id=%s", order_id)

def create_order(
    *,
    user_id: str,
    entries: Sequence[CartEntry],
    child_id: Optional[str],
    notes: Optional[str] = None,
    user_token: Optional[str] = None,
    ids: IdGenerator = default_ids,
    order_date: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Crée une commande {pending, pending} et ses lignes.
    - ValidationError: panier vide, aucun enfant, enfant étranger, date passée.
    - PersistenceError: insertion de l'en-tête ou des lignes impossible.
    Retour: la ligne orders créée (id, order_number, total_amount...).
    """
    entries = list(entries or [])
    if not entries:
        raise ValidationError("Panier vide", code="empty_cart")
    if not child_id or not str(child_id).strip():
        raise ValidationError("Veuillez sélectionner un enfant", code="no_child")

    order_date = order_date or school_today()
    _validate_entries(entries, order_date)

    selected = children_repository.get_child_for_user(child_id, user_id, user_token=user_token)
    if not selected:
        raise ValidationError("Enfant introuvable pour ce compte", code="child_not_owned")
    children = _resolve_children(entries, selected, user_id, user_token)

    total_amount = cart_total(entries)
    header = {
        "order_number": ids.new_order_number(),
        "user_id": user_id,
        "child_name": selected.get("name"),
        "child_class": selected.get("class_name"),
        "total_amount": total_amount,
        "status": ORDER_STATUS_PENDING,
        "payment_status": PAYMENT_STATUS_PENDING,
        "notes": (notes or "").strip() or None,
    }
    order = repository.insert_order(header, user_token=user_token)
    logger.info("orders.service header created order_id=%s order_number=%s total=%s", order.get("id"), order.get("order_number"), total_amount)

    rows = build_line_items(order["id"], entries, children, str(selected["id"]), order_date)
    try:
        repository.insert_line_items(rows, user_token=user_token)
    except PersistenceError:
        _compensate(order["id"], user_token)
        raise
    logger.info("orders.service line items created order_id=%s count=%s", order["id"], len(rows))
    return order

def get_user_order(order_id: str, user_id: str, *, user_token: Optional[str] = None) -> Dict[str, Any]:
    """Commande du parent, sinon OrderNotFoundError (même réponse pour « absente » et « d'un autre »)."""
    order = repository.get_order(order_id, user_token=user_token)
    if not order or str(order.get("user_id")) != str(user_id):
        raise OrderNotFoundError()
    return order

def list_orders(user_id: str, *, user_token: Optional[str] = None) -> List[Dict[str, Any]]:
    """Relecture autoritative de l'état des commandes (après paiement côté widget)."""
    orders = repository.list_user_orders(user_id, user_token=user_token)
    for order in orders:
        order["order_line_items"] = order.get("order_line_items") or []
    return orders
