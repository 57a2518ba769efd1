"""
Cas d'usage 'payments': rattache une transaction Midtrans à une commande existante.

Ce module ne marque jamais une commande comme payée: seule la notification
signée reçue par le webhook fait autorité sur payment_status.
"""
from typing import Any, Dict, List, Optional, Sequence
import logging

from catering.config import DEFAULT_CUSTOMER_EMAIL, DEFAULT_CUSTOMER_NAME, DEFAULT_CUSTOMER_PHONE
from catering.errors import GatewayError, ValidationError
from catering.orders import repository as orders_repository
from catering.orders import service as orders_service
from catering.orders.models import (
    CartEntry,
    ORDER_STATUS_PENDING,
    PAYMENT_STATUS_FAILED,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PENDING,
)
from catering.payments import midtrans_client
from catering.utils.ids import IdGenerator, default_ids

logger = logging.getLogger(__name__)


def customer_details_for(user: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Identité envoyée à Midtrans, avec valeurs de repli si le profil est incomplet."""
    user = user or {}
    metadata = user.get("metadata") or user.get("user_metadata") or {}
    return {
        "first_name": metadata.get("full_name") or DEFAULT_CUSTOMER_NAME,
        "email": user.get("email") or DEFAULT_CUSTOMER_EMAIL,
        "phone": metadata.get("phone") or DEFAULT_CUSTOMER_PHONE,
    }

def item_details_for_entries(entries: Sequence[CartEntry], child_name: Optional[str] = None) -> List[Dict[str, Any]]:
    """Lignes Midtrans {id, price, quantity, name} à partir du panier."""
    items: List[Dict[str, Any]] = []
    for entry in entries:
        who = entry.child_name or child_name
        label = entry.name or "Menu"
        items.append({
            "id": entry.menu_item_id,
            "price": entry.unit_price,
            "quantity": entry.quantity,
            "name": f"{label} - {who}" if who else label,
        })
    return items

def item_details_for_line_items(rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Lignes Midtrans reconstruites depuis order_line_items (chemin de relance)."""
    items: List[Dict[str, Any]] = []
    for row in rows:
        label = (row.get("menu_items") or {}).get("name") or "Menu"
        who = row.get("child_name")
        items.append({
            "id": str(row.get("menu_item_id") or row.get("id")),
            "price": int(row.get("unit_price") or 0),
            "quantity": int(row.get("quantity") or 0),
            "name": f"{label} - {who}" if who else label,
        })
    return items

def build_snap_payload(correlation_id: str, amount: int, customer_details: Dict[str, Any], item_details: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "transaction_details": {"order_id": correlation_id, "gross_amount": int(amount)},
        "customer_details": customer_details,
        "item_details": item_details,
    }

def create_payment(*, order_id: str, amount: int, customer_details: Dict[str, Any], item_details: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Fonction serveur « create-payment »: relais de confiance vers Midtrans Snap.
    - order_id: identifiant de corrélation (midtrans_order_id), pas l'id interne.
    Retour: {"snap_token": ..., "redirect_url": ...}
    """
    payload = build_snap_payload(order_id, amount, customer_details, item_details)
    result = midtrans_client.create_transaction(payload)
    return {"snap_token": result.get("token"), "redirect_url": result.get("redirect_url")}

def initiate_payment(
    *,
    order_id: str,
    amount: int,
    item_details: List[Dict[str, Any]],
    customer_details: Dict[str, Any],
    user_token: Optional[str] = None,
    ids: IdGenerator = default_ids,
) -> Dict[str, Any]:
    """
    Obtient un token Snap pour une commande persistée.
    Étapes:
      1) Nouvel identifiant de corrélation à chaque tentative
      2) midtrans_order_id mémorisé sur la commande (consultatif)
      3) Appel Midtrans via create_payment
      4) GatewayError si refus: la commande reste pending/pending, relançable
      5) snap_token mémorisé (consultatif) puis retourné
    """
    correlation_id = ids.new_correlation_id()
    orders_repository.advisory_update(
        order_id,
        {"midtrans_order_id": correlation_id, "updated_at": orders_repository.now_iso()},
        user_token=user_token,
        reason="bind correlation id",
    )

    try:
        result = create_payment(
            order_id=correlation_id,
            amount=amount,
            customer_details=customer_details,
            item_details=item_details,
        )
    except GatewayError:
        logger.warning("payments.service gateway failure order_id=%s correlation_id=%s", order_id, correlation_id)
        raise

    token = result.get("snap_token")
    if not token:
        raise GatewayError("Token de paiement non reçu")
    orders_repository.advisory_update(order_id, {"snap_token": token}, user_token=user_token, reason="store snap token")
    logger.info("payments.service payment initiated order_id=%s correlation_id=%s", order_id, correlation_id)
    return {
        "order_id": order_id,
        "correlation_id": correlation_id,
        "snap_token": token,
        "redirect_url": result.get("redirect_url"),
    }

def retry_payment(
    *,
    order_id: str,
    user: Dict[str, Any],
    user_token: Optional[str] = None,
    ids: IdGenerator = default_ids,
) -> Dict[str, Any]:
    """
    Relance manuelle du paiement d'une commande existante (sans la recréer).
    - paid: refusé (ValidationError already_paid)
    - failed: la commande repasse pending/pending avant la nouvelle tentative
    - pending: nouvelle tentative directe
    """
    user_id = user.get("id")
    order = orders_service.get_user_order(order_id, user_id, user_token=user_token)
    payment_status = order.get("payment_status")
    if payment_status == PAYMENT_STATUS_PAID:
        raise ValidationError("Commande déjà payée", code="already_paid")
    if payment_status == PAYMENT_STATUS_FAILED:
        orders_repository.update_order(
            order_id,
            {
                "payment_status": PAYMENT_STATUS_PENDING,
                "status": ORDER_STATUS_PENDING,
                "updated_at": orders_repository.now_iso(),
            },
            user_token=user_token,
        )
        logger.info("payments.service failed order reset to pending order_id=%s", order_id)

    rows = orders_repository.list_line_items(order_id, user_token=user_token)
    return initiate_payment(
        order_id=order_id,
        amount=int(order.get("total_amount") or 0),
        item_details=item_details_for_line_items(rows),
        customer_details=customer_details_for(user),
        user_token=user_token,
        ids=ids,
    )
