"""
Webhook Midtrans: unique source de vérité pour payment_status / status.

Séquence: authentifier (signature) -> classer le transaction_status ->
appliquer sur la commande retrouvée par midtrans_order_id -> acquitter.
Aucune lecture ni écriture du store avant une signature valide.

Livraison « au moins une fois »: rejouer la même notification laisse la
commande dans le même état (écrasement complet, pas d'incrément).
"""
from typing import Any, Dict, Optional, Tuple
import logging

from catering.errors import SignatureError
from catering.orders import repository as orders_repository
from catering.orders.models import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_CONFIRMED,
    ORDER_STATUS_PENDING,
    PAYMENT_STATUS_FAILED,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PENDING,
)
from catering.payments import midtrans_client

logger = logging.getLogger(__name__)

# transaction_status Midtrans -> (payment_status, status)
STATUS_MAP: Dict[str, Tuple[str, str]] = {
    "capture": (PAYMENT_STATUS_PAID, ORDER_STATUS_CONFIRMED),
    "settlement": (PAYMENT_STATUS_PAID, ORDER_STATUS_CONFIRMED),
    "pending": (PAYMENT_STATUS_PENDING, ORDER_STATUS_PENDING),
    "cancel": (PAYMENT_STATUS_FAILED, ORDER_STATUS_CANCELLED),
    "expire": (PAYMENT_STATUS_FAILED, ORDER_STATUS_CANCELLED),
    "failure": (PAYMENT_STATUS_FAILED, ORDER_STATUS_CANCELLED),
}

TERMINAL_PAYMENT_STATUSES = {PAYMENT_STATUS_PAID, PAYMENT_STATUS_FAILED}


# module catering.payments.webhook
def classify(transaction_status: Any) -> Optional[Tuple[str, str]]:
    """Retourne (payment_status, status) ou None pour un statut inconnu."""
    return STATUS_MAP.get(str(transaction_status or "").strip().lower())

def authenticate(notification: Dict[str, Any], server_key: Optional[str] = None) -> None:
    key = server_key or midtrans_client.require_server_key()
    if not midtrans_client.verify_signature(notification, key):
        logger.warning("payments.webhook invalid signature order_id=%s", notification.get("order_id"))
        raise SignatureError()

def handle_notification(notification: Dict[str, Any], *, server_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Traite une notification Midtrans déjà décodée (dict JSON).
    - SignatureError si la signature ne correspond pas (rien n'est lu ni écrit).
    - PersistenceError si le store échoue (le webhook répond 5xx, Midtrans relivrera).
    Retour: {"status": "applied" | "noop" | "ignored", ...} pour journalisation/tests.
    """
    if not isinstance(notification, dict):
        raise SignatureError("Invalid payload")
    authenticate(notification, server_key)

    correlation_id = str(notification.get("order_id") or "")
    transaction_status = notification.get("transaction_status")
    target = classify(transaction_status)
    if target is None:
        logger.warning(
            "payments.webhook unknown transaction_status=%s order_id=%s (left untouched)",
            transaction_status, correlation_id,
        )
        return {"status": "ignored", "reason": "unknown_status", "order_id": correlation_id}

    payment_status, order_status = target
    order = orders_repository.get_order_by_correlation_id(correlation_id)
    if not order:
        # Tentative remplacée par une relance, ou commande étrangère: rien à appliquer
        logger.warning("payments.webhook no order for correlation_id=%s", correlation_id)
        return {"status": "ignored", "reason": "unknown_order", "order_id": correlation_id}

    transaction_id = notification.get("transaction_id")
    current = (order.get("payment_status"), order.get("status"))
    if current == target and (not transaction_id or order.get("midtrans_transaction_id") == transaction_id):
        logger.info("payments.webhook redelivery no-op order_id=%s payment_status=%s", order.get("id"), payment_status)
        return {"status": "noop", "order_id": order.get("id"), "payment_status": payment_status, "order_status": order_status}

    if current[0] in TERMINAL_PAYMENT_STATUSES and current[0] != payment_status:
        logger.warning(
            "payments.webhook refused transition %s -> %s order_id=%s",
            current[0], payment_status, order.get("id"),
        )
        return {"status": "ignored", "reason": "terminal_state", "order_id": order.get("id")}

    fields = {
        "payment_status": payment_status,
        "status": order_status,
        "midtrans_transaction_id": transaction_id,
        "updated_at": orders_repository.now_iso(),
    }
    orders_repository.update_order(order["id"], fields)
    logger.info(
        "payments.webhook order %s updated: payment_status=%s, status=%s",
        correlation_id, payment_status, order_status,
    )
    return {"status": "applied", "order_id": order.get("id"), "payment_status": payment_status, "order_status": order_status}
