"""
Adaptateur Midtrans: centralise les appels Snap et la signature des notifications.
La clé serveur (MIDTRANS_SERVER_KEY) reste côté backend: jamais envoyée au client.
"""
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import httpx

from catering.config import MIDTRANS_IS_PRODUCTION, MIDTRANS_SERVER_KEY, MIDTRANS_TIMEOUT
from catering.errors import GatewayError

logger = logging.getLogger(__name__)

SNAP_SANDBOX_URL = "https://app.sandbox.midtrans.com/snap/v1/transactions"
SNAP_PRODUCTION_URL = "https://app.midtrans.com/snap/v1/transactions"


# module catering.payments.midtrans_client
def require_server_key() -> str:
    """Retourne la clé serveur ou lève une RuntimeError si elle n'est pas configurée."""
    if not MIDTRANS_SERVER_KEY:
        raise RuntimeError("MIDTRANS_SERVER_KEY manquant")
    return MIDTRANS_SERVER_KEY

def snap_url() -> str:
    return SNAP_PRODUCTION_URL if MIDTRANS_IS_PRODUCTION else SNAP_SANDBOX_URL

def create_transaction(payload: Dict[str, Any], *, server_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Crée une transaction Snap.
    - payload: {transaction_details, customer_details, item_details}
    - Auth: Basic <server_key>: (mot de passe vide)
    Retour: {"token": "...", "redirect_url": "..."}
    Erreurs: GatewayError si Midtrans refuse (4xx/5xx) ou est injoignable.
    """
    key = server_key or require_server_key()
    order_id = (payload.get("transaction_details") or {}).get("order_id")
    try:
        resp = httpx.post(
            snap_url(),
            json=payload,
            auth=(key, ""),
            headers={"Accept": "application/json"},
            timeout=MIDTRANS_TIMEOUT,
        )
    except httpx.HTTPError as e:
        logger.exception("midtrans.create_transaction unreachable order_id=%s", order_id)
        raise GatewayError("Le paiement n'a pas pu être créé (Midtrans injoignable)") from e

    if resp.status_code >= 400:
        msg = None
        try:
            body = resp.json()
            msgs = body.get("error_messages") or []
            msg = "; ".join(str(m) for m in msgs) or body.get("status_message")
        except Exception:
            msg = resp.text
        logger.error("midtrans.create_transaction rejected order_id=%s status=%s msg=%s", order_id, resp.status_code, msg)
        raise GatewayError(f"Le paiement n'a pas pu être créé: {msg or f'status {resp.status_code}'}")

    data = resp.json()
    if not data.get("token"):
        raise GatewayError("Token de paiement non reçu")
    return data

def _as_str(value: Any) -> str:
    return "" if value is None else str(value)

def compute_signature(order_id: Any, status_code: Any, gross_amount: Any, server_key: str) -> str:
    """SHA-512 hex de order_id + status_code + gross_amount + server_key (format Midtrans)."""
    raw = f"{_as_str(order_id)}{_as_str(status_code)}{_as_str(gross_amount)}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()

def verify_signature(notification: Dict[str, Any], server_key: str) -> bool:
    supplied = _as_str(notification.get("signature_key"))
    if not supplied:
        return False
    expected = compute_signature(
        notification.get("order_id"),
        notification.get("status_code"),
        notification.get("gross_amount"),
        server_key,
    )
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))
