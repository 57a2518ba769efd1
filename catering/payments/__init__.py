"""
Module 'payments' (feature-first): point d'entrée public.
Réunit le client Midtrans (Snap + signature), l'initiation de paiement et le webhook.
"""

from .midtrans_client import require_server_key, create_transaction, compute_signature, verify_signature
from .service import (
    customer_details_for,
    item_details_for_entries,
    item_details_for_line_items,
    build_snap_payload,
    create_payment,
    initiate_payment,
    retry_payment,
)
from .webhook import STATUS_MAP, classify, authenticate, handle_notification

__all__ = [
    # midtrans
    "require_server_key",
    "create_transaction",
    "compute_signature",
    "verify_signature",
    # services
    "customer_details_for",
    "item_details_for_entries",
    "item_details_for_line_items",
    "build_snap_payload",
    "create_payment",
    "initiate_payment",
    "retry_payment",
    # webhook
    "STATUS_MAP",
    "classify",
    "authenticate",
    "handle_notification",
]
