# module catering.orders.views

"""Endpoints de l'user story Commande / Checkout.
- /checkout: crée la commande (pending/pending) puis obtient un token Snap (authentifié, rate-limité).
- /{order_id}/retry-payment: relance Midtrans pour une commande existante non payée.
- GET "" et /{order_id}: relecture autoritative de l'état (c'est le webhook qui l'écrit).
Sécurité:
- require_user: le parent doit être connecté; son token part vers Supabase (RLS).
- optional_rate_limit: limite la création de commandes et de transactions.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing import Dict, Any
import logging

from catering.utils.security import require_user
from catering.utils.rate_limit import optional_rate_limit
from catering.errors import GatewayError
from catering.orders import service as orders_service
from catering.orders.models import CheckoutRequest
from catering.payments import service as payments_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.post("/checkout", status_code=201, dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def api_checkout(body: CheckoutRequest, user: Dict[str, Any] = Depends(require_user)):
    """Crée la commande puis la transaction Midtrans.
    Étapes:
    - Valide et persiste la commande (orders_service.create_order).
    - Initie le paiement avec un nouvel identifiant de corrélation.
    - 201 {order, payment} si tout réussit.
    - 502 {detail, code, order_id} si Midtrans refuse: la commande existe et reste relançable.
    Les erreurs de validation (400) et de persistance (500) passent par les gestionnaires globaux.
    """
    token = user.get("token")
    order = orders_service.create_order(
        user_id=user.get("id"),
        entries=body.items,
        child_id=body.child_id,
        notes=body.notes,
        user_token=token,
    )
    try:
        payment = payments_service.initiate_payment(
            order_id=order["id"],
            amount=int(order.get("total_amount") or 0),
            item_details=payments_service.item_details_for_entries(body.items, order.get("child_name")),
            customer_details=payments_service.customer_details_for(user),
            user_token=token,
        )
    except GatewayError as e:
        logger.warning("orders.views checkout: order kept pending after gateway failure order_id=%s", order.get("id"))
        return JSONResponse(
            status_code=e.status_code,
            content={"detail": e.message, "code": e.code, "order_id": order.get("id")},
        )
    return {"order": order, "payment": payment}


@router.get("")
def api_list_orders(user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    orders = orders_service.list_orders(user.get("id"), user_token=user.get("token"))
    return {"orders": orders}


@router.get("/{order_id}")
def api_get_order(order_id: str, user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    return orders_service.get_user_order(order_id, user.get("id"), user_token=user.get("token"))


@router.post("/{order_id}/retry-payment", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def api_retry_payment(order_id: str, user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    """Nouvelle tentative de paiement: 400 si déjà payée, 404 si inconnue, 502 si Midtrans refuse."""
    return payments_service.retry_payment(order_id=order_id, user=user, user_token=user.get("token"))
