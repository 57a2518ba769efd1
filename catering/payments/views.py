import json
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Request, Depends
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field

from catering.utils.security import require_user
from catering.utils.rate_limit import optional_rate_limit
from catering.errors import SignatureError
from catering.payments import service as payments_service
from catering.payments import webhook as payments_webhook

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])


class CustomerDetails(BaseModel):
    first_name: str = ""
    email: str = ""
    phone: str = ""


class ItemDetail(BaseModel):
    id: str
    price: int
    quantity: int
    name: str


class CreatePaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId")
    amount: int = Field(gt=0)
    customer_details: CustomerDetails = Field(alias="customerDetails", default_factory=CustomerDetails)
    item_details: List[ItemDetail] = Field(alias="itemDetails", default_factory=list)


# module catering.payments.views
@router.post("/create-payment", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_payment(body: CreatePaymentRequest, user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    """
    Relais de confiance vers Midtrans Snap (la clé serveur reste ici).
    - Entrée JSON: {orderId, amount, customerDetails{first_name,email,phone}, itemDetails[...]}
    - orderId est l'identifiant de corrélation, pas l'id interne de la commande
    - Sortie: {"snap_token": "..."}; 502 {detail, code} si Midtrans refuse
    """
    customer = body.customer_details.model_dump()
    fallback = payments_service.customer_details_for(user)
    for key, value in fallback.items():
        customer[key] = customer.get(key) or value
    result = payments_service.create_payment(
        order_id=body.order_id,
        amount=body.amount,
        customer_details=customer,
        item_details=[item.model_dump() for item in body.item_details],
    )
    return {"snap_token": result.get("snap_token")}

@router.post("/webhook", include_in_schema=False, response_class=PlainTextResponse)
async def webhook_midtrans(request: Request):
    """
    Notification Midtrans (HTTP Notification).
    - Signature: SHA-512(order_id + status_code + gross_amount + server_key)
    - Réponses texte: 200 OK, 400 Invalid signature (corps illisible compris), 500 Internal server error
    - Midtrans relivre tant qu'il ne reçoit pas 200: le traitement est idempotent
    """
    try:
        raw = await request.body()
        try:
            notification = json.loads(raw or b"null")
        except ValueError:
            logger.warning("payments.webhook unreadable body")
            return PlainTextResponse("Invalid signature", status_code=400)

        # Appels Supabase bloquants: hors de la boucle d'événements
        result = await run_in_threadpool(payments_webhook.handle_notification, notification)
        logger.info("payments.webhook result=%s", result.get("status"))
        return PlainTextResponse("OK", status_code=200)
    except SignatureError:
        return PlainTextResponse("Invalid signature", status_code=400)
    except Exception:
        logger.exception("Erreur webhook_midtrans")
        return PlainTextResponse("Internal server error", status_code=500)

@router.api_route("/webhook", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def webhook_method_not_allowed():
    return PlainTextResponse("Method not allowed", status_code=405)
