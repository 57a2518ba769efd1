"""
Pont vers le widget de paiement hébergé (Snap).

Le widget rend exactement une issue par ouverture. Cette issue ne sert qu'à
l'UX (message, vidage du panier): l'état de la commande ne change qu'au
webhook signé.
"""
from enum import Enum
from typing import Protocol
import logging

logger = logging.getLogger(__name__)


class WidgetOutcome(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    ERROR = "error"
    CLOSE = "close"


class PaymentWidget(Protocol):
    async def open(self, token: str) -> WidgetOutcome:
        ...


async def open_widget(widget: PaymentWidget, token: str) -> WidgetOutcome:
    """Ouvre le widget; une exception ou une valeur inattendue compte comme ERROR."""
    try:
        outcome = await widget.open(token)
    except Exception:
        logger.exception("checkout.widget open failed")
        return WidgetOutcome.ERROR
    try:
        return WidgetOutcome(outcome)
    except ValueError:
        logger.warning("checkout.widget unexpected outcome=%r", outcome)
        return WidgetOutcome.ERROR


MESSAGES = {
    WidgetOutcome.SUCCESS: "Paiement réussi ! Votre commande a bien été enregistrée.",
    WidgetOutcome.PENDING: "Paiement en attente: il est en cours de traitement.",
    WidgetOutcome.ERROR: "Le paiement a échoué. Vous pouvez réessayer.",
    WidgetOutcome.CLOSE: "",
}
