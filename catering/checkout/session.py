"""
Orchestration du checkout pour une session parent.

La session possède son panier, l'enfant sélectionné, les notes et le
drapeau « checkout en cours » (pas d'état global de module): un second
checkout lancé pendant le premier est refusé.

Le panier n'est vidé que sur SUCCESS / PENDING; toute erreur le conserve
pour une nouvelle tentative. Si la commande existe déjà mais que le
paiement n'a pas abouti, retry_payment relance Midtrans sur la même
commande sans la recréer.
"""
from typing import Any, Dict, List, Optional
import logging

from catering.checkout.widget import MESSAGES, PaymentWidget, WidgetOutcome, open_widget
from catering.errors import ValidationError
from catering.orders import repository as orders_repository
from catering.orders import service as orders_service
from catering.orders.cart import Cart
from catering.payments import service as payments_service
from catering.utils.ids import IdGenerator, default_ids

logger = logging.getLogger(__name__)


class CheckoutResult:
    def __init__(self, order: Dict[str, Any], payment: Dict[str, Any], outcome: WidgetOutcome):
        self.order = order
        self.payment = payment
        self.outcome = outcome
        self.message = MESSAGES[outcome]

    @property
    def retryable(self) -> bool:
        return self.outcome in (WidgetOutcome.ERROR, WidgetOutcome.CLOSE)


class CheckoutSession:
    def __init__(self, user: Dict[str, Any], *, user_token: Optional[str] = None, cart: Optional[Cart] = None, ids: IdGenerator = default_ids):
        self.user = user
        self.user_token = user_token
        self.cart = cart if cart is not None else Cart()
        self.ids = ids
        self.selected_child_id: Optional[str] = None
        self.notes: str = ""
        self.is_checking_out = False
        # Dernière commande créée dont le paiement n'a pas abouti
        self.pending_order: Optional[Dict[str, Any]] = None

    def _begin(self) -> None:
        if self.is_checking_out:
            raise ValidationError("Un checkout est déjà en cours", code="checkout_in_progress")
        self.is_checking_out = True

    async def checkout(self, widget: PaymentWidget) -> CheckoutResult:
        """
        Crée la commande à partir du panier puis ouvre le widget de paiement.
        - ValidationError: checkout déjà en cours, panier vide, aucun enfant.
        - PersistenceError / GatewayError: remontées telles quelles, panier intact.
        """
        self._begin()
        try:
            if self.cart.is_empty():
                raise ValidationError("Panier vide", code="empty_cart")
            if not self.selected_child_id:
                raise ValidationError("Veuillez sélectionner un enfant", code="no_child")

            entries = [e.model_copy() for e in self.cart.entries()]
            order = orders_service.create_order(
                user_id=self.user.get("id"),
                entries=entries,
                child_id=self.selected_child_id,
                notes=self.notes,
                user_token=self.user_token,
                ids=self.ids,
            )
            self.pending_order = order
            item_details = payments_service.item_details_for_entries(entries, order.get("child_name"))
            return await self._pay(order, item_details, widget)
        finally:
            self.is_checking_out = False

    async def retry_payment(self, widget: PaymentWidget) -> CheckoutResult:
        """
        Relance le paiement de la dernière commande restée pending (nouvel identifiant de corrélation).
        Les lignes Midtrans sont relues depuis order_line_items: le panier a pu changer depuis.
        """
        if not self.pending_order:
            raise ValidationError("Aucune commande en attente de paiement", code="no_pending_order")
        self._begin()
        try:
            order = self.pending_order
            rows = orders_repository.list_line_items(order["id"], user_token=self.user_token)
            return await self._pay(order, payments_service.item_details_for_line_items(rows), widget)
        finally:
            self.is_checking_out = False

    async def _pay(self, order: Dict[str, Any], item_details: List[Dict[str, Any]], widget: PaymentWidget) -> CheckoutResult:
        payment = payments_service.initiate_payment(
            order_id=order["id"],
            amount=int(order.get("total_amount") or 0),
            item_details=item_details,
            customer_details=payments_service.customer_details_for(self.user),
            user_token=self.user_token,
            ids=self.ids,
        )
        outcome = await open_widget(widget, payment["snap_token"])
        logger.info("checkout.session widget outcome=%s order_id=%s", outcome.value, order.get("id"))
        if outcome in (WidgetOutcome.SUCCESS, WidgetOutcome.PENDING):
            self._reset_after_payment()
        return CheckoutResult(order, payment, outcome)

    def _reset_after_payment(self) -> None:
        self.cart.clear()
        self.selected_child_id = None
        self.notes = ""
        self.pending_order = None

