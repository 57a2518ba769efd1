"""
Module 'checkout': session parent (panier + drapeau en cours) et pont vers le widget Snap.
"""

from .widget import WidgetOutcome, PaymentWidget, open_widget
from .session import CheckoutSession, CheckoutResult

__all__ = [
    "WidgetOutcome",
    "PaymentWidget",
    "open_widget",
    "CheckoutSession",
    "CheckoutResult",
]
