"""
Erreurs métier du cycle commande / paiement.

Chaque erreur porte un code stable (pour le front) et le statut HTTP
utilisé par les gestionnaires d'exceptions de l'application.
"""


class CateringError(Exception):
    status_code = 500

    def __init__(self, message: str, code: str = "error"):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(CateringError):
    """Saisie invalide (panier vide, enfant absent ou étranger, date passée...).
    Levée avant tout appel réseau vers le store des commandes."""
    status_code = 400

    def __init__(self, message: str, code: str = "invalid"):
        super().__init__(message, code)


class PersistenceError(CateringError):
    status_code = 500

    def __init__(self, message: str, code: str = "persistence_failed"):
        super().__init__(message, code)


class GatewayError(CateringError):
    """Midtrans a refusé la transaction ou est injoignable. La commande reste pending/pending."""
    status_code = 502

    def __init__(self, message: str, code: str = "payment_not_created"):
        super().__init__(message, code)


class SignatureError(CateringError):
    status_code = 400

    def __init__(self, message: str = "Invalid signature", code: str = "invalid_signature"):
        super().__init__(message, code)


class OrderNotFoundError(CateringError):
    status_code = 404

    def __init__(self, message: str = "Commande introuvable", code: str = "order_not_found"):
        super().__init__(message, code)


class CompensationFailedWarning(UserWarning):
    """La suppression compensatoire d'un en-tête de commande a échoué (journalisée, jamais levée)."""
