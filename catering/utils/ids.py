"""
Génération des identifiants lisibles: numéros de commande et identifiants
de corrélation Midtrans (même schéma: ORDER-<epoch ms>-<9 caractères base36>).

L'unicité repose sur l'horodatage + 9 caractères aléatoires (~1e14
combinaisons par milliseconde). Les services reçoivent un IdGenerator en
paramètre pour que les tests fixent l'horloge et le suffixe.
"""
import secrets
import time
from typing import Callable

BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
SUFFIX_LENGTH = 9


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _random_suffix() -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(SUFFIX_LENGTH))


class IdGenerator:
    def __init__(self, prefix: str = "ORDER", clock: Callable[[], int] = _epoch_ms, suffix: Callable[[], str] = _random_suffix):
        self.prefix = prefix
        self._clock = clock
        self._suffix = suffix

    def _next(self) -> str:
        return f"{self.prefix}-{self._clock()}-{self._suffix()}"

    def new_order_number(self) -> str:
        return self._next()

    def new_correlation_id(self) -> str:
        return self._next()


default_ids = IdGenerator()
