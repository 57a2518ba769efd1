"""
Accès aux données pour la feature 'orders' (tables orders, order_line_items).

Politique d'erreurs:
- Écritures et lectures critiques: logger.exception puis PersistenceError.
- Lectures d'affichage (listes): valeur neutre ([]) pour ne pas casser l'UX.
- advisory_update: écriture secondaire tolérée, ne lève jamais.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

import catering.infra.supabase_client as supabase_client
from catering.errors import PersistenceError

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
LINE_ITEMS_TABLE = "order_line_items"


# module catering.orders.repository
def _client(user_token: Optional[str] = None):
    """Client utilisateur (RLS) si un token est fourni, sinon service-role."""
    if user_token:
        return supabase_client.get_user_supabase(user_token)
    return supabase_client.get_service_supabase()

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def insert_order(row: Dict[str, Any], *, user_token: Optional[str] = None) -> Dict[str, Any]:
    """Insère l'en-tête de commande et retourne la ligne créée (id attribué par le store)."""
    try:
        res = _client(user_token).table(ORDERS_TABLE).insert(row).execute()
        rows = res.data or []
    except Exception as e:
        logger.exception("orders.repository.insert_order failed user_id=%s", row.get("user_id"))
        raise PersistenceError("Impossible de créer la commande", code="order_insert_failed") from e
    if not rows:
        raise PersistenceError("Impossible de créer la commande", code="order_insert_failed")
    return rows[0]

def insert_line_items(rows: List[Dict[str, Any]], *, user_token: Optional[str] = None) -> List[Dict[str, Any]]:
    """Insère toutes les lignes d'une commande en un seul lot."""
    try:
        res = _client(user_token).table(LINE_ITEMS_TABLE).insert(rows).execute()
        return res.data or []
    except Exception as e:
        order_id = rows[0].get("order_id") if rows else None
        logger.exception("orders.repository.insert_line_items failed order_id=%s count=%s", order_id, len(rows))
        raise PersistenceError("Impossible d'enregistrer le détail de la commande", code="line_items_insert_failed") from e

def delete_order(order_id: str, *, user_token: Optional[str] = None) -> None:
    """
    Supprime un en-tête de commande.
    PostgREST répond 200 [] quand la RLS masque la ligne: une suppression sans
    ligne retournée est traitée comme un échec.
    """
    try:
        res = _client(user_token).table(ORDERS_TABLE).delete().eq("id", order_id).execute()
    except Exception as e:
        logger.exception("orders.repository.delete_order failed order_id=%s", order_id)
        raise PersistenceError("Suppression de la commande impossible", code="order_delete_failed") from e
    if not res.data:
        logger.error("orders.repository.delete_order no row deleted order_id=%s", order_id)
        raise PersistenceError("Suppression de la commande impossible", code="order_delete_no_row")

def get_order(order_id: str, *, user_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
    try:
        res = _client(user_token).table(ORDERS_TABLE).select("*").eq("id", order_id).limit(1).execute()
    except Exception as e:
        logger.exception("orders.repository.get_order failed order_id=%s", order_id)
        raise PersistenceError("Lecture de la commande impossible", code="order_read_failed") from e
    rows = res.data or []
    return rows[0] if rows else None

def get_order_by_correlation_id(correlation_id: str) -> Optional[Dict[str, Any]]:
    """
    Recherche par midtrans_order_id avec le client du webhook (aucun parent connecté).
    Retourne None si aucune commande ne porte cet identifiant.
    """
    try:
        res = (
            supabase_client.get_webhook_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .eq("midtrans_order_id", correlation_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.get_order_by_correlation_id failed correlation_id=%s", correlation_id)
        raise PersistenceError("Lecture de la commande impossible", code="order_read_failed") from e
    rows = res.data or []
    return rows[0] if rows else None

def update_order(order_id: str, fields: Dict[str, Any], *, user_token: Optional[str] = None) -> Dict[str, Any]:
    """Réécrit les champs donnés (écrasement complet, jamais d'incrément)."""
    try:
        res = _client(user_token).table(ORDERS_TABLE).update(fields).eq("id", order_id).execute()
        rows = res.data or []
    except Exception as e:
        logger.exception("orders.repository.update_order failed order_id=%s fields=%s", order_id, sorted(fields))
        raise PersistenceError("Mise à jour de la commande impossible", code="order_update_failed") from e
    return rows[0] if rows else {}

def advisory_update(order_id: str, fields: Dict[str, Any], *, user_token: Optional[str] = None, reason: str = "") -> bool:
    """
    Écriture « consultative »: son échec est journalisé puis ignoré.
    Sert à mémoriser midtrans_order_id / snap_token sans bloquer le paiement.
    Retourne True si l'écriture a abouti.
    """
    try:
        update_order(order_id, fields, user_token=user_token)
        return True
    except Exception:
        logger.warning(
            "orders.repository.advisory_update ignored failure order_id=%s fields=%s reason=%s",
            order_id, sorted(fields), reason,
        )
        return False

def list_line_items(order_id: str, *, user_token: Optional[str] = None) -> List[Dict[str, Any]]:
    """Lignes d'une commande avec le nom du plat (jointure menu_items)."""
    try:
        res = (
            _client(user_token)
            .table(LINE_ITEMS_TABLE)
            .select("*, menu_items(name)")
            .eq("order_id", order_id)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.list_line_items failed order_id=%s", order_id)
        raise PersistenceError("Lecture du détail de la commande impossible", code="line_items_read_failed") from e
    return res.data or []

def list_user_orders(user_id: str, *, user_token: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    """
    Commandes du parent, plus récentes d'abord, avec leurs lignes.
    - En cas d'erreur: liste vide
    """
    if not user_id:
        return []
    try:
        res = (
            _client(user_token)
            .table(ORDERS_TABLE)
            .select("*, order_line_items(*, menu_items(name))")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_user_orders failed user_id=%s", user_id)
        return []
