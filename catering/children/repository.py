"""
Registre des enfants (table children), en lecture seule.
Chaque parent ne voit que ses enfants: filtre user_id + RLS via le token utilisateur.
"""
from typing import Any, Dict, List, Optional
import logging

import catering.infra.supabase_client as supabase_client
from catering.errors import PersistenceError

logger = logging.getLogger(__name__)

CHILDREN_TABLE = "children"


def _client(user_token: Optional[str] = None):
    if user_token:
        return supabase_client.get_user_supabase(user_token)
    return supabase_client.get_service_supabase()

def list_children(user_id: str, *, user_token: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Enfants du parent, triés par nom.
    - En cas d'erreur: liste vide
    """
    if not user_id:
        return []
    try:
        res = (
            _client(user_token)
            .table(CHILDREN_TABLE)
            .select("id, name, class_name")
            .eq("user_id", user_id)
            .order("name")
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("children.repository.list_children failed user_id=%s", user_id)
        return []

def get_child_for_user(child_id: str, user_id: str, *, user_token: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Retourne l'enfant s'il appartient au parent, None sinon.
    Lecture critique (validation du checkout): une panne du store lève PersistenceError.
    """
    try:
        res = (
            _client(user_token)
            .table(CHILDREN_TABLE)
            .select("id, name, class_name")
            .eq("id", child_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.exception("children.repository.get_child_for_user failed child_id=%s", child_id)
        raise PersistenceError("Lecture des enfants impossible", code="children_read_failed") from e
    rows = res.data or []
    return rows[0] if rows else None
