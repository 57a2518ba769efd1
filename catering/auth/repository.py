from typing import Any, Dict
import catering.infra.supabase_client as supabase_client

# --- Auth (supabase.auth.*) ---
# La gestion des sessions (login, signup, reset) vit dans le front Supabase;
# le backend se contente de résoudre le parent derrière un access_token.

def get_user_from_access_token(access_token: str) -> Dict[str, Any]:
    """Récupère et normalise l'utilisateur depuis supabase.auth.get_user(access_token)."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    user = getattr(res, "user", None) or {}
    if not isinstance(user, dict):
        user = {
            "id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "user_metadata": getattr(user, "user_metadata", None),
        }
    return user or {}
