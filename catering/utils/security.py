from fastapi import Request, HTTPException, Depends
from typing import Dict, Any

from catering.auth import repository as auth_repository

COOKIE_NAME = "sb_access"

def bearer_or_cookie_token(request: Request) -> str | None:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME)
    return token

def get_current_user(request: Request) -> Dict[str, Any]:
    """
    Résout le parent connecté: {id, email, metadata, token}.
    - 401 si aucun token ou token refusé par Supabase Auth.
    """
    token = bearer_or_cookie_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")

    try:
        raw = auth_repository.get_user_from_access_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    if not raw.get("id"):
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    return {
        "id": raw.get("id"),
        "email": raw.get("email"),
        "metadata": raw.get("user_metadata") or {},
        "token": token,
    }

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user
