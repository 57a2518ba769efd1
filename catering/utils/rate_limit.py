"""
Limitation de débit des endpoints d'écriture (checkout, relance, create-payment).

- fastapi-limiter (Redis) quand le lifespan l'a initialisé
- fallback mémoire par processus si LOCAL_RATE_LIMIT_FALLBACK=1 (dev/tests)
- rien si app.state.rate_limit_enabled est False ou si Redis tombe en cours de route
"""
from typing import Dict, Any
from fastapi import Request, HTTPException
import os
import time
import hashlib
from catering.utils.security import bearer_or_cookie_token

KEY_PREFIX = "catering:rl"

def rate_limit_key(request: Request) -> str:
    """Clé par parent (token hashé, jamais en clair) et par chemin; IP à défaut de token."""
    token = bearer_or_cookie_token(request)
    path = request.url.path
    if token:
        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"{KEY_PREFIX}:user:{digest}:{path}"
    ip = request.client.host if request.client else "local"
    return f"{KEY_PREFIX}:ip:{ip}:{path}"

def _local_hit(request: Request, key: str, times: int, seconds: int) -> None:
    now = time.time()
    store = getattr(request.app.state, "_rl_store", None)
    if store is None:
        store = {}
        request.app.state._rl_store = store
    hits = [t for t in store.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        raise HTTPException(status_code=429, detail="Trop de requêtes, réessayez dans un instant")
    hits.append(now)
    store[key] = hits

def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request):
        key = rate_limit_key(request)

        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            _local_hit(request, key, times, seconds)
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        try:
            from fastapi_limiter.depends import RateLimiter

            async def _identifier(req: Request) -> str:
                return key
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request)
        except HTTPException:
            raise
        except Exception:
            # Redis indisponible: on laisse passer plutôt que de bloquer un paiement
            return
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    try:
        from fastapi_limiter import FastAPILimiter
        limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    except Exception:
        limiter_ready = False

    if limiter_ready:
        backend = getattr(request.app.state, "rate_limit_backend", None) or "redis"
    elif os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
        backend = "memory"
    else:
        backend = None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": backend,
    }
