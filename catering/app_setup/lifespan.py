"""
Lifespan FastAPI: initialisation/arrêt du rate limiting.
Variables d'environnement:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: aucune connexion Redis (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: fakeredis en mémoire
  - RATE_LIMIT_REDIS_URL: URL Redis (défaut redis://127.0.0.1:6379/0)
  - LOCAL_RATE_LIMIT_FALLBACK=1: fallback mémoire si l'init échoue
"""
import os
import logging
import redis.asyncio as redis
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

try:
    from fakeredis.aioredis import FakeRedis  # tests only
except ImportError:
    FakeRedis = None

logger = logging.getLogger("uvicorn.error")

def _make_redis():
    """Retourne (client, nom du backend) selon l'environnement."""
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
        if not FakeRedis:
            raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 mais fakeredis n'est pas installé.")
        return FakeRedis(decode_responses=True), "fakeredis"
    redis_url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
    return redis.from_url(redis_url, encoding="utf-8", decode_responses=True), "redis"

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Démarrage: FastAPILimiter sur Redis (ou fakeredis).
    - Échec sans fallback: rate limiting désactivé, les paiements restent possibles.
    Arrêt: fermeture de la connexion Redis si elle a été ouverte.
    """
    initialized = False
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
    else:
        try:
            client, backend = _make_redis()
            await FastAPILimiter.init(client)
            app.state.rate_limit_enabled = True
            app.state.rate_limit_backend = backend
            initialized = True
            logger.info("Rate limiting enabled (backend=%s)", backend)
        except Exception as e:
            app.state.rate_limit_enabled = os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1"
            if app.state.rate_limit_enabled:
                logger.warning("Rate limiting falling back to local in-memory due to init error: %s", e)
            else:
                logger.warning("Rate limiting disabled due to init error: %s", e)

    yield

    if initialized:
        try:
            await FastAPILimiter.close()
        except Exception as e:
            logger.warning("Rate limiting shutdown error: %s", e)
