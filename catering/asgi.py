"""
ASGI entrypoint: expose `app` for process managers / deployments.

- En production, un process manager (ex: gunicorn/uvicorn-workers) importe `catering.asgi:app`.
- Toute la configuration FastAPI (routers, middlewares, exceptions, lifespan) est dans
  catering.app_setup.factory; ce fichier ne fait qu'exposer l'instance `app`.
"""

from catering.app_setup.factory import create_app

app = create_app()
