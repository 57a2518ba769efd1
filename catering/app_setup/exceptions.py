"""
Gestionnaires d'exceptions utilisés par la factory.
- CateringError: JSON {detail, code} avec le statut porté par l'erreur.
- HTTPException: JSON {detail} inchangé pour les clients programmatiques.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from catering.errors import CateringError, PersistenceError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CateringError)
    async def catering_error_handler(request: Request, exc: CateringError):
        if isinstance(exc, PersistenceError):
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
