"""
Registre central des routers (API v1, health).
- API v1: orders, children, payments (create-payment + webhook Midtrans)
- Health: health_router
"""
from fastapi import FastAPI
from catering.orders import views as orders_views
from catering.children import views as children_views
from catering.payments import views as payments_views
from catering.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    - L'ordre n'a pas d'impact sauf conflits de chemins (évités par préfixes).
    """
    # API v1
    app.include_router(orders_views.router)
    app.include_router(children_views.router)
    app.include_router(payments_views.router)
    # Health & monitoring
    app.include_router(health_router)
