"""Mounts every resource router under ``/api``."""
from fastapi import APIRouter, FastAPI

from realty.api.routes import admin, auth, health, properties, transactions

_ROUTERS: tuple[tuple[APIRouter, str, str], ...] = (
    (health.router, "", "health"),
    (auth.router, "/auth", "auth"),
    (properties.router, "", "properties"),
    (transactions.router, "", "transactions"),
    (admin.router, "", "admin"),
)


def register_routes(application: FastAPI, *, prefix: str = "/api") -> None:
    api_router = APIRouter(prefix=prefix)
    for router, router_prefix, tag in _ROUTERS:
        api_router.include_router(router, prefix=router_prefix, tags=[tag])
    application.include_router(api_router)


__all__ = ["register_routes"]
