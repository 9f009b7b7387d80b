"""Root API router for v1 endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from orderflow.api.v1 import auth, health, orders, payments, projects, quotes, referrals
from orderflow.core.config import get_config

api_router = APIRouter(prefix=get_config().API_PREFIX)
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(quotes.router)
api_router.include_router(projects.router)
api_router.include_router(payments.router)
api_router.include_router(orders.router)
api_router.include_router(referrals.router)


def get_api_router() -> APIRouter:
    return api_router
