"""V1 REST API routes.

Combines all sub-routers under the ``/api/v1`` prefix.
"""

from fastapi import APIRouter

from push_relay.api.v1.admin import router as admin_router
from push_relay.api.v1.tokens import router as tokens_router
from push_relay.api.v1.webhooks import router as webhooks_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(webhooks_router)
v1_router.include_router(tokens_router)
v1_router.include_router(admin_router)

__all__ = ["v1_router"]
