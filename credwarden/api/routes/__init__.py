"""API routes for credwarden."""

from credwarden.api.routes.accounts import router as accounts_router
from credwarden.api.routes.auth import router as auth_router
from credwarden.api.routes.security import router as security_router

__all__ = [
    "accounts_router",
    "auth_router",
    "security_router",
]
