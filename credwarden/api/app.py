"""FastAPI application factory for credwarden."""

from typing import Callable

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from credwarden import __description__
from credwarden.api.routes import accounts_router, auth_router, security_router
from credwarden.exceptions import ConflictError


def create_app(base_url: str = "/", lifespan: Callable | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        base_url: Base URL prefix for all routes (for reverse proxy support).
        lifespan: Optional lifespan context manager for the application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Credwarden",
        description=__description__,
        root_path=base_url.rstrip("/") if base_url != "/" else "",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        """Concurrent update of the same account."""
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Credwarden API"}

    app.include_router(auth_router)
    app.include_router(accounts_router)
    app.include_router(security_router)

    return app
