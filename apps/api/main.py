# FastAPI entrypoint for the authentication service
#
#   uvicorn apps.api.main:create_app --factory

import os
from typing import Optional

import dotenv
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from auth_service.config import AuthSettings
from auth_service.container import AuthContainer, build_container
from auth_service.errors import AuthError
from auth_service.routes import auth_error_handler, build_router
from auth_service.security_middleware import SecurityHeadersMiddleware, SecurityLoggingMiddleware

dotenv.load_dotenv()


def _cors_origins():
    raw = os.getenv("CORS_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app(container: Optional[AuthContainer] = None) -> FastAPI:
    """Build the API. Without a container, settings are read from the environment."""
    if container is None:
        container = build_container(AuthSettings.from_env())

    app = FastAPI(
        title="Authentication Service",
        description="Login, authorization code exchange, token refresh and federated login",
        version="1.0.0",
    )
    app.state.container = container

    # ==================== MIDDLEWARE STACK ====================

    app.add_middleware(SecurityLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    origins = _cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "device_id"],
        )

    # ==================== ROUTES ====================

    app.add_exception_handler(AuthError, auth_error_handler)
    app.include_router(build_router(container.settings))  # /auth

    base = APIRouter()

    @base.get("/health")
    async def health_check():
        return {"status": "healthy", "providers": sorted(container.settings.providers)}

    app.include_router(base)

    logger.info(
        f"✓ Auth API ready (providers: {', '.join(sorted(container.settings.providers)) or 'none'})"
    )
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app, factory=True, host="0.0.0.0", port=int(os.getenv("PORT", "3000")))
