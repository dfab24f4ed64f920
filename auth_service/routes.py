"""
FastAPI authentication endpoints.

Routes are declared in one table (AUTH_ROUTES) and mounted by build_router;
handlers only gate the request and call into the container's components.
"""

from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger

from auth_service.config import AuthSettings
from auth_service.container import AuthContainer
from auth_service.dependencies import get_bearer_token, get_container, get_device_info, verify_jwt_token
from auth_service.errors import AuthError, InvalidCredentials
from auth_service.schemas import (
    AuthRefreshTokenRequest,
    AuthTokenRequest,
    CodeResponse,
    LoginRequest,
    ResetPasswordRequest,
    SuccessResponse,
    TokenResponse,
)


@contextmanager
def auth_failures(tag: str):
    """Let classified errors through; anything else becomes InvalidCredentials"""
    try:
        yield
    except AuthError:
        raise
    except Exception as e:
        logger.error(f"[{tag}] Unexpected error: {type(e).__name__}: {e}")
        raise InvalidCredentials()


def _token_response(pair) -> TokenResponse:
    return TokenResponse(access_token=pair.access_token, refresh_token=pair.refresh_token, expires=pair.expires)


async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.key, "message": exc.message})


# ==================== LOGIN ====================

async def login(data: LoginRequest, container: AuthContainer = Depends(get_container)):
    """Gets you the code that will be used for getting token (webapps)"""
    with auth_failures("LOGIN"):
        client = container.client_auth.verify(data.client_id, data.client_secret)
        user = container.user_auth.authenticate_local(data.username, data.password)
        container.user_auth.ensure_active(user)
        code = container.code_issuer.issue(data.client_id, user.id, client)
        logger.info(f"[LOGIN] Code issued for {data.username} via client {data.client_id}")
        return CodeResponse(code=code)


async def login_token(data: LoginRequest, request: Request, container: AuthContainer = Depends(get_container)):
    """Gets you refresh token and access token in one hit (mobile app)"""
    with auth_failures("LOGIN"):
        client = container.client_auth.verify(data.client_id, data.client_secret)
        user = container.user_auth.authenticate_resource_owner(client, data.username, data.password)
        container.user_auth.ensure_active(user)
        pair = container.exchanger.login_with_user(client, user, get_device_info(request))
        return _token_response(pair)


# ==================== TOKENS ====================

async def get_token(data: AuthTokenRequest, request: Request, container: AuthContainer = Depends(get_container)):
    """Exchange the code from /auth/login for refresh and access tokens (webapps)"""
    with auth_failures("TOKEN"):
        pair = container.exchanger.exchange_code(data.client_id, data.code, get_device_info(request))
        return _token_response(pair)


async def exchange_token(
    data: AuthRefreshTokenRequest, request: Request, container: AuthContainer = Depends(get_container)
):
    """New access and refresh token once the access token is expired"""
    with auth_failures("REFRESH"):
        pair = container.refresh_tokens.exchange_token(
            data.refresh_token, get_device_info(request), container.exchanger
        )
        return _token_response(pair)


# ==================== FEDERATED ====================

def _start_federated(container: AuthContainer, provider: str, client_id: str, client_secret: Optional[str]):
    with auth_failures("FEDERATED"):
        container.federated.provider(provider)
        container.client_auth.verify(client_id, client_secret)
        return RedirectResponse(container.federated.authorization_redirect(provider, client_id), status_code=302)


def _finish_federated(container: AuthContainer, provider: str, code: Optional[str], state: Optional[str]):
    with auth_failures("FEDERATED"):
        return RedirectResponse(container.federated.handle_callback(provider, code, state), status_code=302)


def federated_login(provider: str) -> Callable:
    async def handler(
        client_id: str = Form(...),
        client_secret: Optional[str] = Form(None),
        container: AuthContainer = Depends(get_container),
    ):
        return _start_federated(container, provider, client_id, client_secret)

    handler.__name__ = f"post_login_via_{provider}"
    handler.__doc__ = f"POST call for {provider} based login"
    return handler


def deprecated_federated_login(provider: str) -> Callable:
    async def handler(
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        container: AuthContainer = Depends(get_container),
    ):
        logger.warning(f"[FEDERATED] Deprecated GET login used for {provider} by client {client_id}")
        return _start_federated(container, provider, client_id, client_secret)

    handler.__name__ = f"login_via_{provider}"
    handler.__doc__ = "Deprecated: the client secret travels in the query string, use the POST endpoint"
    return handler


def federated_callback(provider: str) -> Callable:
    async def handler(
        code: Optional[str] = None,
        state: Optional[str] = None,
        container: AuthContainer = Depends(get_container),
    ):
        return _finish_federated(container, provider, code, state)

    handler.__name__ = f"{provider}_callback"
    return handler


def federated_form_callback(provider: str) -> Callable:
    async def handler(
        code: Optional[str] = Form(None),
        state: Optional[str] = Form(None),
        container: AuthContainer = Depends(get_container),
    ):
        return _finish_federated(container, provider, code, state)

    handler.__name__ = f"{provider}_form_callback"
    return handler


# ==================== SESSION ====================

async def change_password(
    data: ResetPasswordRequest,
    token: Optional[str] = Depends(get_bearer_token),
    current_user: Dict[str, Any] = Depends(verify_jwt_token),
    container: AuthContainer = Depends(get_container),
):
    """Change the password of the current session's user and end the session"""
    with auth_failures("RESET_PWD"):
        result = container.password_reset.reset_password(
            bearer_token=token,
            refresh_token=data.refresh_token,
            username=data.username,
            password=data.password,
            old_password=data.old_password,
            current_user=current_user,
        )
        return SuccessResponse(**result)


async def me(current_user: Dict[str, Any] = Depends(verify_jwt_token)):
    """To get the user details"""
    user = dict(current_user)
    user.pop("deviceInfo", None)
    return user


# ==================== ROUTE TABLE ====================

# (method, path, handler, extra add_api_route kwargs)
RouteEntry = Tuple[str, str, Callable, Dict[str, Any]]

AUTH_ROUTES: List[RouteEntry] = [
    ("POST", "/login", login, {"response_model": CodeResponse}),
    ("POST", "/login-token", login_token, {"response_model": TokenResponse}),
    ("POST", "/token", get_token, {"response_model": TokenResponse}),
    ("POST", "/token-refresh", exchange_token, {"response_model": TokenResponse}),
    ("POST", "/google", federated_login("google"), {}),
    ("GET", "/google-auth-redirect", federated_callback("google"), {}),
    ("POST", "/google-auth-redirect", federated_form_callback("google"), {}),
    ("POST", "/keycloak", federated_login("keycloak"), {}),
    ("GET", "/keycloak-auth-redirect", federated_callback("keycloak"), {}),
    ("POST", "/keycloak-auth-redirect", federated_form_callback("keycloak"), {}),
    ("PATCH", "/change-password", change_password, {"response_model": SuccessResponse}),
    ("GET", "/me", me, {}),
]

DEPRECATED_ROUTES: List[RouteEntry] = [
    ("GET", "/google", deprecated_federated_login("google"), {"deprecated": True, "include_in_schema": False}),
    ("GET", "/keycloak", deprecated_federated_login("keycloak"), {"deprecated": True, "include_in_schema": False}),
]


def build_router(settings: AuthSettings) -> APIRouter:
    router = APIRouter(prefix="/auth", tags=["auth"])
    routes = list(AUTH_ROUTES)
    if settings.enable_deprecated_get_login:
        logger.warning("[ROUTES] Deprecated GET federated login endpoints are enabled")
        routes.extend(DEPRECATED_ROUTES)
    for method, path, handler, extra in routes:
        router.add_api_route(path, handler, methods=[method], **extra)
    return router
