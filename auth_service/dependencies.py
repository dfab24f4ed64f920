"""
FastAPI dependencies: container access, device info and the bearer gate.
"""

import re
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Header, Request
from loguru import logger

from auth_service.container import AuthContainer
from auth_service.domain import DeviceInfo
from auth_service.errors import TokenExpired, TokenInvalid, TokenRevoked

_BEARER_PREFIX = re.compile(r"^bearer\s+", re.IGNORECASE)


def get_container(request: Request) -> AuthContainer:
    return request.app.state.container


def get_device_info(request: Request) -> DeviceInfo:
    """device_id header (optional) and User-Agent, for audit only"""
    return DeviceInfo(
        device_id=request.headers.get("device_id") or request.headers.get("device-id"),
        user_agent=request.headers.get("user-agent"),
    )


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    token = _BEARER_PREFIX.sub("", authorization).strip()
    return token or None


async def verify_jwt_token(
    token: Optional[str] = Depends(get_bearer_token),
    container: AuthContainer = Depends(get_container),
) -> Dict[str, Any]:
    """
    Dependency: verify the bearer access token and return its claims.
    """
    if not token:
        raise TokenInvalid("Missing authorization token")

    if container.refresh_tokens.is_revoked(token):
        logger.warning("[BEARER] Revoked token presented")
        raise TokenRevoked()

    try:
        return container.exchanger.decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError as e:
        logger.warning(f"[BEARER] Invalid token: {e}")
        raise TokenInvalid()
