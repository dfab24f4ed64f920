"""
Authorization codes.

A code is an HS256 JWT signed with the client's own secret. It is not stored
when issued; single-use is enforced at exchange time through its jti.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Union

import jwt
from loguru import logger

from auth_service.domain import AuthUser, Client, EmbeddedUserPayload, UserIdPayload
from auth_service.errors import InvalidCredentials

# Hooks for alternate code transport (e.g. wrapping the code in a one-time handle)
CodeWriter = Callable[[str], str]
CodeReader = Callable[[str], str]

CODE_ALGORITHM = "HS256"


def passthrough_code(code: str) -> str:
    return code


class AuthorizationCodeIssuer:
    """Mints short-lived codes binding a client to a user"""

    def __init__(self, issuer: str):
        self.issuer = issuer

    def issue(self, client_id: str, user_or_id: Union[AuthUser, str], client: Client) -> str:
        if isinstance(user_or_id, AuthUser):
            payload = EmbeddedUserPayload(client_id=client_id, user=user_or_id)
        else:
            payload = UserIdPayload(client_id=client_id, user_id=str(user_or_id))

        try:
            now = datetime.now(timezone.utc)
            claims = payload.to_claims()
            claims.update(
                {
                    "jti": secrets.token_hex(16),
                    "iat": now,
                    "exp": now + timedelta(seconds=client.auth_code_expiration),
                    "aud": client_id,
                    "iss": self.issuer,
                }
            )
            code = jwt.encode(claims, client.secret, algorithm=CODE_ALGORITHM)
        except Exception as e:
            logger.error(f"[CODE] Failed to sign code for client {client_id}: {type(e).__name__}: {e}")
            raise InvalidCredentials()

        logger.debug(f"[CODE] Issued code for client {client_id}, expires in {client.auth_code_expiration}s")
        return code
