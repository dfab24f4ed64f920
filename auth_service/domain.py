"""
Plain data objects shared by the auth components.

These are detached from the ORM so they can cross session boundaries and be
embedded in signed codes or cached refresh-token records.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Union


class UserStatus(IntEnum):
    """Per-tenant user status. Order matters: REGISTERED < ACTIVE."""

    REGISTERED = 0
    ACTIVE = 1
    INACTIVE = 2


@dataclass(frozen=True)
class Client:
    client_id: str
    secret: str
    auth_code_expiration: int
    access_token_expiration: int
    refresh_token_expiration: int
    redirect_url: Optional[str] = None
    id: Optional[int] = None


@dataclass
class DeviceInfo:
    device_id: Optional[str] = None
    user_agent: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"deviceId": self.device_id, "userAgent": self.user_agent}


@dataclass
class AuthUser:
    """Authenticated identity, resolved by one of the user strategies"""

    id: str
    username: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    tenant_id: Optional[str] = None
    status: Optional[UserStatus] = None
    auth_client_ids: List[str] = field(default_factory=list)
    external_auth_token: Optional[str] = None
    external_refresh_token: Optional[str] = None

    def to_claims(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "tenantId": self.tenant_id,
            "status": int(self.status) if self.status is not None else None,
            "authClientIds": list(self.auth_client_ids),
            "externalAuthToken": self.external_auth_token,
            "externalRefreshToken": self.external_refresh_token,
        }

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "AuthUser":
        status = claims.get("status")
        return cls(
            id=claims["id"],
            username=claims["username"],
            email=claims.get("email"),
            first_name=claims.get("firstName"),
            last_name=claims.get("lastName"),
            tenant_id=claims.get("tenantId"),
            status=UserStatus(status) if status is not None else None,
            auth_client_ids=list(claims.get("authClientIds") or []),
            external_auth_token=claims.get("externalAuthToken"),
            external_refresh_token=claims.get("externalRefreshToken"),
        )


@dataclass(frozen=True)
class UserIdPayload:
    """Code payload that references the user by id"""

    client_id: str
    user_id: str

    def to_claims(self) -> Dict[str, Any]:
        return {"clientId": self.client_id, "userId": self.user_id}


@dataclass(frozen=True)
class EmbeddedUserPayload:
    """Code payload that carries the whole authenticated user"""

    client_id: str
    user: AuthUser

    def to_claims(self) -> Dict[str, Any]:
        return {"clientId": self.client_id, "user": self.user.to_claims()}


CodePayload = Union[UserIdPayload, EmbeddedUserPayload]


def payload_from_claims(claims: Dict[str, Any]) -> CodePayload:
    """Resolve decoded code claims into one of the two payload variants"""
    client_id = claims.get("clientId")
    if not client_id:
        raise ValueError("code payload has no clientId")
    if claims.get("user"):
        return EmbeddedUserPayload(client_id=client_id, user=AuthUser.from_claims(claims["user"]))
    if claims.get("userId"):
        return UserIdPayload(client_id=client_id, user_id=str(claims["userId"]))
    raise ValueError("code payload has neither user nor userId")


@dataclass(frozen=True)
class RefreshTokenRecord:
    client_id: str
    user_id: str
    username: str
    access_token: str
    external_auth_token: Optional[str] = None
    external_refresh_token: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clientId": self.client_id,
            "userId": self.user_id,
            "username": self.username,
            "accessToken": self.access_token,
            "externalAuthToken": self.external_auth_token,
            "externalRefreshToken": self.external_refresh_token,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefreshTokenRecord":
        return cls(
            client_id=data["clientId"],
            user_id=data["userId"],
            username=data["username"],
            access_token=data["accessToken"],
            external_auth_token=data.get("externalAuthToken"),
            external_refresh_token=data.get("externalRefreshToken"),
        )


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    # absolute epoch milliseconds
    expires: int
