"""
Pydantic request/response schemas for the /auth endpoints.

Wire names follow the existing clients (client_id, clientId, refreshToken...),
Python attributes are snake_case.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============ Request Schemas ============

class LoginRequest(_WireModel):
    client_id: str
    client_secret: Optional[str] = None
    username: str
    password: str


class AuthTokenRequest(_WireModel):
    code: str
    client_id: str = Field(..., alias="clientId")


class AuthRefreshTokenRequest(_WireModel):
    refresh_token: str = Field(..., alias="refreshToken")


class ResetPasswordRequest(_WireModel):
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    username: str
    password: Optional[str] = None
    old_password: Optional[str] = Field(None, alias="oldPassword")


# ============ Response Schemas ============

class CodeResponse(_WireModel):
    code: str


class TokenResponse(_WireModel):
    """
    Token pair. expires is an absolute epoch timestamp in milliseconds.

    Example:
        {"accessToken": "eyJ...", "refreshToken": "9f2c...", "expires": 1767225600000}
    """
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    expires: int


class SuccessResponse(_WireModel):
    success: bool
