"""
Typed authentication errors.

Each error carries the HTTP status and the message key the API returns.
Anything that is not an AuthError is treated as unexpected and reported
to callers as InvalidCredentials.
"""


class AuthError(Exception):
    """Base class for classified auth failures"""

    status_code = 401
    key = "Unauthorized"

    def __init__(self, message: str = None):
        super().__init__(message or self.key)
        self.message = message or self.key


class ClientInvalid(AuthError):
    status_code = 401
    key = "ClientInvalid"


class ClientSecretMissing(AuthError):
    status_code = 400
    key = "ClientSecretMissing"


class ClientUserMissing(AuthError):
    status_code = 422
    key = "ClientUserMissing"


class CodeExpired(AuthError):
    status_code = 401
    key = "CodeExpired"


class InvalidCredentials(AuthError):
    status_code = 401
    key = "InvalidCredentials"


class TokenExpired(AuthError):
    status_code = 401
    key = "TokenExpired"


class TokenInvalid(AuthError):
    status_code = 401
    key = "TokenInvalid"


class TokenRevoked(AuthError):
    status_code = 401
    key = "TokenRevoked"


class TokenMissing(AuthError):
    status_code = 422
    key = "TokenMissing"


class NotAllowedAccess(AuthError):
    status_code = 403
    key = "NotAllowedAccess"


class PasswordInvalid(AuthError):
    status_code = 400
    key = "PasswordInvalid"


class WrongPassword(AuthError):
    status_code = 401
    key = "WrongPassword"


class UnableToSetPassword(AuthError):
    status_code = 422
    key = "UnableToSetPassword"


class UserDoesNotExist(AuthError):
    status_code = 401
    key = "UserDoesNotExist"


class UserInactive(AuthError):
    status_code = 401
    key = "UserInactive"


class ProviderNotConfigured(AuthError):
    status_code = 404
    key = "ProviderNotConfigured"


class UserNotActive(AuthError):
    """Tenant membership exists but sign-up is still being processed"""

    status_code = 400
    key = "UserNotActive"
