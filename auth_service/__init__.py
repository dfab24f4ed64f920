"""Authentication service: client/user login, code exchange, refresh rotation and federated login."""

from auth_service.config import AuthSettings, ProviderSettings
from auth_service.container import AuthContainer, build_container
from auth_service.errors import AuthError

__all__ = ['AuthContainer', 'AuthError', 'AuthSettings', 'ProviderSettings', 'build_container']
