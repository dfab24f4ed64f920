"""
Federated login through external OIDC/OAuth2 providers (Google, Keycloak).

Two requests make one login:
  1. the user agent is redirected to the provider with state=client_id=<id>
  2. the provider calls back with a code; we exchange it, resolve the local
     user, mint our own authorization code and redirect to the client.

Nothing is held server-side between the two; state is the only correlation.
"""

from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qs, urlencode

import httpx
from loguru import logger

from auth_service.codes import AuthorizationCodeIssuer, CodeWriter, passthrough_code
from auth_service.config import AuthSettings, ProviderSettings
from auth_service.errors import AuthError, ClientInvalid, InvalidCredentials, ProviderNotConfigured
from auth_service.repository import ClientRepository
from auth_service.user_auth import UserAuthenticator


def build_state(client_id: str) -> str:
    return f"client_id={client_id}"


def client_id_from_state(state: Optional[str]) -> Optional[str]:
    if not state:
        return None
    values = parse_qs(state).get("client_id")
    return values[0] if values else None


class FederatedLoginBridge:
    """Drives provider redirects and re-enters code issuance on callback"""

    def __init__(
        self,
        settings: AuthSettings,
        clients: ClientRepository,
        user_auth: UserAuthenticator,
        code_issuer: AuthorizationCodeIssuer,
        code_writer: CodeWriter = passthrough_code,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = settings
        self.clients = clients
        self.user_auth = user_auth
        self.code_issuer = code_issuer
        self.code_writer = code_writer
        self.transport = transport

    def provider(self, name: str) -> ProviderSettings:
        provider = self.settings.provider(name)
        if not provider:
            raise ProviderNotConfigured(f"Provider {name} is not configured")
        return provider

    # ==================== STEP 1: REDIRECT ====================

    def authorization_redirect(self, provider_name: str, client_id: str) -> str:
        """URL that sends the user agent to the provider's consent page"""
        provider = self.provider(provider_name)
        params = {
            "client_id": provider.client_id,
            "redirect_uri": provider.callback_url,
            "response_type": "code",
            "scope": " ".join(provider.scopes),
            "state": build_state(client_id),
        }
        params.update(provider.extra_params)
        logger.info(f"[FEDERATED] Redirecting client {client_id} to {provider.name}")
        return f"{provider.authorization_url}?{urlencode(params)}"

    # ==================== STEP 2: CALLBACK ====================

    def handle_callback(self, provider_name: str, code: Optional[str], state: Optional[str]) -> str:
        """Finish a provider login. Returns the client redirect URL carrying our code."""
        provider = self.provider(provider_name)

        client_id = client_id_from_state(state)
        if not client_id:
            logger.warning(f"[FEDERATED] {provider.name} callback without client_id in state")
            raise ClientInvalid()
        client = self.clients.find_by_client_id(client_id)
        if not client or not client.redirect_url:
            logger.warning(f"[FEDERATED] {provider.name} callback for unusable client {client_id}")
            raise ClientInvalid()
        if not code:
            raise InvalidCredentials()

        tokens, profile = self._fetch_identity(provider, code)
        user = self.user_auth.authenticate_federated(
            provider,
            profile,
            external_auth_token=tokens.get("access_token"),
            external_refresh_token=tokens.get("refresh_token"),
        )

        try:
            our_code = self.code_writer(self.code_issuer.issue(client_id, user, client))
        except AuthError:
            raise
        except Exception as e:
            logger.error(f"[FEDERATED] Code writer failed: {type(e).__name__}: {e}")
            raise InvalidCredentials()

        separator = "&" if "?" in client.redirect_url else "?"
        logger.info(f"[FEDERATED] {provider.name} login for {user.username} redirecting to client {client_id}")
        return f"{client.redirect_url}{separator}code={our_code}"

    def _fetch_identity(self, provider: ProviderSettings, code: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Exchange the provider code and load the user profile"""
        try:
            with httpx.Client(timeout=self.settings.http_timeout, transport=self.transport) as http:
                token_response = http.post(
                    provider.token_url,
                    data={
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": provider.callback_url,
                        "client_id": provider.client_id,
                        "client_secret": provider.client_secret,
                    },
                    headers={"Accept": "application/json"},
                )
                token_response.raise_for_status()
                tokens = token_response.json()

                access_token = tokens.get("access_token") if isinstance(tokens, dict) else None
                if not access_token:
                    logger.error(f"[FEDERATED] {provider.name} token response has no access_token")
                    raise InvalidCredentials()

                userinfo_response = http.get(
                    provider.userinfo_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                userinfo_response.raise_for_status()
                profile = userinfo_response.json()
        except AuthError:
            raise
        except httpx.HTTPStatusError as e:
            logger.error(f"[FEDERATED] {provider.name} returned {e.response.status_code}: {e}")
            raise InvalidCredentials()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[FEDERATED] {provider.name} exchange failed: {type(e).__name__}: {e}")
            raise InvalidCredentials()

        if not isinstance(profile, dict):
            logger.error(f"[FEDERATED] {provider.name} userinfo is not an object")
            raise InvalidCredentials()
        return tokens, profile
