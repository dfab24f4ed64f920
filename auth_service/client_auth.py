"""
Client authentication against the client registry.
"""

import secrets
from typing import Optional

from loguru import logger

from auth_service.domain import Client
from auth_service.errors import ClientInvalid, ClientSecretMissing
from auth_service.repository import ClientRepository


class ClientAuthenticator:
    """Validates client_id / client_secret pairs"""

    def __init__(self, clients: ClientRepository):
        self.clients = clients

    def verify(self, client_id: Optional[str], client_secret: Optional[str]) -> Client:
        if not client_id:
            raise ClientInvalid()
        if not client_secret:
            logger.warning(f"[CLIENT] Secret missing for client {client_id}")
            raise ClientSecretMissing()

        client = self.clients.find_by_client_id(client_id)
        if not client:
            logger.warning(f"[CLIENT] Unknown client: {client_id}")
            raise ClientInvalid()

        # The secret doubles as the code signing key, so it is stored as-is.
        if not secrets.compare_digest(client.secret.encode("utf-8"), client_secret.encode("utf-8")):
            logger.warning(f"[CLIENT] Secret mismatch for client {client_id}")
            raise ClientInvalid()

        return client
