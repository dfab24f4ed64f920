"""
Data access layer for clients, users and tenant membership.

Repositories open one session per call and return detached domain objects,
so callers never hold on to ORM state.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

import bcrypt
from loguru import logger

from auth_service.domain import AuthUser, Client, UserStatus
from auth_service.errors import WrongPassword
from auth_service.models import AuthClient, Database, Tenant, User, UserTenant


# ==================== PASSWORD HASHING ====================

def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Verify password against hash"""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError as e:
        logger.error(f"[VERIFY] Malformed password hash: {e}")
        return False


# ==================== CLIENTS ====================

def _to_client(row: AuthClient) -> Client:
    return Client(
        id=row.id,
        client_id=row.client_id,
        secret=row.client_secret,
        auth_code_expiration=row.auth_code_expiration,
        access_token_expiration=row.access_token_expiration,
        refresh_token_expiration=row.refresh_token_expiration,
        redirect_url=row.redirect_url,
    )


class ClientRepository:
    """Read access to the client registry"""

    def __init__(self, db: Database):
        self.db = db

    def find_by_client_id(self, client_id: str) -> Optional[Client]:
        session = self.db.session()
        try:
            row = session.query(AuthClient).filter_by(client_id=client_id).first()
            return _to_client(row) if row else None
        finally:
            session.close()

    def create(
        self,
        client_id: str,
        secret: str,
        redirect_url: Optional[str] = None,
        auth_code_expiration: int = 60,
        access_token_expiration: int = 3600,
        refresh_token_expiration: int = 86400,
    ) -> Client:
        session = self.db.session()
        try:
            row = AuthClient(
                client_id=client_id,
                client_secret=secret,
                redirect_url=redirect_url,
                auth_code_expiration=auth_code_expiration,
                access_token_expiration=access_token_expiration,
                refresh_token_expiration=refresh_token_expiration,
            )
            session.add(row)
            session.commit()
            logger.info(f"[CLIENT] Registered client {client_id}")
            return _to_client(row)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# ==================== USERS ====================

class UserRepository:
    """User lookups, credential updates and login bookkeeping"""

    def __init__(self, db: Database):
        self.db = db

    def _to_auth_user(self, user: User, tenant_id: Optional[str] = None) -> AuthUser:
        tenant_id = tenant_id or user.default_tenant_id
        membership = None
        for user_tenant in user.user_tenants:
            if tenant_id is None or user_tenant.tenant_id == tenant_id:
                membership = user_tenant
                break
        return AuthUser(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            tenant_id=membership.tenant_id if membership else tenant_id,
            status=UserStatus(membership.status) if membership else None,
            auth_client_ids=[client.client_id for client in user.auth_clients],
        )

    def find_by_id(self, user_id: str, tenant_id: Optional[str] = None) -> Optional[AuthUser]:
        """Fetch a user with its default tenant (or the given tenant) resolved"""
        session = self.db.session()
        try:
            user = session.query(User).filter_by(id=user_id).first()
            return self._to_auth_user(user, tenant_id) if user else None
        finally:
            session.close()

    def find_by_username(self, username: str) -> Optional[AuthUser]:
        session = self.db.session()
        try:
            user = session.query(User).filter_by(username=username).first()
            return self._to_auth_user(user) if user else None
        finally:
            session.close()

    def find_by_email(self, email: str) -> Optional[AuthUser]:
        session = self.db.session()
        try:
            user = session.query(User).filter_by(email=email).first()
            return self._to_auth_user(user) if user else None
        finally:
            session.close()

    def verify_password(self, username: str, password: str) -> Optional[AuthUser]:
        """Return the user when the password matches, None otherwise"""
        session = self.db.session()
        try:
            user = session.query(User).filter_by(username=username).first()
            if not user:
                logger.warning(f"[LOGIN] User not found: {username}")
                return None
            if not verify_password(password, user.password_hash):
                logger.warning(f"[LOGIN] Password verification failed for: {username}")
                return None
            return self._to_auth_user(user)
        finally:
            session.close()

    # ==================== LOGIN BOOKKEEPING ====================

    def first_time_user(self, user_id: str) -> bool:
        session = self.db.session()
        try:
            user = session.query(User).filter_by(id=user_id).first()
            return bool(user) and user.first_login_at is None
        finally:
            session.close()

    def mark_first_login(self, user_id: str):
        self._touch_login(user_id, first=True)

    def update_last_login(self, user_id: str):
        self._touch_login(user_id, first=False)

    def _touch_login(self, user_id: str, first: bool):
        session = self.db.session()
        try:
            user = session.query(User).filter_by(id=user_id).first()
            if not user:
                return
            now = datetime.now(timezone.utc)
            if first:
                user.first_login_at = now
            user.last_login = now
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ==================== CREDENTIALS ====================

    def update_password(self, username: str, old_password: str, new_password: str) -> Optional[AuthUser]:
        """Verify the old password, then set the new one"""
        session = self.db.session()
        try:
            user = session.query(User).filter_by(username=username).first()
            if not user:
                return None
            if not verify_password(old_password, user.password_hash):
                logger.warning(f"[RESET_PWD] Old password mismatch for: {username}")
                raise WrongPassword()
            user.password_hash = hash_password(new_password)
            session.commit()
            return self._to_auth_user(user)
        except WrongPassword:
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def change_password(self, username: str, new_password: str) -> Optional[AuthUser]:
        """Set a new password without checking the old one"""
        session = self.db.session()
        try:
            user = session.query(User).filter_by(username=username).first()
            if not user:
                return None
            user.password_hash = hash_password(new_password)
            session.commit()
            return self._to_auth_user(user)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ==================== TENANTS ====================

    def find_user_tenant(self, user_id: str, tenant_id: Optional[str] = None) -> Optional[UserTenant]:
        session = self.db.session()
        try:
            query = session.query(UserTenant).filter_by(user_id=user_id)
            if tenant_id:
                query = query.filter_by(tenant_id=tenant_id)
            return query.first()
        finally:
            session.close()

    def set_tenant_status(self, user_id: str, tenant_id: str, status: UserStatus):
        session = self.db.session()
        try:
            user_tenant = session.query(UserTenant).filter_by(user_id=user_id, tenant_id=tenant_id).first()
            if user_tenant:
                user_tenant.status = int(status)
                session.commit()
                logger.info(f"[TENANT] User {user_id} set to {status.name} in tenant {tenant_id}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ==================== PROVISIONING ====================

    def create_tenant(self, name: str, tenant_id: Optional[str] = None) -> str:
        session = self.db.session()
        try:
            tenant = Tenant(name=name)
            if tenant_id:
                tenant.id = tenant_id
            session.add(tenant)
            session.commit()
            return tenant.id
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_user(
        self,
        username: str,
        password: Optional[str],
        tenant_id: str,
        email: Optional[str] = None,
        status: UserStatus = UserStatus.ACTIVE,
        client_ids: Iterable[str] = (),
        user_id: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> AuthUser:
        """Create a user, its tenant membership and its client links"""
        session = self.db.session()
        try:
            user = User(
                username=username,
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=hash_password(password) if password else None,
                default_tenant_id=tenant_id,
            )
            if user_id:
                user.id = user_id
            session.add(user)
            session.flush()

            session.add(UserTenant(user_id=user.id, tenant_id=tenant_id, status=int(status)))
            client_ids = list(client_ids)
            if client_ids:
                user.auth_clients = session.query(AuthClient).filter(AuthClient.client_id.in_(client_ids)).all()
            session.commit()
            session.refresh(user)

            logger.info(f"[USER] Created user {username} in tenant {tenant_id}")
            return self._to_auth_user(user)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
