"""
SQLAlchemy models for clients, users and tenant membership.
"""

import uuid
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class AuthClient(Base):
    """Registered OAuth client applications"""

    __tablename__ = "auth_clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String(100), unique=True, nullable=False, index=True)
    client_secret = Column(String(255), nullable=False)
    redirect_url = Column(String(500), nullable=True)
    auth_code_expiration = Column(Integer, nullable=False, default=60)
    access_token_expiration = Column(Integer, nullable=False, default=3600)
    refresh_token_expiration = Column(Integer, nullable=False, default=86400)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    users = relationship("User", secondary="user_auth_clients", back_populates="auth_clients")


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class User(Base):
    """User accounts"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    first_name = Column(String(255))
    last_name = Column(String(255))
    password_hash = Column(String(255), nullable=True)  # federated-only users have none
    default_tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=True)

    first_login_at = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    default_tenant = relationship("Tenant")
    user_tenants = relationship("UserTenant", back_populates="user")
    auth_clients = relationship("AuthClient", secondary="user_auth_clients", back_populates="users")


class UserTenant(Base):
    """Membership of a user in a tenant, with its status"""

    __tablename__ = "user_tenants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    status = Column(Integer, nullable=False, default=0)  # UserStatus
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    user = relationship("User", back_populates="user_tenants")


class UserAuthClient(Base):
    """Association table: which clients a user may log in through"""

    __tablename__ = "user_auth_clients"

    user_id = Column(String(36), ForeignKey("users.id"), primary_key=True)
    auth_client_id = Column(Integer, ForeignKey("auth_clients.id"), primary_key=True)
    assigned_at = Column(DateTime(timezone=True), default=_utcnow)


class Database:
    """
    Owns the engine and session factory.

    Usage:
        db = Database("sqlite:///./auth.db")
        db.init_database()
        session = db.session()
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            self.engine = create_engine(url, echo=echo, **kwargs)
        else:
            self.engine = create_engine(url, echo=echo, pool_size=10, max_overflow=20, pool_pre_ping=True)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        logger.info(f"Database engine created for {self.engine.url.drivername}")

    def session(self):
        return self._session_factory()

    def init_database(self):
        """Create missing tables (idempotent)"""
        Base.metadata.create_all(self.engine, checkfirst=True)
        logger.info("Database schema ready")
