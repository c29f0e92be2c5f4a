"""Relational storage for the deployment registry."""

import logging
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    create_engine,
    event,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import database_url_from_env
from .constants import DEFAULT_POOL_SIZE
from .exceptions import StorageError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Aware UTC datetimes, stored naive so SQLite round-trips them."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    pass


class NetworkRecord(Base):
    __tablename__ = "networks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    rpc_url: Mapped[str] = mapped_column(Text, nullable=False)
    explorer_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )


class ContractRecord(Base):
    __tablename__ = "contracts"
    __table_args__ = (UniqueConstraint("name", "bytecode_hash", name="uq_contracts_name_hash"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    source_path: Mapped[str] = mapped_column(Text, nullable=False)
    abi: Mapped[str] = mapped_column(Text, nullable=False)
    bytecode_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )


class DeploymentRecord(Base):
    """
    One deployment row.

    At most one row per (contract_id, network_id) may be current; the
    partial unique index enforces it on SQLite and PostgreSQL.
    """

    __tablename__ = "deployments"
    __table_args__ = (
        UniqueConstraint("network_id", "address", name="uq_deployments_network_address"),
        Index(
            "uq_deployments_current",
            "contract_id",
            "network_id",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
        Index("ix_deployments_contract_network", "contract_id", "network_id", "version"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id"), nullable=False)
    network_id: Mapped[int] = mapped_column(ForeignKey("networks.id"), nullable=False)
    address: Mapped[str] = mapped_column(String(42), nullable=False)
    deployer: Mapped[str] = mapped_column(String(42), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), unique=True, nullable=False)
    block_number: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    constructor_args: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deployed_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )


class CallHistoryRecord(Base):
    """
    One contract call or transaction made through smolder.

    Wallets live outside the registry, so wallet_id is a plain nullable
    column rather than a foreign key.
    """

    __tablename__ = "call_history"
    __table_args__ = (
        CheckConstraint("call_type IN ('read', 'write')", name="ck_call_history_call_type"),
        CheckConstraint(
            "status IS NULL OR status IN ('pending', 'success', 'failed', 'reverted')",
            name="ck_call_history_status",
        ),
        Index("ix_call_history_deployment", "deployment_id"),
        Index("ix_call_history_wallet", "wallet_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    deployment_id: Mapped[int] = mapped_column(ForeignKey("deployments.id"), nullable=False)
    wallet_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    function_name: Mapped[str] = mapped_column(String(256), nullable=False)
    function_signature: Mapped[str] = mapped_column(Text, nullable=False)
    input_params: Mapped[str] = mapped_column(Text, nullable=False)
    call_type: Mapped[str] = mapped_column(String(8), nullable=False)
    result: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tx_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    block_number: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    gas_used: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    gas_price: Mapped[Optional[str]] = mapped_column(String(78), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def _create_engine(url: str, pool_size: int) -> Engine:
    parsed = make_url(url)

    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, pool_size=pool_size, max_overflow=0, pool_pre_ping=True)

    if _is_memory_sqlite(url):
        # Every session must see the same in-memory database
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, pool_size=pool_size, max_overflow=0)

    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class Database:
    """
    Engine, bounded connection pool and session factory for the registry.

    An in-memory SQLite database has a single shared connection, so its
    sessions are serialized with a lock; one thread's commit or rollback
    never lands in the middle of another thread's session.
    """

    def __init__(self, url: Optional[str] = None, pool_size: int = DEFAULT_POOL_SIZE):
        """
        Initialize storage.

        Args:
            url: SQLAlchemy database URL
                 If None, uses SMOLDER_DATABASE_URL or ./.smolder/smolder.db
            pool_size: Maximum number of pooled connections
        """
        self.url = url or database_url_from_env()
        self.engine = _create_engine(self.url, pool_size)
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._lock = threading.RLock() if _is_memory_sqlite(self.url) else None

    @property
    def is_serialized(self) -> bool:
        """Whether sessions take turns on one shared connection."""
        return self._lock is not None

    def init_schema(self) -> None:
        """Create tables and indexes that do not exist yet."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to initialize schema: {e}") from e
        logger.debug("Schema ready at %s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Open a session that commits on success and rolls back on error.

        Raises:
            StorageError: If the database reports an error
        """
        with self._lock if self._lock is not None else nullcontext():
            session = self._sessions()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise StorageError(f"Database error: {e}") from e
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

    def dispose(self) -> None:
        self.engine.dispose()
