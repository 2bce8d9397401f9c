"""SQL provider store (SQLAlchemy async).

Supports SQLite through ``aiosqlite`` and PostgreSQL through ``asyncpg``.
Each write runs in its own transaction, which gives the health monitor the
per-row atomic update it relies on.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Integer, String, TypeDecorator, Uuid, delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from provider_manager.errors import ProviderConflictError, ProviderNotFoundError
from provider_manager.store.models import HealthStatus, ProviderRecord, as_utc, utcnow

logger = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator):
    """Stores datetimes as naive UTC and returns them as aware UTC.

    SQLite has no timezone support, so values are normalised on the way in
    and re-tagged on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return as_utc(value)


class Base(DeclarativeBase):
    pass


class ProviderRow(Base):
    __tablename__ = "providers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    service_type: Mapped[str] = mapped_column(String(255), nullable=False)
    schema_version: Mapped[str] = mapped_column(String(64), nullable=False)
    endpoint: Mapped[str] = mapped_column(String(2048), nullable=False)
    create_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    update_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    health_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=HealthStatus.READY.value
    )
    consecutive_failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_health_check: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True, index=True
    )

    def to_record(self) -> ProviderRecord:
        return ProviderRecord(
            id=self.id,
            name=self.name,
            service_type=self.service_type,
            schema_version=self.schema_version,
            endpoint=self.endpoint,
            create_time=self.create_time,
            update_time=self.update_time,
            health_status=HealthStatus(self.health_status),
            consecutive_failures=self.consecutive_failures,
            next_health_check=self.next_health_check,
        )

    @classmethod
    def from_record(cls, record: ProviderRecord) -> "ProviderRow":
        return cls(
            id=record.id,
            name=record.name,
            service_type=record.service_type,
            schema_version=record.schema_version,
            endpoint=record.endpoint,
            create_time=record.create_time,
            update_time=record.update_time,
            health_status=record.health_status.value,
            consecutive_failures=record.consecutive_failures,
            next_health_check=record.next_health_check,
        )


def create_engine_for_url(url: str, *, echo: bool = False) -> AsyncEngine:
    """Build an async engine; in-memory SQLite shares one connection."""
    kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
    return create_async_engine(url, **kwargs)


class SqlProviderStore:
    """SQLAlchemy-backed :class:`~provider_manager.store.base.ProviderStore`.

    Parameters
    ----------
    url:
        SQLAlchemy async URL (``sqlite+aiosqlite:///...`` or
        ``postgresql+asyncpg://...``).
    engine:
        Pre-built engine; takes precedence over *url*.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        engine: Optional[AsyncEngine] = None,
        echo: bool = False,
    ) -> None:
        if engine is None:
            if url is None:
                raise ValueError("either url or engine is required")
            engine = create_engine_for_url(url, echo=echo)
        self._engine = engine
        self._sessions = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def initialize(self) -> None:
        """Create the ``providers`` table if missing."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQL provider store ready (%s).", self._engine.url.render_as_string())

    async def close(self) -> None:
        await self._engine.dispose()

    # ── Registry CRUD ────────────────────────────────────────────────────

    async def create(self, provider: ProviderRecord) -> ProviderRecord:
        row = ProviderRow.from_record(provider)
        try:
            async with self._sessions.begin() as session:
                session.add(row)
        except IntegrityError as exc:
            raise ProviderConflictError(
                f"provider '{provider.name}' ({provider.id}) conflicts with an existing provider"
            ) from exc
        return row.to_record()

    async def get(self, provider_id: uuid.UUID) -> ProviderRecord:
        async with self._sessions() as session:
            row = await session.get(ProviderRow, provider_id)
            if row is None:
                raise ProviderNotFoundError(provider_id)
            return row.to_record()

    async def get_by_name(self, name: str) -> ProviderRecord:
        async with self._sessions() as session:
            result = await session.execute(select(ProviderRow).where(ProviderRow.name == name))
            row = result.scalar_one_or_none()
            if row is None:
                raise ProviderNotFoundError(message=f"provider '{name}' not found")
            return row.to_record()

    async def exists(self, provider_id: uuid.UUID) -> bool:
        async with self._sessions() as session:
            result = await session.execute(
                select(ProviderRow.id).where(ProviderRow.id == provider_id)
            )
            return result.first() is not None

    async def list(self, service_type: Optional[str] = None) -> List[ProviderRecord]:
        stmt = select(ProviderRow).order_by(ProviderRow.create_time, ProviderRow.id)
        if service_type is not None:
            stmt = stmt.where(ProviderRow.service_type == service_type)
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return [row.to_record() for row in result.scalars()]

    async def update(self, provider: ProviderRecord) -> ProviderRecord:
        """Update registry fields only; health fields are left untouched."""
        try:
            async with self._sessions.begin() as session:
                row = await session.get(ProviderRow, provider.id)
                if row is None:
                    raise ProviderNotFoundError(provider.id)
                row.name = provider.name
                row.service_type = provider.service_type
                row.schema_version = provider.schema_version
                row.endpoint = provider.endpoint
                row.update_time = utcnow()
        except IntegrityError as exc:
            raise ProviderConflictError(f"provider name '{provider.name}' already taken") from exc
        return row.to_record()

    async def delete(self, provider_id: uuid.UUID) -> None:
        async with self._sessions.begin() as session:
            result = await session.execute(delete(ProviderRow).where(ProviderRow.id == provider_id))
            if result.rowcount == 0:
                raise ProviderNotFoundError(provider_id)

    # ── Health directory ─────────────────────────────────────────────────

    async def list_due_for_health_check(self, now: datetime) -> List[ProviderRecord]:
        stmt = (
            select(ProviderRow)
            .where(
                or_(
                    ProviderRow.next_health_check.is_(None),
                    ProviderRow.next_health_check <= as_utc(now),
                )
            )
            .order_by(ProviderRow.create_time, ProviderRow.id)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return [row.to_record() for row in result.scalars()]

    async def update_health_status(
        self,
        provider_id: uuid.UUID,
        status: HealthStatus,
        consecutive_failures: int,
        next_check: datetime,
    ) -> None:
        stmt = (
            update(ProviderRow)
            .where(ProviderRow.id == provider_id)
            .values(
                health_status=status.value,
                consecutive_failures=consecutive_failures,
                next_health_check=next_check,
            )
        )
        async with self._sessions.begin() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise ProviderNotFoundError(provider_id)
