"""Badge record persistence.

Every store implements ``read(user_id)`` (``None`` when the user has no record)
and ``write(record)``. Backend failures surface as ``PersistenceUnavailable``.

``TieredBadgeStore`` composes a primary store (PostgreSQL) with a secondary
cache (Redis): reads fall back to the cache when the primary is down, writes
go to both, and a record that only exists in the cache is migrated into the
primary the first time it is read.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rehabmotion.db.models import BadgeRecordRow, UnlockedBadgeRow
from rehabmotion.gamification.schemas import UnlockedBadge, UserBadgeRecord

logger = logging.getLogger(__name__)


class PersistenceUnavailable(Exception):
    """A badge store could not be read or written."""


class BadgeStore(Protocol):
    async def read(self, user_id: str) -> UserBadgeRecord | None: ...

    async def write(self, record: UserBadgeRecord) -> None: ...


class InMemoryBadgeStore:
    """Process-local store. Keeps copies so callers cannot mutate stored state."""

    def __init__(self) -> None:
        self._records: dict[str, UserBadgeRecord] = {}

    async def read(self, user_id: str) -> UserBadgeRecord | None:
        record = self._records.get(user_id)
        return record.model_copy(deep=True) if record is not None else None

    async def write(self, record: UserBadgeRecord) -> None:
        self._records[record.user_id] = record.model_copy(deep=True)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._records


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------


def badge_to_row(badge: UnlockedBadge) -> UnlockedBadgeRow:
    return UnlockedBadgeRow(
        badge_id=badge.id,
        name=badge.name,
        description=badge.description,
        icon=badge.icon,
        category=badge.category.value,
        tier=badge.tier.value if badge.tier else None,
        requirement_type=badge.requirement_type.value,
        requirement=badge.requirement,
        points=badge.points,
        unlocked_at=badge.unlocked_at,
        progress=badge.progress,
    )


def row_to_record(row: BadgeRecordRow) -> UserBadgeRecord:
    return UserBadgeRecord(
        user_id=row.user_id,
        unlocked_badges=[
            UnlockedBadge(
                id=b.badge_id,
                name=b.name,
                description=b.description,
                icon=b.icon,
                category=b.category,
                tier=b.tier,
                requirement_type=b.requirement_type,
                requirement=b.requirement,
                points=b.points,
                unlocked_at=b.unlocked_at,
                progress=b.progress,
            )
            for b in row.badges
        ],
        total_points=row.total_points,
        level=row.level,
        next_level_points=row.next_level_points,
    )


class SqlBadgeStore:
    """Primary store backed by the ``badge_records`` / ``unlocked_badges`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def read(self, user_id: str) -> UserBadgeRecord | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(BadgeRecordRow, user_id)
                if row is None:
                    return None
                return row_to_record(row)
        except (SQLAlchemyError, OSError) as exc:
            msg = f"Failed to read badge record for {user_id}"
            raise PersistenceUnavailable(msg) from exc

    async def write(self, record: UserBadgeRecord) -> None:
        """Upsert the summary row and insert any badge rows not stored yet.

        Stored badges are never deleted: unlocking is monotonic.
        """
        try:
            async with self._session_factory() as session, session.begin():
                row = await session.get(BadgeRecordRow, record.user_id)
                if row is None:
                    row = BadgeRecordRow(user_id=record.user_id, badges=[])
                    session.add(row)

                row.total_points = record.total_points
                row.level = record.level
                row.next_level_points = record.next_level_points

                stored = {b.badge_id for b in row.badges}
                for badge in record.unlocked_badges:
                    if badge.id not in stored:
                        row.badges.append(badge_to_row(badge))
                        stored.add(badge.id)
        except (SQLAlchemyError, OSError) as exc:
            msg = f"Failed to write badge record for {record.user_id}"
            raise PersistenceUnavailable(msg) from exc


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


class RedisBadgeCache:
    """Secondary store: one JSON document per user under ``<prefix>:<user_id>``."""

    def __init__(self, redis: Redis, key_prefix: str = "rehabmotion_badges", ttl_seconds: int = 0) -> None:
        self.redis = redis
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    def key(self, user_id: str) -> str:
        return f"{self.key_prefix}:{user_id}"

    async def read(self, user_id: str) -> UserBadgeRecord | None:
        try:
            raw = await self.redis.get(self.key(user_id))
        except RedisError as exc:
            msg = f"Failed to read cached badge record for {user_id}"
            raise PersistenceUnavailable(msg) from exc

        if raw is None:
            return None
        try:
            return UserBadgeRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cached badge record for %s", user_id, exc_info=True)
            return None

    async def write(self, record: UserBadgeRecord) -> None:
        try:
            await self.redis.set(
                self.key(record.user_id),
                record.model_dump_json(),
                ex=self.ttl_seconds or None,
            )
        except RedisError as exc:
            msg = f"Failed to cache badge record for {record.user_id}"
            raise PersistenceUnavailable(msg) from exc


# ---------------------------------------------------------------------------
# Primary + cache
# ---------------------------------------------------------------------------


class TieredBadgeStore:
    """Primary store with a secondary cache for fallback reads and migration."""

    def __init__(self, primary: BadgeStore, cache: BadgeStore) -> None:
        self.primary = primary
        self.cache = cache

    async def read(self, user_id: str) -> UserBadgeRecord | None:
        """Read from the primary; fall back to the cache if the primary is down.

        Only fails if neither tier answers; an unreachable cache counts as a miss.
        """
        try:
            record = await self.primary.read(user_id)
        except PersistenceUnavailable:
            logger.warning("Primary badge store unavailable, reading cache for %s", user_id, exc_info=True)
            return await self._read_cache(user_id)

        if record is not None:
            return record
        return await self.reconcile(user_id)

    async def reconcile(self, user_id: str) -> UserBadgeRecord | None:
        """Migrate a cache-only record into the primary store.

        Returns the cached record (migrated or not), or None if the cache has
        nothing for this user.
        """
        cached = await self._read_cache(user_id)
        if cached is None:
            return None

        try:
            await self.primary.write(cached)
        except PersistenceUnavailable:
            logger.warning("Could not migrate cached badge record for %s", user_id, exc_info=True)
        else:
            logger.info("Migrated cached badge record for %s to primary store", user_id)
        return cached

    async def write(self, record: UserBadgeRecord) -> None:
        """Write both tiers. Raises only if the primary write failed."""
        primary_error: PersistenceUnavailable | None = None
        try:
            await self.primary.write(record)
        except PersistenceUnavailable as exc:
            primary_error = exc

        try:
            await self.cache.write(record)
        except PersistenceUnavailable:
            logger.warning("Could not cache badge record for %s", record.user_id, exc_info=True)

        if primary_error is not None:
            raise primary_error

    async def _read_cache(self, user_id: str) -> UserBadgeRecord | None:
        try:
            return await self.cache.read(user_id)
        except PersistenceUnavailable:
            logger.warning("Badge cache unavailable for %s", user_id, exc_info=True)
            return None
