"""
Persistence gateway for originals, remix outputs, preferences and tags.

Every operation returns a StoreResult instead of raising:

- ``ok``           the store answered; ``value`` is the record, list, or None
- ``unavailable``  no store is configured (DATABASE_URL unset)
- ``error``        the store raised; the exception is logged here

For non-ok results ``value`` is the empty sentinel (None for single records,
[] for lists), so callers that only want "data or no data" can read it
directly while callers that care can tell "no store" from "no rows".

Saving a variant is two round trips (original, then remix) with no
transaction around them; a failure on the second leaves the original row in
place.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from remixer.database import engine_from_settings, make_session_maker
from remixer.hashing import content_hash
from remixer.models import OriginalContent, RemixOutput, Tag, UserPreferences
from remixer.schemas import (
    OriginalContentRead,
    RemixOutputRead,
    RemixOutputWithOriginal,
    TagRead,
    UserPreferencesRead,
)
from remixer.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreStatus(str, enum.Enum):
    ok = "ok"
    unavailable = "unavailable"
    error = "error"


@dataclass(slots=True)
class StoreResult(Generic[T]):
    status: StoreStatus
    value: T

    @property
    def ok(self) -> bool:
        return self.status is StoreStatus.ok

    @property
    def unavailable(self) -> bool:
        return self.status is StoreStatus.unavailable

    @property
    def failed(self) -> bool:
        return self.status is StoreStatus.error


class ContentStore:
    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]],
        *,
        engine: Optional[AsyncEngine] = None,
    ):
        self._session_maker = session_maker
        self._engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContentStore":
        engine = engine_from_settings(settings)
        if engine is None:
            logger.warning("DATABASE_URL not set; saving is disabled")
            return cls(None)
        return cls(make_session_maker(engine), engine=engine)

    @property
    def available(self) -> bool:
        return self._session_maker is not None

    @property
    def engine(self) -> Optional[AsyncEngine]:
        return self._engine

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def _run(self, what: str, op: Callable[[AsyncSession], Awaitable[T]], *, many: bool = False) -> StoreResult:
        empty: Any = [] if many else None
        if self._session_maker is None:
            logger.warning("Store not configured; skipped %s", what)
            return StoreResult(StoreStatus.unavailable, empty)
        try:
            async with self._session_maker() as db:
                return StoreResult(StoreStatus.ok, await op(db))
        except Exception:
            logger.exception("Error %s", what)
            return StoreResult(StoreStatus.error, empty)

    # ---------------------------
    # ORIGINAL CONTENT
    # ---------------------------
    async def save_original_content(self, content: str) -> StoreResult[Optional[OriginalContentRead]]:
        """Return the stored row for this exact text, inserting it the first time."""
        digest = content_hash(content)

        async def op(db: AsyncSession) -> OriginalContentRead:
            query = select(OriginalContent).where(OriginalContent.content_hash == digest)
            existing = (await db.execute(query)).scalar_one_or_none()
            if existing:
                return OriginalContentRead.model_validate(existing)

            row = OriginalContent(content=content, content_hash=digest)
            db.add(row)
            try:
                await db.commit()
            except IntegrityError:
                # lost the race to a concurrent save of the same text
                await db.rollback()
                row = (await db.execute(query)).scalar_one()
            return OriginalContentRead.model_validate(row)

        return await self._run("saving original content", op)

    async def get_original_content(self, original_id: int) -> StoreResult[Optional[OriginalContentRead]]:
        async def op(db: AsyncSession) -> Optional[OriginalContentRead]:
            row = await db.get(OriginalContent, original_id)
            return OriginalContentRead.model_validate(row) if row else None

        return await self._run("fetching original content", op)

    # ---------------------------
    # REMIX OUTPUTS
    # ---------------------------
    async def save_remix_output(
        self,
        original_id: int,
        remix_type: str,
        remixed_content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StoreResult[Optional[RemixOutputRead]]:
        """Plain insert; saving the same text twice stores two rows."""
        async def op(db: AsyncSession) -> RemixOutputRead:
            row = RemixOutput(
                original_content_id=original_id,
                remix_type=remix_type,
                remixed_content=remixed_content,
                meta=metadata,
            )
            db.add(row)
            await db.commit()
            return RemixOutputRead.model_validate(row)

        return await self._run("saving remix output", op)

    async def get_remix_outputs(self, original_id: int) -> StoreResult[List[RemixOutputRead]]:
        async def op(db: AsyncSession) -> List[RemixOutputRead]:
            rows = (
                await db.execute(
                    select(RemixOutput)
                    .where(RemixOutput.original_content_id == original_id)
                    .order_by(RemixOutput.created_at.desc(), RemixOutput.id.desc())
                )
            ).scalars().all()
            return [RemixOutputRead.model_validate(r) for r in rows]

        return await self._run("fetching remix outputs", op, many=True)

    async def get_all_remix_outputs(self) -> StoreResult[List[RemixOutputWithOriginal]]:
        """Every saved remix, newest first, with its parent's text and creation time."""
        async def op(db: AsyncSession) -> List[RemixOutputWithOriginal]:
            rows = (
                await db.execute(
                    select(RemixOutput)
                    .options(selectinload(RemixOutput.original_content))
                    .order_by(RemixOutput.created_at.desc(), RemixOutput.id.desc())
                )
            ).scalars().all()
            return [RemixOutputWithOriginal.model_validate(r) for r in rows]

        return await self._run("fetching all remix outputs", op, many=True)

    async def save_variant(
        self,
        original_text: str,
        remix_type: str,
        remixed_content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StoreResult[Optional[RemixOutputRead]]:
        original = await self.save_original_content(original_text)
        if original.value is None:
            return StoreResult(original.status, None)
        return await self.save_remix_output(original.value.id, remix_type, remixed_content, metadata)

    # ---------------------------
    # USER PREFERENCES
    # ---------------------------
    async def save_user_preferences(
        self,
        user_id: Optional[str],
        favorite_remix_types: Sequence[str],
        default_settings: Optional[Dict[str, Any]] = None,
    ) -> StoreResult[Optional[UserPreferencesRead]]:
        """Upsert keyed by user_id; None is the shared anonymous row."""
        async def op(db: AsyncSession) -> UserPreferencesRead:
            try:
                prefs = await _apply_preferences(db, user_id, favorite_remix_types, default_settings)
                await db.commit()
            except IntegrityError:
                # a concurrent save inserted this user's row first; update it instead
                await db.rollback()
                prefs = await _apply_preferences(db, user_id, favorite_remix_types, default_settings)
                await db.commit()
            return UserPreferencesRead.model_validate(prefs)

        return await self._run("saving user preferences", op)

    async def get_user_preferences(self, user_id: Optional[str]) -> StoreResult[Optional[UserPreferencesRead]]:
        async def op(db: AsyncSession) -> Optional[UserPreferencesRead]:
            prefs = (await db.execute(_preferences_query(user_id))).scalars().first()
            return UserPreferencesRead.model_validate(prefs) if prefs else None

        return await self._run("fetching user preferences", op)

    # ---------------------------
    # TAGS
    # ---------------------------
    async def create_tag(self, name: str) -> StoreResult[Optional[TagRead]]:
        async def op(db: AsyncSession) -> TagRead:
            cleaned = name.strip()
            if not cleaned:
                raise ValueError("tag name is blank")
            tag = Tag(name=cleaned)
            db.add(tag)
            await db.commit()
            return TagRead.model_validate(tag)

        return await self._run("creating tag", op)

    async def get_all_tags(self) -> StoreResult[List[TagRead]]:
        async def op(db: AsyncSession) -> List[TagRead]:
            rows = (await db.execute(select(Tag).order_by(Tag.name))).scalars().all()
            return [TagRead.model_validate(t) for t in rows]

        return await self._run("fetching tags", op, many=True)


async def _apply_preferences(
    db: AsyncSession,
    user_id: Optional[str],
    favorite_remix_types: Sequence[str],
    default_settings: Optional[Dict[str, Any]],
) -> UserPreferences:
    prefs = (await db.execute(_preferences_query(user_id))).scalars().first()
    if prefs:
        prefs.favorite_remix_types = list(favorite_remix_types)
        prefs.default_settings = default_settings
    else:
        prefs = UserPreferences(
            user_id=user_id,
            favorite_remix_types=list(favorite_remix_types),
            default_settings=default_settings,
        )
        db.add(prefs)
    await db.flush()
    return prefs


def _preferences_query(user_id: Optional[str]):
    if user_id is None:
        return select(UserPreferences).where(UserPreferences.user_id.is_(None)).order_by(UserPreferences.id)
    return select(UserPreferences).where(UserPreferences.user_id == user_id).order_by(UserPreferences.id)


__all__ = ["ContentStore", "StoreResult", "StoreStatus"]
