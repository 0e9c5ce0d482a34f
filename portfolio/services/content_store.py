"""Query and command functions over entries and categories.

Every mutation commits on its own; callers never hold a transaction across
two calls.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, case, or_, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio.models import Entry, Category, utc_now_iso

logger = logging.getLogger(__name__)

ENTRY_FIELDS = (
    "slug",
    "title",
    "subtitle",
    "summary",
    "role",
    "timeframe",
    "tools",
    "tags",
    "hero_image",
    "external_url",
    "body_markdown",
    "published",
    "kind",
    "category",
    "date",
)


class StoreError(Exception):
    pass


class EntryNotFound(StoreError):
    def __init__(self, entry_id: Any):
        super().__init__(f"Entry {entry_id} not found")
        self.entry_id = entry_id


class SlugConflict(StoreError):
    def __init__(self, slug: str):
        super().__init__(f"An entry with slug '{slug}' already exists")
        self.slug = slug


def effective_date():
    """Display date when set, otherwise the most recent audit timestamp."""
    return func.coalesce(Entry.date, Entry.updated_at, Entry.created_at)


def escape_like(value: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k in ENTRY_FIELDS}


async def get_entry(session: AsyncSession, entry_id: int) -> Optional[Entry]:
    return await session.get(Entry, entry_id)


async def get_entry_by_slug(session: AsyncSession, slug: str) -> Optional[Entry]:
    result = await session.execute(select(Entry).where(Entry.slug == slug))
    return result.scalar_one_or_none()


async def require_entry(session: AsyncSession, entry_id: int) -> Entry:
    entry = await get_entry(session, entry_id)
    if entry is None:
        raise EntryNotFound(entry_id)
    return entry


async def list_entries(
    session: AsyncSession,
    kind: str = "all",
    q: str = "",
    published: Optional[bool] = None,
    category: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[Entry]:
    """List entries newest first by display date, falling back to timestamps."""
    query = select(Entry)
    if kind and kind != "all":
        query = query.where(Entry.kind == kind)
    if q:
        pattern = f"%{escape_like(q)}%"
        query = query.where(or_(
            Entry.title.ilike(pattern, escape="\\"),
            Entry.slug.ilike(pattern, escape="\\"),
        ))
    if published is not None:
        query = query.where(Entry.published == published)
    if category:
        query = query.where(Entry.category == category)

    query = query.order_by(effective_date().desc(), Entry.id.desc())
    if limit:
        query = query.limit(limit)

    result = await session.execute(query)
    return list(result.scalars().all())


async def create_entry(session: AsyncSession, fields: Dict[str, Any]) -> Entry:
    """Insert a new entry. Raises SlugConflict if the slug is taken."""
    now = utc_now_iso()
    entry = Entry(**_clean_fields(fields), created_at=now, updated_at=now)
    session.add(entry)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise SlugConflict(fields.get("slug", ""))
    await session.refresh(entry)
    logger.info(f"Created entry {entry.id} ({entry.slug})")
    return entry


async def update_entry(session: AsyncSession, entry_id: int, fields: Dict[str, Any]) -> Entry:
    """Overwrite the fields of an existing entry."""
    entry = await require_entry(session, entry_id)
    for name, value in _clean_fields(fields).items():
        setattr(entry, name, value)
    entry.updated_at = utc_now_iso()
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise SlugConflict(fields.get("slug", ""))
    await session.refresh(entry)
    return entry


async def upsert_entry(session: AsyncSession, fields: Dict[str, Any]) -> Entry:
    """Insert when the slug is new, otherwise update the entry that owns it."""
    existing = await get_entry_by_slug(session, fields["slug"])
    if existing is None:
        return await create_entry(session, fields)
    return await update_entry(session, existing.id, fields)


async def set_published(session: AsyncSession, entry_id: int, value: bool) -> Entry:
    entry = await require_entry(session, entry_id)
    entry.published = bool(value)
    entry.updated_at = utc_now_iso()
    await session.commit()
    return entry


async def toggle_published(session: AsyncSession, entry_id: int) -> Entry:
    entry = await require_entry(session, entry_id)
    return await set_published(session, entry_id, not entry.published)


async def set_hero_image(session: AsyncSession, entry_id: int, url: Optional[str]) -> Entry:
    entry = await require_entry(session, entry_id)
    entry.hero_image = url or ""
    entry.updated_at = utc_now_iso()
    await session.commit()
    return entry


async def delete_entry(session: AsyncSession, entry_id: int) -> None:
    """Delete the row only; any uploaded hero file is the caller's to remove."""
    result = await session.execute(delete(Entry).where(Entry.id == entry_id))
    await session.commit()
    if not result.rowcount:
        raise EntryNotFound(entry_id)
    logger.info(f"Deleted entry {entry_id}")


async def list_categories(session: AsyncSession) -> List[Category]:
    result = await session.execute(
        select(Category).order_by(Category.order_index.asc(), Category.label.asc())
    )
    return list(result.scalars().all())


async def kind_counts(session: AsyncSession) -> Dict[str, Any]:
    """Published/draft/total counts per kind, plus overall totals."""
    result = await session.execute(
        select(
            Entry.kind,
            func.sum(case((Entry.published == True, 1), else_=0)).label("published"),  # noqa: E712
            func.sum(case((Entry.published == False, 1), else_=0)).label("draft"),  # noqa: E712
            func.count().label("total"),
        ).group_by(Entry.kind)
    )
    by_kind = {}
    totals = {"published": 0, "draft": 0, "total": 0}
    for row in result.all():
        counts = {"published": row.published or 0, "draft": row.draft or 0, "total": row.total or 0}
        by_kind[row.kind] = counts
        for name, value in counts.items():
            totals[name] += value
    return {"totals": totals, "by_kind": by_kind}


async def published_category_counts(session: AsyncSession) -> Dict[str, int]:
    result = await session.execute(
        select(Entry.category, func.count())
        .where(Entry.published == True, Entry.kind == "other")  # noqa: E712
        .group_by(Entry.category)
    )
    return {(category or ""): count for category, count in result.all()}
