"""Best-effort usage counters for the public site.

Counters are keyed by composite strings (``home``, ``item:<slug>``,
``out:<slug>:<url>``, ``nav:<section>``). Tracking never raises: a failure is
logged as a warning and the request carries on.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio import database
from portfolio.models import Entry, PageView, OutboundClick, NavClick, utc_now_iso

logger = logging.getLogger(__name__)

BOT_PATTERN = re.compile(r"bot|spider|crawl|slurp|facebookexternalhit|preview")


def is_probably_bot(user_agent: Optional[str]) -> bool:
    """Very lightweight user-agent heuristic."""
    return bool(BOT_PATTERN.search((user_agent or "").lower()))


async def increment_counter(session: AsyncSession, model, key: str, **context) -> None:
    """Create the counter row with count=1 or bump an existing one.

    Context columns are only written on the first event for a key; repeats
    touch nothing but ``count`` and ``updated_at``.
    """
    now = utc_now_iso()
    stmt = insert(model).values(key=key, count=1, updated_at=now, **context)
    stmt = stmt.on_conflict_do_update(
        index_elements=[model.key],
        set_={"count": model.count + 1, "updated_at": now},
    )
    await session.execute(stmt)
    await session.commit()


async def _record(model, key: str, **context) -> None:
    try:
        async with database.async_session_maker() as session:
            await increment_counter(session, model, key, **context)
    except Exception as e:
        logger.warning(f"Failed to record {model.__tablename__} event {key}: {e}")


async def track_home_view(user_agent: Optional[str]) -> None:
    if is_probably_bot(user_agent):
        return
    await _record(PageView, "home", type="home", path="/")


async def track_item_view(user_agent: Optional[str], slug: str, path: str) -> None:
    if is_probably_bot(user_agent):
        return
    await _record(PageView, f"item:{slug}", type="item", slug=slug, path=path)


async def track_outbound_click(
    user_agent: Optional[str], url: Optional[str], slug: Optional[str] = None, source: Optional[str] = None
) -> None:
    if is_probably_bot(user_agent) or not url:
        return
    slug = slug or ""
    await _record(OutboundClick, f"out:{slug}:{url}", slug=slug, url=url, source=source or "")


async def track_nav_click(user_agent: Optional[str], section: Optional[str], href: Optional[str] = None) -> None:
    if is_probably_bot(user_agent) or not section:
        return
    await _record(NavClick, f"nav:{section}", section=section, href=href or "")


async def get_counter(session: AsyncSession, model, key: str) -> int:
    result = await session.execute(select(model.count).where(model.key == key))
    return result.scalar_one_or_none() or 0


async def home_views(session: AsyncSession) -> int:
    return await get_counter(session, PageView, "home")


async def item_views_total(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.coalesce(func.sum(PageView.count), 0)).where(PageView.type == "item")
    )
    return result.scalar_one()


async def outbound_total(session: AsyncSession) -> int:
    result = await session.execute(select(func.coalesce(func.sum(OutboundClick.count), 0)))
    return result.scalar_one()


async def top_items(session: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    """Most viewed items, titled from their entry when it still exists."""
    result = await session.execute(
        select(PageView.slug, PageView.count, func.coalesce(Entry.title, PageView.slug).label("title"))
        .select_from(PageView)
        .outerjoin(Entry, Entry.slug == PageView.slug)
        .where(PageView.type == "item")
        .order_by(PageView.count.desc())
        .limit(limit)
    )
    return [{"slug": r.slug, "count": r.count, "title": r.title} for r in result.all()]


async def top_outbound(session: AsyncSession, limit: int = 10) -> List[Dict[str, Any]]:
    result = await session.execute(
        select(OutboundClick.slug, OutboundClick.url, OutboundClick.source, OutboundClick.count)
        .order_by(OutboundClick.count.desc())
        .limit(limit)
    )
    return [dict(r._mapping) for r in result.all()]


async def nav_clicks(session: AsyncSession) -> List[Dict[str, Any]]:
    result = await session.execute(
        select(NavClick.section, NavClick.href, NavClick.count).order_by(NavClick.count.desc())
    )
    return [dict(r._mapping) for r in result.all()]


async def dashboard_stats(session: AsyncSession) -> Dict[str, Any]:
    top = await top_items(session, limit=1)
    return {
        "home_views": await home_views(session),
        "item_views_total": await item_views_total(session),
        "outbound_total": await outbound_total(session),
        "top_item": top[0] if top else None,
    }


async def report(session: AsyncSession) -> Dict[str, Any]:
    return {
        "home_views": await home_views(session),
        "item_views_total": await item_views_total(session),
        "top_items": await top_items(session, limit=10),
        "outbound_total": await outbound_total(session),
        "top_outbound": await top_outbound(session, limit=10),
        "nav_clicks": await nav_clicks(session),
    }
