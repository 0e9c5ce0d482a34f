# portfolio/routers/site.py
import json
import logging
from datetime import datetime, timezone
from xml.sax.saxutils import escape

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio import config
from portfolio.database import get_db
from portfolio.models import Entry, PROJECT_KINDS
from portfolio.schemas import AnalyticsEvent
from portfolio.services import analytics, content_store
from portfolio.services.auth import require_site_access
from portfolio.templating import page_meta, templates
from portfolio.utils.markdown import markdown_html

logger = logging.getLogger(__name__)

router = APIRouter(tags=["site"])
gated = [Depends(require_site_access)]

FEATURED_LIMIT = 4
FALLBACK_CATEGORY_LABEL = "Other"
EMPTY_SITEMAP = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"></urlset>'
)


def canonical_path(entry: Entry) -> str:
    """Projects and labs live under /project/, everything else under /item/."""
    prefix = "project" if entry.kind in PROJECT_KINDS else "item"
    return f"/{prefix}/{entry.slug}"


def kind_label(entry: Entry, labels: dict) -> str:
    if entry.kind == "lab":
        return "Lab"
    if entry.kind == "project":
        return "Projects"
    return labels.get(entry.category, FALLBACK_CATEGORY_LABEL)


def _user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "")


def _render_entry(request: Request, entry: Entry, label: str):
    return templates.TemplateResponse(request, "entry.html", {
        "meta": page_meta(
            canonical_path(entry),
            f"{entry.title} — {config.get_site_name()}",
            entry.summary or "",
            entry.hero_image or "",
        ),
        "item": entry,
        "kind_label": label,
        "body_html": markdown_html(entry.body_markdown),
    })


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots():
    if config.is_site_gated():
        return "User-agent: *\nDisallow: /\n"
    base_url = config.get_site_url()
    return f"User-agent: *\nAllow: /\nSitemap: {base_url}/sitemap.xml\n"


@router.get("/sitemap.xml")
async def sitemap(session: AsyncSession = Depends(get_db)):
    if config.is_site_gated():
        # never list private URLs
        return Response(content=EMPTY_SITEMAP, media_type="application/xml")

    base_url = config.get_site_url()
    if not base_url:
        return PlainTextResponse("Missing SITE_URL", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    today = datetime.now(timezone.utc).date().isoformat()
    urls = [(f"{base_url}/", today), (f"{base_url}/about", today)]
    for entry in await content_store.list_entries(session, published=True):
        lastmod = (entry.updated_at or entry.created_at or today)[:10]
        urls.append((f"{base_url}{canonical_path(entry)}", lastmod))

    body = "\n".join(
        f"  <url><loc>{escape(loc)}</loc><lastmod>{escape(lastmod)}</lastmod></url>"
        for loc, lastmod in urls
    )
    content = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{body}\n</urlset>"
    )
    return Response(content=content, media_type="application/xml")


@router.post("/analytics/event", dependencies=gated)
async def analytics_event(request: Request):
    """Beacon intake. Always answers ok, whatever happens to the event."""
    try:
        raw = await request.body()
        event = AnalyticsEvent.model_validate(json.loads(raw or b"{}"))
    except (ValueError, ValidationError) as e:
        logger.warning(f"Ignoring malformed analytics event: {e}")
        return {"ok": True}

    user_agent = _user_agent(request)
    if event.type == "outbound":
        await analytics.track_outbound_click(user_agent, event.url, slug=event.slug, source=event.source)
    elif event.type == "nav":
        await analytics.track_nav_click(user_agent, event.section, href=event.href)
    return {"ok": True}


@router.get("/", response_class=HTMLResponse, dependencies=gated)
async def home(
    request: Request,
    background_tasks: BackgroundTasks,
    topic: str = None,
    session: AsyncSession = Depends(get_db),
):
    background_tasks.add_task(analytics.track_home_view, _user_agent(request))

    categories = await content_store.list_categories(session)
    labels = {c.key: c.label for c in categories}
    requested = (topic or "").strip().lower()
    active_topic = requested if requested in labels else "all"

    items = await content_store.list_entries(
        session,
        kind="other",
        published=True,
        category=None if active_topic == "all" else active_topic,
    )
    work = await content_store.list_entries(session, kind="project", published=True, limit=FEATURED_LIMIT)
    lab = await content_store.list_entries(session, kind="lab", published=True, limit=FEATURED_LIMIT)

    counts = await content_store.published_category_counts(session)
    topics = [{"key": "all", "label": "All", "count": sum(counts.values()), "href": "/?topic=all#topics"}]
    for category in categories:
        topics.append({
            "key": category.key,
            "label": category.label,
            "count": counts.get(category.key, 0),
            "href": f"/?topic={category.key}#topics",
        })

    return templates.TemplateResponse(request, "home.html", {
        "meta": page_meta("/", config.get_site_name(), "Case studies, experiments and writing."),
        "active_topic": active_topic,
        "topics": topics,
        "items": [{"entry": it, "label": kind_label(it, labels)} for it in items],
        "work": work,
        "lab": lab,
    })


@router.get("/about", response_class=HTMLResponse, dependencies=gated)
async def about(request: Request):
    return templates.TemplateResponse(request, "about.html", {
        "meta": page_meta("/about", f"About — {config.get_site_name()}", "Background, approach, and what I care about."),
    })


@router.get("/contact", response_class=HTMLResponse, dependencies=gated)
async def contact(request: Request):
    return templates.TemplateResponse(request, "contact.html", {
        "meta": page_meta("/contact", f"Contact — {config.get_site_name()}", "Get in touch."),
    })


@router.get("/project/{slug}", response_class=HTMLResponse, dependencies=gated)
async def project_detail(
    request: Request,
    slug: str,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db),
):
    entry = await content_store.get_entry_by_slug(session, slug)
    if entry is None or not entry.published or entry.kind not in PROJECT_KINDS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    background_tasks.add_task(analytics.track_item_view, _user_agent(request), entry.slug, canonical_path(entry))
    return _render_entry(request, entry, kind_label(entry, {}))


@router.get("/item/{slug}", response_class=HTMLResponse, dependencies=gated)
async def item_detail(
    request: Request,
    slug: str,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_db),
):
    entry = await content_store.get_entry_by_slug(session, slug)
    if entry is None or not entry.published:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    if entry.kind in PROJECT_KINDS:
        return RedirectResponse(url=canonical_path(entry), status_code=status.HTTP_301_MOVED_PERMANENTLY)

    categories = await content_store.list_categories(session)
    labels = {c.key: c.label for c in categories}
    background_tasks.add_task(analytics.track_item_view, _user_agent(request), entry.slug, canonical_path(entry))
    return _render_entry(request, entry, kind_label(entry, labels))
