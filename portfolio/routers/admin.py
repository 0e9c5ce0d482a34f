# portfolio/routers/admin.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio.database import get_db
from portfolio.models import Entry
from portfolio.schemas import (
    EntryForm,
    MarkdownPreviewRequest,
    MarkdownPreviewResponse,
    form_error_message,
    form_values,
)
from portfolio.services import analytics, content_store
from portfolio.services.auth import require_admin, safe_next
from portfolio.services.content_store import EntryNotFound, SlugConflict
from portfolio.services.uploads import UploadRejected, remove_local_upload, store_hero_image
from portfolio.templating import templates
from portfolio.utils.markdown import render_markdown

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

KIND_ALIASES = {
    "": "all",
    "all": "all",
    "project": "project",
    "projects": "project",
    "lab": "lab",
    "labs": "lab",
    "other": "other",
    "others": "other",
}


def normalize_kind(kind: Optional[str]) -> str:
    """Map a free-form kind filter onto all/project/lab/other."""
    return KIND_ALIASES.get(str(kind or "").strip().lower(), "all")


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


async def _entry_or_404(session: AsyncSession, entry_id: int) -> Entry:
    entry = await content_store.get_entry(session, entry_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")
    return entry


async def _render_edit(
    request: Request,
    session: AsyncSession,
    entry=None,
    error: str = None,
    status_code: int = 200,
):
    categories = await content_store.list_categories(session)
    return templates.TemplateResponse(
        request,
        "admin/edit.html",
        {"entry": entry, "error": error, "categories": categories},
        status_code=status_code,
    )


@router.get("", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    kind: str = None,
    q: str = None,
    session: AsyncSession = Depends(get_db),
):
    """Entry list with per-kind counts and headline analytics."""
    kind = normalize_kind(kind)
    q = (q or "").strip()
    entries = await content_store.list_entries(session, kind=kind, q=q)
    counts = await content_store.kind_counts(session)
    stats = await analytics.dashboard_stats(session)

    return templates.TemplateResponse(request, "admin/index.html", {
        "entries": entries,
        "filters": {"kind": kind, "q": q},
        "counts": counts,
        "stats": stats,
        "current_url": str(request.url.path) + (f"?{request.url.query}" if request.url.query else ""),
    })


@router.get("/reports", response_class=HTMLResponse)
async def reports(request: Request, session: AsyncSession = Depends(get_db)):
    report = await analytics.report(session)
    return templates.TemplateResponse(request, "admin/reports.html", report)


@router.post("/markdown/preview", response_model=MarkdownPreviewResponse)
async def markdown_preview(body: MarkdownPreviewRequest):
    """Render markdown exactly as the public page would, without saving."""
    return MarkdownPreviewResponse(ok=True, html=render_markdown(body.markdown))


@router.get("/new", response_class=HTMLResponse)
async def new_entry_form(request: Request, session: AsyncSession = Depends(get_db)):
    return await _render_edit(request, session)


@router.post("/new")
async def create_entry(request: Request, session: AsyncSession = Depends(get_db)):
    form = await request.form()
    try:
        data = EntryForm.from_form(form)
        await content_store.create_entry(session, data.model_dump())
    except ValidationError as e:
        return await _render_edit(
            request, session, form_values(form), form_error_message(e), status.HTTP_400_BAD_REQUEST
        )
    except SlugConflict as e:
        return await _render_edit(request, session, form_values(form), str(e), status.HTTP_400_BAD_REQUEST)
    return _redirect("/admin")


@router.get("/edit/{entry_id}", response_class=HTMLResponse)
async def edit_entry_form(request: Request, entry_id: int, session: AsyncSession = Depends(get_db)):
    entry = await _entry_or_404(session, entry_id)
    return await _render_edit(request, session, entry)


@router.post("/edit/{entry_id}")
async def update_entry(request: Request, entry_id: int, session: AsyncSession = Depends(get_db)):
    entry = await _entry_or_404(session, entry_id)
    hero_image = entry.hero_image
    form = await request.form()

    def submitted():
        values = form_values(form)
        values.update(id=entry_id, hero_image=hero_image)
        return values

    try:
        data = EntryForm.from_form(form)
        await content_store.update_entry(session, entry_id, data.model_dump())
    except ValidationError as e:
        return await _render_edit(request, session, submitted(), form_error_message(e), status.HTTP_400_BAD_REQUEST)
    except SlugConflict as e:
        return await _render_edit(request, session, submitted(), str(e), status.HTTP_400_BAD_REQUEST)
    return _redirect("/admin")


@router.post("/toggle-publish/{entry_id}")
async def toggle_publish(
    entry_id: int,
    redirect: str = Form(None),
    session: AsyncSession = Depends(get_db),
):
    try:
        entry = await content_store.toggle_published(session, entry_id)
    except EntryNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")
    logger.info(f"Entry {entry_id} published={entry.published}")
    return _redirect(safe_next(redirect, "/admin"))


@router.post("/delete/{entry_id}")
async def delete_entry(entry_id: int, session: AsyncSession = Depends(get_db)):
    entry = await _entry_or_404(session, entry_id)
    remove_local_upload(entry.hero_image)
    await content_store.delete_entry(session, entry_id)
    return _redirect("/admin")


@router.post("/upload-hero/{entry_id}")
async def upload_hero(
    request: Request,
    entry_id: int,
    hero: Optional[UploadFile] = File(None),
    session: AsyncSession = Depends(get_db),
):
    entry = await _entry_or_404(session, entry_id)
    if hero is None or not hero.filename:
        return await _render_edit(request, session, entry, "No file", status.HTTP_400_BAD_REQUEST)

    try:
        url = await store_hero_image(hero)
    except UploadRejected as e:
        return await _render_edit(request, session, entry, str(e), status.HTTP_400_BAD_REQUEST)

    remove_local_upload(entry.hero_image)
    await content_store.set_hero_image(session, entry_id, url)
    return _redirect(f"/admin/edit/{entry_id}")


@router.post("/remove-hero/{entry_id}")
async def remove_hero(entry_id: int, session: AsyncSession = Depends(get_db)):
    entry = await _entry_or_404(session, entry_id)
    remove_local_upload(entry.hero_image)
    await content_store.set_hero_image(session, entry_id, None)
    return _redirect(f"/admin/edit/{entry_id}")
