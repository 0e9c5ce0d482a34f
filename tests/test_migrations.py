"""Startup schema upkeep against databases created by older releases."""
import sqlite3

import pytest
import pytest_asyncio
from sqlalchemy import select

from portfolio import database
from portfolio.migrations import EXAMPLE_ENTRIES, MIGRATIONS
from portfolio.models import Entry, SchemaMigration

LEGACY_SCHEMA = """
CREATE TABLE entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT UNIQUE NOT NULL,
    title TEXT NOT NULL,
    kind TEXT NOT NULL DEFAULT 'project',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

LEGACY_ROWS = [
    ("essay", "An essay", "writing"),
    ("button", "A button", "component"),
    ("flows", "Onboarding flows", "ux"),
    ("casestudy", "A case study", "project"),
]


def _legacy_db(path):
    conn = sqlite3.connect(path)
    conn.execute(LEGACY_SCHEMA)
    conn.executemany(
        "INSERT INTO entries (slug, title, kind, created_at, updated_at) VALUES (?, ?, ?, '2023-01-01', '2023-01-01')",
        LEGACY_ROWS,
    )
    conn.commit()
    conn.close()


async def _entries():
    async with database.async_session_maker() as s:
        result = await s.execute(select(Entry).order_by(Entry.id))
        return {e.slug: e for e in result.scalars().all()}


@pytest_asyncio.fixture
async def legacy_path(tmp_path):
    path = tmp_path / "legacy.db"
    _legacy_db(path)
    yield path
    await database.engine.dispose()


@pytest.mark.asyncio
async def test_fresh_database_gets_examples_as_drafts(tmp_path):
    await database.init_db(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")
    try:
        entries = await _entries()
        assert set(entries) == {example["slug"] for example in EXAMPLE_ENTRIES}
        assert not any(e.published for e in entries.values())
    finally:
        await database.engine.dispose()


@pytest.mark.asyncio
async def test_examples_not_seeded_twice(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}"
    await database.init_db(url)
    await database.init_db(url)
    try:
        assert len(await _entries()) == len(EXAMPLE_ENTRIES)
    finally:
        await database.engine.dispose()


@pytest.mark.asyncio
async def test_legacy_columns_added_and_kinds_moved(legacy_path):
    await database.init_db(f"sqlite+aiosqlite:///{legacy_path}")

    entries = await _entries()
    assert (entries["essay"].kind, entries["essay"].category) == ("other", "writing")
    assert (entries["button"].kind, entries["button"].category) == ("other", "components")
    assert (entries["flows"].kind, entries["flows"].category) == ("other", "ux")
    assert (entries["casestudy"].kind, entries["casestudy"].category) == ("project", None)
    assert entries["essay"].published is False
    assert entries["essay"].summary == ""
    # an existing database is never given example content
    assert "design-system-overhaul" not in entries


@pytest.mark.asyncio
async def test_migration_runs_once(legacy_path):
    url = f"sqlite+aiosqlite:///{legacy_path}"
    await database.init_db(url)
    await database.engine.dispose()

    conn = sqlite3.connect(legacy_path)
    conn.execute(
        "INSERT INTO entries (slug, title, kind, created_at, updated_at) VALUES ('late', 'Late', 'ux', 'x', 'x')"
    )
    conn.execute("UPDATE entries SET category = NULL WHERE slug = 'essay'")
    conn.commit()
    conn.close()

    await database.init_db(url)

    entries = await _entries()
    assert entries["late"].kind == "ux"
    assert entries["essay"].category is None
    async with database.async_session_maker() as s:
        versions = (await s.execute(select(SchemaMigration.version))).scalars().all()
    assert sorted(versions) == [version for version, _, _ in MIGRATIONS]
