"""Schema upkeep run by init_db on every start.

Two kinds of change are handled here:

* additive column migrations: any mapped column missing from the live table is
  added with its server default. These are re-checked on every start and never
  drop or rewrite anything.
* versioned data migrations: one-shot steps recorded in ``schema_migrations`` so a
  step never re-processes rows after it has run once against a database.

Every function takes a synchronous connection and is meant to be called through
``AsyncConnection.run_sync``.
"""
import logging
from typing import Callable, List, Tuple

from sqlalchemy import Connection, inspect, select, insert, update, func, text

from portfolio.database import Base
from portfolio.models import Entry, Category, SchemaMigration, EntryKind, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"key": "writing", "label": "Writing", "order_index": 10},
    {"key": "components", "label": "Components", "order_index": 20},
    {"key": "ux", "label": "UX", "order_index": 30},
]

# legacy kind -> category key it becomes under kind=other
LEGACY_KIND_CATEGORIES = {
    EntryKind.writing.value: "writing",
    EntryKind.component.value: "components",
    EntryKind.ux.value: "ux",
}


def _column_ddl(column, dialect) -> str:
    """Column definition for ALTER TABLE ADD COLUMN.

    NOT NULL is left off: SQLite only accepts it on added columns that carry a
    default, and existing rows would have nothing to put there otherwise.
    """
    ddl = f"{column.name} {column.type.compile(dialect=dialect)}"
    if column.server_default is not None:
        default = str(column.server_default.arg).replace("'", "''")
        ddl += f" DEFAULT '{default}'"
    return ddl


def ensure_columns(conn: Connection) -> List[str]:
    """Add columns present on the models but missing from existing tables."""
    inspector = inspect(conn)
    added = []
    for table in Base.metadata.sorted_tables:
        existing = {col["name"] for col in inspector.get_columns(table.name)}
        missing = [col for col in table.columns if col.name not in existing]
        for column in missing:
            conn.execute(text(f"ALTER TABLE {table.name} ADD COLUMN {_column_ddl(column, conn.dialect)}"))
            added.append(f"{table.name}.{column.name}")
            logger.info(f"Added column {table.name}.{column.name}")
        if missing:
            for index in table.indexes:
                index.create(conn, checkfirst=True)
    return added


def seed_categories(conn: Connection) -> None:
    count = conn.execute(select(func.count()).select_from(Category)).scalar_one()
    if count:
        return
    conn.execute(insert(Category), DEFAULT_CATEGORIES)
    logger.info(f"Seeded {len(DEFAULT_CATEGORIES)} default categories")


def _legacy_kinds_to_other(conn: Connection) -> None:
    for legacy_kind, category in LEGACY_KIND_CATEGORIES.items():
        result = conn.execute(
            update(Entry)
            .where(Entry.kind == legacy_kind)
            .values(kind=EntryKind.other.value, category=category)
        )
        if result.rowcount:
            logger.info(f"Moved {result.rowcount} '{legacy_kind}' entries to other/{category}")


MIGRATIONS: List[Tuple[int, str, Callable[[Connection], None]]] = [
    (1, "legacy_kinds_to_other", _legacy_kinds_to_other),
]


def applied_versions(conn: Connection) -> set:
    return set(conn.execute(select(SchemaMigration.version)).scalars().all())


def apply_pending(conn: Connection) -> List[str]:
    """Run every versioned migration not yet recorded, in version order."""
    done = applied_versions(conn)
    applied = []
    for version, name, step in sorted(MIGRATIONS, key=lambda m: m[0]):
        if version in done:
            continue
        step(conn)
        conn.execute(
            insert(SchemaMigration).values(version=version, name=name, applied_at=utc_now_iso())
        )
        applied.append(name)
    return applied


EXAMPLE_ENTRIES = [
    {
        "slug": "design-system-overhaul",
        "title": "Design system & UI consistency overhaul",
        "subtitle": "Scaling a B2B HR platform with a component-first approach",
        "summary": "Built a reusable component library and patterns to improve consistency, "
                   "accessibility, and speed of delivery.",
        "role": "UI/UX Designer (Product)",
        "timeframe": "2024",
        "tools": "Figma, Design tokens, Component library",
        "tags": "Design System, UI, Accessibility",
        "body_markdown": (
            "## Context\n"
            "A complex B2B HR platform had accumulated inconsistent, duplicated UI patterns.\n\n"
            "## What I did\n"
            "- Audited UI patterns and documented inconsistencies\n"
            "- Created core components (buttons, inputs, tables, modals)\n"
            "- Defined typography/spacing and interaction patterns\n\n"
            "## Outcome\n"
            "- Faster design to dev handoff\n"
            "- Cleaner UI and fewer edge-case bugs\n"
        ),
        "kind": EntryKind.project.value,
        "category": None,
        "date": "2024-06-01",
    },
    {
        "slug": "building-a-drawer-component",
        "title": "Building a Drawer Component",
        "subtitle": "A reusable pattern for dense B2B workflows",
        "summary": "A practical breakdown of the UX decisions behind a robust drawer pattern.",
        "tags": "Components, UX",
        "body_markdown": (
            "## Why drawers?\n"
            "Drawers keep context while editing details.\n\n"
            "## Key decisions\n"
            "- Focus management\n"
            "- Escape/backdrop behaviour\n"
            "- Scroll handling\n"
        ),
        "kind": EntryKind.other.value,
        "category": "components",
        "date": "2025-12-01",
    },
]


def seed_entries(conn: Connection) -> None:
    """Insert draft examples into an empty database."""
    count = conn.execute(select(func.count()).select_from(Entry)).scalar_one()
    if count:
        return
    now = utc_now_iso()
    for example in EXAMPLE_ENTRIES:
        conn.execute(
            insert(Entry).values(published=False, created_at=now, updated_at=now, **example)
        )
    logger.info(f"Seeded {len(EXAMPLE_ENTRIES)} example entries")
