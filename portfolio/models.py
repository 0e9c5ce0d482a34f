from sqlalchemy import Column, Integer, String, Text, Boolean
from datetime import datetime, timezone
import enum
from portfolio.database import Base


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp used for every audit column."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


class EntryKind(str, enum.Enum):
    project = "project"
    lab = "lab"
    other = "other"
    # Legacy kinds, folded into `other` by the legacy_kinds_to_other migration
    writing = "writing"
    component = "component"
    ux = "ux"


# Kinds rendered under /project/<slug>
PROJECT_KINDS = (EntryKind.project.value, EntryKind.lab.value)


class Entry(Base):
    __tablename__ = "entries"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String, unique=True, nullable=False, index=True)
    title = Column(String, nullable=False)
    subtitle = Column(String, default="", server_default="")
    summary = Column(Text, default="", server_default="")
    role = Column(String, default="", server_default="")
    timeframe = Column(String, default="", server_default="")
    tools = Column(String, default="", server_default="")
    tags = Column(String, default="", server_default="")
    hero_image = Column(String, default="", server_default="")  # /uploads/<name> or external URL
    external_url = Column(String, default="", server_default="")
    body_markdown = Column(Text, default="", server_default="")
    published = Column(Boolean, default=False, server_default="0", nullable=False, index=True)
    kind = Column(String, default=EntryKind.project.value, server_default=EntryKind.project.value, nullable=False, index=True)
    category = Column(String, nullable=True)  # Category.key, only for kind=other
    date = Column(String, nullable=True)  # author-supplied display date
    created_at = Column(String, nullable=False, default=utc_now_iso)
    updated_at = Column(String, nullable=False, default=utc_now_iso)


class Category(Base):
    """Topic used to group `other` entries on the home page."""
    __tablename__ = "categories"

    key = Column(String, primary_key=True)
    label = Column(String, nullable=False)
    order_index = Column(Integer, nullable=False, default=0, server_default="0")


class PageView(Base):
    __tablename__ = "analytics_page_views"

    key = Column(String, primary_key=True)  # home | item:<slug>
    type = Column(String, nullable=False)  # 'home' or 'item'
    slug = Column(String, nullable=True)
    path = Column(String, nullable=True)
    count = Column(Integer, nullable=False, default=0, server_default="0")
    updated_at = Column(String, nullable=False, default=utc_now_iso)


class OutboundClick(Base):
    __tablename__ = "analytics_outbound_clicks"

    key = Column(String, primary_key=True)  # out:<slug>:<url>
    slug = Column(String, nullable=True)
    url = Column(String, nullable=False)
    source = Column(String, nullable=True)
    count = Column(Integer, nullable=False, default=0, server_default="0")
    updated_at = Column(String, nullable=False, default=utc_now_iso)


class NavClick(Base):
    __tablename__ = "analytics_nav_clicks"

    key = Column(String, primary_key=True)  # nav:<section>
    section = Column(String, nullable=False)
    href = Column(String, nullable=True)
    count = Column(Integer, nullable=False, default=0, server_default="0")
    updated_at = Column(String, nullable=False, default=utc_now_iso)


class SchemaMigration(Base):
    __tablename__ = "schema_migrations"

    version = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    applied_at = Column(String, nullable=False, default=utc_now_iso)
