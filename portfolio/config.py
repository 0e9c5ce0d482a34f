"""Environment-driven settings.

Values are read on every call so tests (and a running process) can change them
through the environment without re-importing modules.
"""
import os
from pathlib import Path
from typing import Optional

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./data/portfolio.db"
DEFAULT_SESSION_SECRET = "dev-secret-change-me"
DEFAULT_PORT = 3020


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def get_environment() -> str:
    return os.getenv("ENVIRONMENT", "development").strip().lower()


def is_production() -> bool:
    return get_environment() == "production"


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_admin_password_hash() -> Optional[str]:
    return os.getenv("ADMIN_PASSWORD_HASH") or None


def get_site_password_hash() -> Optional[str]:
    return os.getenv("SITE_PASSWORD_HASH") or None


def is_site_gated() -> bool:
    """The viewer gate is only active when a viewer password hash is configured."""
    return get_site_password_hash() is not None


def get_session_secret() -> str:
    return os.getenv("SESSION_SECRET") or DEFAULT_SESSION_SECRET


def cookie_secure() -> bool:
    return _flag("COOKIE_SECURE") or is_production()


def trust_proxy() -> bool:
    return _flag("TRUST_PROXY")


def get_site_url() -> str:
    """Public base URL without a trailing slash, or "" when unset."""
    return os.getenv("SITE_URL", "").strip().rstrip("/")


def get_port() -> int:
    return int(os.getenv("PORT", DEFAULT_PORT))


def get_upload_dir() -> Path:
    return Path(os.getenv("UPLOAD_DIR", "./uploads"))


def get_site_name() -> str:
    return os.getenv("SITE_NAME", "Portfolio")


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()
