import logging
from typing import Optional
from urllib.parse import quote

from fastapi import Request
from passlib.context import CryptContext
from starlette.concurrency import run_in_threadpool

from portfolio import config
from portfolio.services.throttle import LoginThrottle

logger = logging.getLogger(__name__)

# pbkdf2_sha256 keeps hashing in pure Python, no bcrypt backend needed
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ADMIN_SESSION_KEY = "is_admin"
SITE_SESSION_KEY = "site_access"


class PasswordNotConfigured(Exception):
    pass


class LoginRequired(Exception):
    """Raised by a gate; the app turns it into a redirect to the login form."""

    def __init__(self, login_path: str, next_path: str):
        super().__init__(login_path)
        self.login_path = login_path
        self.next_path = next_path

    @property
    def location(self) -> str:
        return f"{self.login_path}?next={quote(self.next_path, safe='')}"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


async def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Slow salted comparison, run off the event loop.

    Raises PasswordNotConfigured when there is no usable hash to compare against.
    """
    if not password_hash:
        raise PasswordNotConfigured("No password hash configured")
    try:
        return await run_in_threadpool(pwd_context.verify, password or "", password_hash)
    except ValueError as e:
        raise PasswordNotConfigured(f"Configured password hash is not usable: {e}")


async def check_admin_password(password: str) -> bool:
    return await verify_password(password, config.get_admin_password_hash())


async def check_site_password(password: str) -> bool:
    if not config.is_site_gated():
        return True
    return await verify_password(password, config.get_site_password_hash())


def safe_next(value: Optional[str], fallback: str) -> str:
    """Accept only same-origin relative paths as a post-login target."""
    candidate = str(value or "")
    if candidate.startswith("/") and not candidate.startswith("//") and "\\" not in candidate:
        return candidate
    return fallback


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def requested_path(request: Request) -> str:
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


def get_throttle(request: Request) -> LoginThrottle:
    return request.app.state.login_throttle


async def require_admin(request: Request) -> None:
    if request.session.get(ADMIN_SESSION_KEY):
        return
    raise LoginRequired("/auth/login", requested_path(request))


async def require_site_access(request: Request) -> None:
    if not config.is_site_gated():
        return
    if request.session.get(SITE_SESSION_KEY):
        return
    raise LoginRequired("/auth/site-login", requested_path(request))
