from contextlib import asynccontextmanager
import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from portfolio import config
from portfolio.database import init_db
from portfolio.routers import admin, auth, site
from portfolio.services.auth import LoginRequired
from portfolio.services.throttle import LoginThrottle
from portfolio.templating import templates

logger = logging.getLogger(__name__)

SESSION_MAX_AGE = 60 * 60 * 12


class CachedStaticFiles(StaticFiles):
    """Static files with a Cache-Control header in production."""

    def __init__(self, *args, max_age: int = 0, immutable: bool = False, **kwargs):
        super().__init__(*args, **kwargs)
        self.max_age = max_age
        self.immutable = immutable

    def file_response(self, *args, **kwargs):
        response = super().file_response(*args, **kwargs)
        if config.is_production() and self.max_age:
            value = f"public, max-age={self.max_age}"
            if self.immutable:
                value += ", immutable"
            response.headers["Cache-Control"] = value
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup; a failure aborts startup."""
    try:
        await init_db()
    except Exception:
        logger.exception("Database initialization failed")
        raise
    config.get_upload_dir().mkdir(parents=True, exist_ok=True)
    if not config.get_admin_password_hash():
        logger.warning("ADMIN_PASSWORD_HASH is not set; admin login is disabled")
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Portfolio", version="0.1.0", lifespan=lifespan)
    app.state.login_throttle = LoginThrottle()

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        SessionMiddleware,
        secret_key=config.get_session_secret(),
        session_cookie="portfolio_session",
        max_age=SESSION_MAX_AGE,
        same_site="lax",
        https_only=config.cookie_secure(),
    )
    if config.trust_proxy():
        app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

    static_dir = Path(__file__).parent / "static"
    app.mount("/public", CachedStaticFiles(directory=str(static_dir), max_age=60 * 60 * 24 * 30), name="public")
    # uploaded files are named randomly and never rewritten
    app.mount(
        "/uploads",
        CachedStaticFiles(
            directory=str(config.get_upload_dir()),
            check_dir=False,
            max_age=60 * 60 * 24 * 365,
            immutable=True,
        ),
        name="uploads",
    )

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired):
        return RedirectResponse(url=exc.location, status_code=303)

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return templates.TemplateResponse(request, "404.html", {}, status_code=404)
        return await http_exception_handler(request, exc)

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    app.include_router(auth.router)
    app.include_router(admin.router)
    app.include_router(site.router)
    return app


app = create_app()
