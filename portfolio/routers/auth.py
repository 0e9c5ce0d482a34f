import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from portfolio.services.auth import (
    ADMIN_SESSION_KEY,
    SITE_SESSION_KEY,
    PasswordNotConfigured,
    check_admin_password,
    check_site_password,
    client_address,
    get_throttle,
    safe_next,
)
from portfolio.services.throttle import LoginThrottle, ThrottleDecision
from portfolio.templating import templates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

LOCKED_MESSAGE = "Too many attempts. Try again later."
WRONG_PASSWORD_MESSAGE = "Wrong password"


def _render(request: Request, template: str, next_path: str, error: str = None, status_code: int = 200):
    return templates.TemplateResponse(
        request, template, {"error": error, "next": next_path}, status_code=status_code
    )


async def _login(request, throttle, template, password, next_path, checker, session_key):
    """Shared password-form flow for both gates."""
    address = client_address(request)
    if throttle.check(address) == ThrottleDecision.LOCKED:
        logger.warning(f"Rejected login from locked address {address}")
        return _render(request, template, next_path, LOCKED_MESSAGE, status.HTTP_429_TOO_MANY_REQUESTS)

    try:
        ok = await checker(password)
    except PasswordNotConfigured as e:
        logger.error(f"Login unavailable: {e}")
        return _render(request, template, next_path, str(e), status.HTTP_500_INTERNAL_SERVER_ERROR)

    if not ok:
        attempts = throttle.record_failure(address)
        logger.info(f"Failed login from {address} ({attempts} in window)")
        return _render(request, template, next_path, WRONG_PASSWORD_MESSAGE, status.HTTP_401_UNAUTHORIZED)

    throttle.reset(address)
    request.session[session_key] = True
    return RedirectResponse(url=next_path, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/login", response_class=HTMLResponse)
async def login_form(request: Request, next: str = None):
    return _render(request, "login.html", safe_next(next, "/admin"))


@router.post("/login")
async def login(
    request: Request,
    password: str = Form(""),
    next: str = Form(None),
    throttle: LoginThrottle = Depends(get_throttle),
):
    return await _login(
        request, throttle, "login.html", password, safe_next(next, "/admin"),
        check_admin_password, ADMIN_SESSION_KEY,
    )


@router.post("/logout")
async def logout(request: Request):
    request.session.clear()
    return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/site-login", response_class=HTMLResponse)
async def site_login_form(request: Request, next: str = None):
    return _render(request, "site_login.html", safe_next(next, "/"))


@router.post("/site-login")
async def site_login(
    request: Request,
    password: str = Form(""),
    next: str = Form(None),
    throttle: LoginThrottle = Depends(get_throttle),
):
    return await _login(
        request, throttle, "site_login.html", password, safe_next(next, "/"),
        check_site_password, SITE_SESSION_KEY,
    )
