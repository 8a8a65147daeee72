"""
web/routes.py -- Jinja2 template routes for the Stockify web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same auth store) but return HTML instead of JSON.

Routes:
  GET  /                      -- public entry: login page
  GET  /login                 -- login page (same page, never guarded)
  GET  /dashboard             -- dashboard home (guarded)
  GET  /dashboard/{section}   -- dashboard section (guarded)

Authentication for /dashboard is done by auth/guard.py before routing. By the
time a dashboard handler runs, the guard has verified the token and set
x-user-id / x-user-email. session_context() turns those headers into a
SessionContext and the handlers receive it through Depends().

The login page posts to /api/v1/auth/login from the browser, keeps the token
in the authToken cookie and navigates to /dashboard.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.guard import USER_EMAIL_HEADER, USER_ID_HEADER
from auth.models import SessionContext
from auth.permissions import MODULES
from auth.store import AuthStore
from core.config import get_settings

logger = logging.getLogger("stockify.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_SECTION_TITLES: dict[str, str] = {
    "dashboard": "Overview",
    "products": "Products",
    "users": "Users",
    "orders": "Orders",
    "stocks": "Stock",
    "sales": "Sales",
    "reports": "Reports",
    "suppliers": "Suppliers",
    "categories": "Categories",
}


# ---------------------------------------------------------------------------
# Session context
# ---------------------------------------------------------------------------


def session_context(request: Request) -> Optional[SessionContext]:
    """Build the caller's SessionContext from the guard's identity headers.

    Returns None when the headers are missing or malformed, which only happens
    if the route was reached without passing through the guard (for example a
    protected prefix removed from settings). Handlers redirect in that case.
    """
    raw_id = request.headers.get(USER_ID_HEADER)
    email = request.headers.get(USER_EMAIL_HEADER)
    if not raw_id or not email:
        return None
    try:
        user_id = int(raw_id)
    except ValueError:
        logger.warning("Discarding malformed %s header", USER_ID_HEADER)
        return None
    store: AuthStore = request.app.state.auth_store
    return SessionContext(user_id=user_id, email=email, permissions=store.get_permissions_for_user(user_id))


def _readable_sections(ctx: SessionContext) -> list[dict]:
    """Navigation entries for every module the caller may read."""
    return [
        {"slug": module, "title": _SECTION_TITLES[module]}
        for module in MODULES
        if ctx.permissions.get(module) is not None and ctx.permissions[module].read
    ]


# ---------------------------------------------------------------------------
# Public pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request) -> HTMLResponse:
    """Render the login page. Public; the guard never intercepts it."""
    return templates.TemplateResponse(
        request,
        "login.html",
        {"cookie_name": get_settings().auth_cookie_name},
    )


# ---------------------------------------------------------------------------
# Dashboard (guarded)
# ---------------------------------------------------------------------------


def _render_dashboard(request: Request, ctx: SessionContext, section: str) -> HTMLResponse:
    slug = section.split("/", 1)[0]
    allowed = slug not in MODULES or slug == "dashboard" or ctx.permissions[slug].read
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "ctx": ctx,
            "section": section,
            "title": _SECTION_TITLES.get(slug, section),
            "allowed": allowed,
            "nav": _readable_sections(ctx),
        },
        status_code=200 if allowed else 403,
    )


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, ctx: Optional[SessionContext] = Depends(session_context)) -> HTMLResponse:
    if ctx is None:
        return RedirectResponse(get_settings().public_entry_path, status_code=302)
    return _render_dashboard(request, ctx, "dashboard")


@router.get("/dashboard/{section:path}", response_class=HTMLResponse)
def dashboard_section(
    request: Request,
    section: str,
    ctx: Optional[SessionContext] = Depends(session_context),
) -> HTMLResponse:
    """Render one dashboard section. Sections backed by a module require read permission on it."""
    if ctx is None:
        return RedirectResponse(get_settings().public_entry_path, status_code=302)
    return _render_dashboard(request, ctx, section.strip("/") or "dashboard")
