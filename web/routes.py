"""
web/routes.py -- Jinja2 template routes for the shopgate web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same stores, same AuthService) but authenticate with the "token"
cookie instead of a bearer header. WebGate has already run by the time a
protected handler executes; the handlers only read the identity it left.

Route registration order matters: GET /products/mine must be registered
before GET /products/{product_id} or FastAPI captures "mine" as a path param.

Routes:
  GET  /                      -- product list (auth required)
  GET  /products/mine         -- the signed-in seller's products (auth required)
  GET  /products/{product_id} -- product detail (auth required)
  GET  /auth/login            -- login form
  POST /auth/login            -- handle password login, set cookie, redirect
  GET  /auth/register         -- registration form
  POST /auth/register         -- create account, redirect to login
  POST /auth/logout           -- revoke token, expire cookie, redirect to login
  GET  /error                 -- generic error page (public)
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from api.limiter import limiter
from auth.dependencies import get_auth_service, get_identity, try_get_current_account
from auth.errors import EmailAlreadyRegistered, InvalidCredentials
from auth.gates import first_cookie
from auth.tokens import SESSION_COOKIE, clear_session_cookie, set_session_cookie
from catalog.store import ProductStore
from core.config import get_settings
from web.redirects import sanitize_redirect

logger = logging.getLogger("shopgate.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
# Expose try_get_current_account as a Jinja2 global so layout.html can show the
# signed-in account without every handler passing it explicitly. It calls
# AuthService.resolve(), which never raises, so a bad cookie cannot break a page.
templates.env.globals["current_account"] = try_get_current_account
router = APIRouter()

LOGIN_PATH = "/auth/login"

# Whitelist mapping for ?error= / ?notice= query params on the auth pages [M3].
# The raw query param is NEVER passed to templates -- only the message from
# these dicts is. Prevents reflected XSS via crafted query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "bad_credentials": "Invalid email or password.",
    "email_taken": "That email is already registered.",
    "invalid_form": "Please fill in every field. Passwords need at least 8 characters.",
}
_NOTICE_MESSAGES: dict[str, str] = {
    "registered": "Account created. Please log in.",
    "logged_out": "You have been logged out.",
}


def _login_url(error: str, redirect_to: str) -> str:
    url = f"{LOGIN_PATH}?error={error}"
    if redirect_to != "/":
        url += f"&redirect={quote(redirect_to, safe='')}"
    return url


# ---------------------------------------------------------------------------
# Protected pages
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    products: ProductStore = request.app.state.products
    return templates.TemplateResponse(
        request,
        "home.html",
        {"products": products.list_products(), "heading": "All products"},
    )


@router.get("/products/mine", response_class=HTMLResponse)
def my_products(request: Request) -> HTMLResponse:
    identity = get_identity(request)
    products: ProductStore = request.app.state.products
    return templates.TemplateResponse(
        request,
        "home.html",
        {"products": products.list_by_owner(identity.account.id), "heading": "My products"},
    )


@router.get("/products/{product_id}", response_class=HTMLResponse)
def product_detail(request: Request, product_id: int) -> HTMLResponse:
    product = request.app.state.products.get_product(product_id)
    if product is None:
        return RedirectResponse("/", status_code=302)
    return templates.TemplateResponse(request, "product_detail.html", {"product": product})


# ---------------------------------------------------------------------------
# Auth pages
# ---------------------------------------------------------------------------


@router.get("/auth/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login form.

    Already signed-in visitors go straight to the (sanitized) redirect target.
    The sanitized value is also the hidden form field, so whatever reaches the
    template is already a safe local path.
    """
    redirect_to = sanitize_redirect(request.query_params.get("redirect"))  # [C2]
    if try_get_current_account(request) is not None:
        return RedirectResponse(redirect_to, status_code=302)
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "redirect_to": redirect_to,
            "error_msg": _ERROR_MESSAGES.get(request.query_params.get("error", "")),
            "notice_msg": _NOTICE_MESSAGES.get(request.query_params.get("notice", "")),
        },
    )


@limiter.limit(get_settings().login_rate_limit)  # [H2]
@router.post("/auth/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    redirect: Optional[str] = Form(default=None),
) -> RedirectResponse:
    """Handle the login form: set the session cookie and return to the target page."""
    redirect_to = sanitize_redirect(redirect)  # [C2]
    auth = get_auth_service(request)
    try:
        session = auth.login(email, password)
    except InvalidCredentials:
        return RedirectResponse(_login_url("bad_credentials", redirect_to), status_code=302)

    resp = RedirectResponse(redirect_to, status_code=302)
    set_session_cookie(resp, session.token, auth.codec.lifetime_seconds)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.get("/auth/register", response_class=HTMLResponse)
def register_form(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "register.html",
        {"error_msg": _ERROR_MESSAGES.get(request.query_params.get("error", ""))},
    )


@router.post("/auth/register", response_class=HTMLResponse)
def register_post(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
) -> RedirectResponse:
    if not name.strip() or "@" not in email or not 8 <= len(password) <= 72:
        logger.info("Registration form rejected: invalid fields")
        return RedirectResponse("/auth/register?error=invalid_form", status_code=302)
    try:
        get_auth_service(request).register(name, email, password)
    except EmailAlreadyRegistered:
        return RedirectResponse("/auth/register?error=email_taken", status_code=302)
    return RedirectResponse(f"{LOGIN_PATH}?notice=registered", status_code=302)


@router.post("/auth/logout")
def logout(request: Request) -> RedirectResponse:
    """Revoke the cookie's token server-side and expire the cookie (Max-Age=0)."""
    token = first_cookie(request, SESSION_COOKIE)
    if token:
        get_auth_service(request).logout(token)
    resp = RedirectResponse(f"{LOGIN_PATH}?notice=logged_out", status_code=302)
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Error page
# ---------------------------------------------------------------------------


@router.get("/error", response_class=HTMLResponse)
def error_page(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "error.html", {})
