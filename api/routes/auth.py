"""
api/routes/auth.py -- Registration, login and logout REST endpoints.

Routes:
  POST /api/auth/register  -- create an account; 201, 409 if the email is taken
  POST /api/auth/login     -- password login; returns the token and sets the cookie
  POST /api/auth/logout    -- forget the presented token and expire the cookie

All three sit under /api/auth/, which ApiGate treats as public.

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] AuthService.login() runs bcrypt even for unknown emails -- never inline
       the lookup here.
  [M5] Cache-Control: no-store on login responses.

AuthError subclasses raised by AuthService are translated into the ApiResponse
envelope by the handler in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AccountData, LoginRequest, RegisterRequest, TokenData, success
from auth.dependencies import get_auth_service
from auth.gates import first_cookie
from auth.tokens import SESSION_COOKIE, clear_session_cookie, set_session_cookie
from core.config import get_settings

router = APIRouter()

_BEARER_PREFIX = "Bearer "


@router.post("/auth/register", status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account. Does not log the new account in."""
    account = get_auth_service(request).register(body.name, body.email, body.password)
    return JSONResponse(
        status_code=201,
        content=success("Registration succeeded.", AccountData.from_account(account).model_dump()),
    )


@limiter.limit(get_settings().login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Any session the account already had is revoked first (single active
    session per account). The new token is returned in the body for API
    clients and set as the session cookie for browsers.
    """
    auth = get_auth_service(request)
    session = auth.login(body.email, body.password)
    lifetime = auth.codec.lifetime_seconds
    resp = JSONResponse(
        content=success(
            "Login succeeded.",
            TokenData(token=session.token, expires_in=lifetime).model_dump(),
        )
    )
    set_session_cookie(resp, session.token, lifetime)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout")
def logout(request: Request) -> JSONResponse:
    """Revoke the presented token (bearer header first, then cookie) and expire the cookie.

    Succeeds even when no token, an unknown token or an expired token is sent.
    """
    header = request.headers.get("Authorization", "")
    token = header[len(_BEARER_PREFIX) :] if header.startswith(_BEARER_PREFIX) else None
    token = token or first_cookie(request, SESSION_COOKIE)
    if token:
        get_auth_service(request).logout(token)
    resp = JSONResponse(content=success("Logout succeeded."))
    clear_session_cookie(resp)
    return resp
