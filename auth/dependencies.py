"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The gate middleware does the real checking. These helpers only read what it
left behind:

  get_identity() returns the AuthenticatedIdentity stored on request.state by
      ApiGate/WebGate and raises HTTP 401 if there is none (a route that was
      accidentally left outside every gate fails closed).

  try_get_current_account() is the soft variant for page rendering: it falls
      back to AuthService.resolve() on the session cookie and returns None
      instead of raising. It is exposed as a Jinja2 global so every template
      can show the signed-in account.

Layer rule: no imports from web/ or catalog/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.gates import first_cookie
from auth.models import Account, AuthenticatedIdentity
from auth.service import AuthService
from auth.tokens import SESSION_COOKIE


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_identity(request: Request) -> AuthenticatedIdentity:
    """Require a gate-verified identity. Raises HTTP 401 if absent.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: AuthenticatedIdentity = Depends(get_identity)): ...
    """
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise HTTPException(status_code=401, detail="Authentication required.")
    return identity


def try_get_current_account(request: Request) -> Account | None:
    """Return the signed-in account for this request, or None. Never raises."""
    identity = getattr(request.state, "identity", None)
    if identity is not None:
        return identity.account
    token = first_cookie(request, SESSION_COOKIE)
    if not token:
        return None
    return get_auth_service(request).resolve(token)
