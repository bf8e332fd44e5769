"""
auth/gates.py -- Request gates for API (bearer token) and web (cookie) traffic.

A gate is any callable ``(request) -> Allow | Reject``. The HTTP middleware in
api/main.py runs an ordered list of gates before routing: the first Reject
short-circuits the request with its response, an Allow carrying an identity
stores it in ``request.state.identity`` for the route handler.

Gates never raise for authentication problems. Internally each check raises
an AuthError subclass; __call__ converts it into a Reject. Storage errors are
not caught and reach FastAPI's catch-all handler.

Policy asymmetry (kept on purpose):
  ApiGate cross-checks the TokenStore row, so a logged-out token is rejected
  by the API immediately. WebGate only checks signature and expiry through
  AuthService.resolve(), so the same token keeps opening web pages until it
  expires. The browser cookie is cleared on logout, which covers the normal
  case; the API check covers stolen or copied tokens.

Layer rule: no imports from web/ or catalog/. fastapi is allowed here for
the Request/Response types, as in auth/dependencies.py.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Union
from urllib.parse import quote

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from auth.errors import AccountNotFound, AuthError, TokenExpired, TokenMalformed, TokenRevoked
from auth.models import AuthenticatedIdentity
from auth.service import AuthService
from auth.store import CredentialStore, TokenStore
from auth.tokens import SESSION_COOKIE, TokenCodec

logger = logging.getLogger("shopgate.auth.gates")

_BEARER_PREFIX = "Bearer "

API_PUBLIC_PATHS: frozenset[str] = frozenset({"/api/auth", "/api/health", "/error"})
API_PUBLIC_PREFIXES: tuple[str, ...] = ("/api/auth/", "/api/public/")

WEB_PUBLIC_PATHS: frozenset[str] = frozenset({"/error", "/favicon.ico"})
WEB_PUBLIC_PREFIXES: tuple[str, ...] = (
    "/auth/",
    "/api/",  # API traffic belongs to ApiGate
    "/static/",
    "/css/",
    "/js/",
    "/images/",
    "/uploads/",
    "/_",
)


@dataclass(frozen=True)
class Allow:
    identity: AuthenticatedIdentity | None = None


@dataclass(frozen=True)
class Reject:
    response: Response


GateResult = Union[Allow, Reject]
Gate = Callable[[Request], GateResult]


def _is_public(path: str, exact: Iterable[str], prefixes: Sequence[str]) -> bool:
    return path in exact or path.startswith(tuple(prefixes))


def fail_response(status_code: int, message: str) -> JSONResponse:
    """The structured failure body every API rejection uses."""
    return JSONResponse(
        status_code=status_code,
        content={"status": "fail", "message": message, "data": None},
    )


def first_cookie(request: Request, name: str) -> str | None:
    """Return the first cookie called name in the raw Cookie header(s).

    request.cookies keeps the LAST duplicate, so the header is parsed here.
    """
    for header in request.headers.getlist("cookie"):
        for chunk in header.split(";"):
            key, sep, value = chunk.partition("=")
            if sep and key.strip() == name:
                return value.strip()
    return None


# ---------------------------------------------------------------------------
# ApiGate
# ---------------------------------------------------------------------------


class ApiGate:
    """Bearer-token enforcement for paths under /api/.

    Check order (first failure wins):
      public path                               -> Allow
      no Authorization header                   -> 401
      not "Bearer <token>" / empty token        -> 401
      bad signature or structure                -> 401
      expired, or subject not an account id     -> 401
      no TokenStore row, or row for another id  -> 401 (revoked)
      account missing                           -> 404
      otherwise                                 -> Allow(identity)
    """

    scope_prefix = "/api"

    def __init__(
        self,
        codec: TokenCodec,
        tokens: TokenStore,
        accounts: CredentialStore,
        public_paths: Iterable[str] = API_PUBLIC_PATHS,
        public_prefixes: Sequence[str] = API_PUBLIC_PREFIXES,
    ) -> None:
        self.codec = codec
        self.tokens = tokens
        self.accounts = accounts
        self.public_paths = frozenset(public_paths)
        self.public_prefixes = tuple(public_prefixes)

    def applies_to(self, path: str) -> bool:
        return path == self.scope_prefix or path.startswith(self.scope_prefix + "/")

    def is_public(self, path: str) -> bool:
        return _is_public(path, self.public_paths, self.public_prefixes)

    def __call__(self, request: Request) -> GateResult:
        path = request.url.path
        if not self.applies_to(path) or self.is_public(path):
            return Allow()
        try:
            identity = self.authenticate(request.headers.get("Authorization"))
        except AuthError as exc:
            logger.info(
                "API request rejected: %s %s -> %d %s", request.method, path, exc.status_code, type(exc).__name__
            )
            return Reject(fail_response(exc.status_code, exc.message))
        return Allow(identity)

    def authenticate(self, header: str | None) -> AuthenticatedIdentity:
        """Run the bearer checks. Raises an AuthError subclass on failure."""
        if header is None:
            raise TokenMalformed("Authentication token not found.")
        if not header.startswith(_BEARER_PREFIX) or not header[len(_BEARER_PREFIX) :]:
            raise TokenMalformed("Authorization header must be 'Bearer <token>'.")
        token = header[len(_BEARER_PREFIX) :]

        if not self.codec.verify(token, ignore_expiration=True):
            raise TokenMalformed()

        account_id = self.codec.extract_account_id(token)
        if account_id is None:
            if not self.codec.verify(token):
                raise TokenExpired()
            raise TokenMalformed("Authentication token subject is invalid.")

        stored = self.tokens.find(token)
        if stored is None or stored.account_id != account_id:
            raise TokenRevoked()

        account = self.accounts.get_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        return AuthenticatedIdentity(account=account, token=token)


# ---------------------------------------------------------------------------
# WebGate
# ---------------------------------------------------------------------------


class WebGate:
    """Cookie enforcement for browser pages.

    Every failure is a 302 to the login page; a human reads the result, so
    malformed, expired and revoked tokens are not told apart.
    """

    def __init__(
        self,
        auth: AuthService,
        login_path: str = "/auth/login",
        public_paths: Iterable[str] = WEB_PUBLIC_PATHS,
        public_prefixes: Sequence[str] = WEB_PUBLIC_PREFIXES,
    ) -> None:
        self.auth = auth
        self.login_path = login_path
        self.public_paths = frozenset(public_paths)
        self.public_prefixes = tuple(public_prefixes)

    def is_public(self, path: str) -> bool:
        return _is_public(path, self.public_paths, self.public_prefixes)

    def login_redirect(self, path: str) -> str:
        """Login URL that returns to path afterwards. The root path gets no parameter."""
        if path in ("", "/"):
            return self.login_path
        return f"{self.login_path}?redirect={quote(path, safe='')}"

    def __call__(self, request: Request) -> GateResult:
        path = request.url.path
        if self.is_public(path):
            return Allow()

        token = first_cookie(request, SESSION_COOKIE)
        if not token:
            return Reject(RedirectResponse(self.login_redirect(path), status_code=302))

        account = self.auth.resolve(token)
        if account is None:
            # The stale cookie is left in place; only logout clears it.
            logger.debug("Web request with unusable session cookie: %s", path)
            return Reject(RedirectResponse(self.login_path, status_code=302))
        return Allow(AuthenticatedIdentity(account=account, token=token))


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


def run_gates(gates: Sequence[Gate], request: Request) -> Reject | None:
    """Run gates in order. Returns the first Reject, or None when all allow.

    The last identity produced by an allowing gate is stored on
    request.state.identity.
    """
    for gate in gates:
        result = gate(request)
        if isinstance(result, Reject):
            return result
        if result.identity is not None:
            request.state.identity = result.identity
    return None
