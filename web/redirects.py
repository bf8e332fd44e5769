"""
web/redirects.py -- Validation of client-supplied post-login targets. [C2]

The "redirect" value arrives from a query parameter or a hidden form field and
ends up both in a Location header and in the login form as the default
target. Without this check /auth/login?redirect=//attacker.com would send a
freshly signed-in user off-site.
"""

from __future__ import annotations

from urllib.parse import unquote

_FALLBACK = "/"


def sanitize_redirect(raw: str | None) -> str:
    """Return a safe local path to redirect to after login.

    The value is percent-decoded exactly once and accepted only if it:
    - is non-empty
    - starts with a single "/" (a leading "//" is protocol-relative, off-site)
    - does not contain ".." (no path traversal)
    Anything else, including undecodable input, becomes "/".
    """
    if not raw:
        return _FALLBACK
    try:
        decoded = unquote(raw, errors="strict")
    except UnicodeDecodeError:
        return _FALLBACK
    if not decoded or not decoded.startswith("/") or decoded.startswith("//"):
        return _FALLBACK
    if ".." in decoded:
        return _FALLBACK
    return decoded
