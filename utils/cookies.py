"""
Session cookie parsing and Set-Cookie construction.
"""

import time
from email.utils import formatdate
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote, unquote

COOKIE_ACCESS = "access_token"
COOKIE_REFRESH = "refresh_token"

DEFAULT_MAX_AGE_SECONDS = 7 * 24 * 60 * 60


def parse_cookie_header(header: Optional[str]) -> Dict[str, str]:
    """
    Parse a Cookie header into a name -> value dict.

    Values are percent-decoded; pairs without a name or value are ignored.
    """
    cookies: Dict[str, str] = {}
    if not header:
        return cookies

    for pair in header.split(";"):
        name, sep, value = pair.strip().partition("=")
        if name and sep and value:
            cookies[name] = unquote(value)
    return cookies


def parse_cookies(headers: Iterable[Optional[str]]) -> Dict[str, str]:
    """Merge several Cookie headers (later ones win)."""
    cookies: Dict[str, str] = {}
    for header in headers:
        cookies.update(parse_cookie_header(header))
    return cookies


def build_set_cookie(
    name: str,
    value: str,
    max_age: int = DEFAULT_MAX_AGE_SECONDS,
    secure: bool = True,
    same_site: str = "Lax",
    domain: Optional[str] = None,
    path: str = "/",
    http_only: bool = True,
) -> str:
    """Render one Set-Cookie header value."""
    parts = [
        f"{name}={quote(value, safe='')}",
        f"Max-Age={max_age}",
        f"Expires={formatdate(time.time() + max_age, usegmt=True)}",
        f"Path={path}",
    ]
    if domain:
        parts.append(f"Domain={domain}")
    if http_only:
        parts.append("HttpOnly")
    if secure:
        parts.append("Secure")
    if same_site:
        parts.append(f"SameSite={same_site.capitalize()}")
    return "; ".join(parts)


def session_cookies(
    access_token: str,
    refresh_token: Optional[str],
    secure: bool = True,
    same_site: str = "Lax",
    max_age: int = DEFAULT_MAX_AGE_SECONDS,
    domain: Optional[str] = None,
) -> List[str]:
    """Set-Cookie values carrying the access and refresh tokens."""
    cookies = [
        build_set_cookie(COOKIE_ACCESS, access_token, max_age, secure, same_site, domain)
    ]
    if refresh_token:
        cookies.append(
            build_set_cookie(
                COOKIE_REFRESH, refresh_token, max_age, secure, same_site, domain
            )
        )
    return cookies


def cleared_session_cookies(
    secure: bool = True, same_site: str = "Lax", domain: Optional[str] = None
) -> List[str]:
    """Set-Cookie values that expire both session cookies."""
    return [
        build_set_cookie(name, "", 0, secure, same_site, domain)
        for name in (COOKIE_ACCESS, COOKIE_REFRESH)
    ]
