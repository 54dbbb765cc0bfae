"""Reads and writes session cookies on werkzeug requests and responses."""

from typing import Optional

from werkzeug.wrappers import Request, Response

from .domain import CookieOptions


def read_cookie(request: Request, name: str) -> Optional[str]:
    """Get the value of the cookie ``name``, if the client sent one."""
    value: Optional[str] = request.cookies.get(name)
    return value


def write_cookie(response: Response, name: str, value: str,
                 options: CookieOptions) -> None:
    """Set the cookie ``name`` on ``response`` with the session's options."""
    response.set_cookie(name, value,
                        max_age=options.max_age,
                        expires=options.expires(),
                        path=options.path,
                        domain=options.domain,
                        secure=options.secure,
                        httponly=options.http_only,
                        samesite=options.same_site)


def expire_cookie(response: Response, name: str,
                  options: CookieOptions) -> None:
    """
    Clear the cookie ``name`` on the client.

    The cookie is written with an empty value, ``Max-Age=0`` and an expiry in
    1970, so that clients discard it immediately.
    """
    response.set_cookie(name, '',
                        max_age=0,
                        expires=0,
                        path=options.path,
                        domain=options.domain,
                        secure=options.secure,
                        httponly=options.http_only,
                        samesite=options.same_site)
