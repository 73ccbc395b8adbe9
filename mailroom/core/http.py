from __future__ import annotations

from urllib.parse import quote, unquote

from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

FLASH_COOKIE = "_flash"


def see_other(location: str, flash_message: str | None = None) -> Response:
    """303 redirect, optionally carrying a one-shot flash message cookie."""
    response = RedirectResponse(url=location, status_code=303)
    if flash_message is not None:
        response.set_cookie(FLASH_COOKIE, quote(flash_message), httponly=True, samesite="strict")
    return response


def read_flash(request: Request) -> str | None:
    raw = request.cookies.get(FLASH_COOKIE)
    return unquote(raw) if raw else None


def clear_flash(response: Response) -> None:
    response.delete_cookie(FLASH_COOKIE, httponly=True, samesite="strict")
