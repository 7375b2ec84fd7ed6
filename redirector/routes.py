"""HTTP route handlers (FastAPI APIRouter).

A single catch-all route answers every path and method with a permanent
redirect to the target configured on the application.
"""

import logging
import posixpath
from urllib.parse import quote, urlsplit

from fastapi import APIRouter, Request
from starlette.responses import Response

logger = logging.getLogger("redirector.routes")

router = APIRouter()

ALL_METHODS = [
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "OPTIONS",
    "TRACE",
    "CONNECT",
]

_HTML_ESCAPES = str.maketrans(
    {"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&#34;", "'": "&#39;"}
)


def escape_non_ascii(value: str) -> str:
    """Percent-encode the UTF-8 bytes of every non-ASCII character."""
    return "".join(c if ord(c) < 0x80 else quote(c, safe="") for c in value)


def html_escape(value: str) -> str:
    return value.translate(_HTML_ESCAPES)


def resolve_target(request_path: str, target: str) -> str:
    """Resolve a scheme-less, host-less target against the request path.

    Relative targets are joined to the directory of the request path and
    the result is cleaned, keeping a trailing slash and the query string.
    """
    parts = urlsplit(target)
    if parts.scheme or parts.netloc:
        return target

    old_path = request_path or "/"
    if not target.startswith("/"):
        old_dir = old_path[: old_path.rfind("/") + 1]
        target = old_dir + target

    target, sep, query = target.partition("?")
    trailing = target.endswith("/")
    target = posixpath.normpath(target)
    # normpath keeps a leading "//", which would read as a host.
    if target.startswith("//"):
        target = "/" + target.lstrip("/")
    if trailing and not target.endswith("/"):
        target += "/"
    return target + sep + query


def redirect(request: Request, target: str, status_code: int) -> Response:
    location = resolve_target(request.url.path, escape_non_ascii(target))
    if request.method in ("GET", "HEAD"):
        body = '<a href="%s">%s</a>.\n\n' % (
            html_escape(location),
            "Moved Permanently",
        )
        return Response(
            content=body,
            status_code=status_code,
            headers={"Location": location},
            media_type="text/html",
        )
    return Response(status_code=status_code, headers={"Location": location})


@router.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
async def catch_all(request: Request, path: str):
    target = request.app.state.settings.redirect
    logger.debug("Redirecting %s /%s to %s", request.method, path, target)
    return redirect(request, target, 301)
