"""
Response headers for the onboarding pages and the JSON endpoints.

Onboarding pages carry the customer identifier in their URL and collect
contact details, so HTML responses are never cached and never send a
Referer. The pages only use inline styles and post back to themselves.
"""

from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from marketplace_onboarding.core.config import settings

_ALWAYS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def _is_html(response: Response) -> bool:
    return response.headers.get("content-type", "").startswith("text/html")


def _is_https(request: Request) -> bool:
    forwarded_proto = request.headers.get("X-Forwarded-Proto", "")
    return request.url.scheme == "https" or forwarded_proto.lower() == "https"


def security_headers_for(request: Request, response: Response) -> dict[str, str]:
    headers = dict(_ALWAYS)
    if _is_html(response):
        headers["Content-Security-Policy"] = settings.ONBOARDING_CSP
        headers["Cache-Control"] = "no-store"
    if _is_https(request):
        headers["Strict-Transport-Security"] = f"max-age={int(settings.HSTS_MAX_AGE)}; includeSubDomains"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if settings.SECURITY_HEADERS_ENABLED:
            for name, value in security_headers_for(request, response).items():
                response.headers.setdefault(name, value)
        return response
