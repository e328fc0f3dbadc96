from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates

from marketplace_onboarding.core.config import settings

_DEFAULT_DIR = Path(__file__).resolve().parents[1] / "templates"

templates = Jinja2Templates(directory=settings.TEMPLATES_DIR or str(_DEFAULT_DIR))


def render_page(request: Request, name: str, context: dict | None = None, status_code: int = 200):
    return templates.TemplateResponse(request, name, context or {}, status_code=status_code)


def render_error(
    request: Request,
    status_code: int,
    title: str,
    message: str,
    *,
    error_code: str | None = None,
):
    response = render_page(
        request,
        "error.html",
        {"error_title": title, "error_message": message},
        status_code=status_code,
    )
    if error_code:
        response.headers["X-Error-Code"] = error_code
    return response
