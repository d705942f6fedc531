from typing import Any
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse

from eiga.core.errors import STATUS_BY_KIND, CoreError, ErrorKind

NO_STORE = {"cache-control": "no-store"}


def wants_json(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    content_type = request.headers.get("content-type", "")
    return "application/json" in accept or "application/json" in content_type


def json_ok(status_code: int = 200, **body: Any) -> JSONResponse:
    return JSONResponse({"ok": True, **body}, status_code=status_code, headers=NO_STORE)


def json_error(kind: ErrorKind, status_code: int | None = None, **body: Any) -> JSONResponse:
    status_code = status_code or STATUS_BY_KIND[kind]
    return JSONResponse({"ok": False, "error": kind.value, **body}, status_code=status_code, headers=NO_STORE)


def redirect(path: str, **params: Any) -> RedirectResponse:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    return RedirectResponse(url=f"{path}?{query}" if query else path, status_code=303)


def error_response(request: Request, exc: CoreError, fallback_path: str = "/") -> JSONResponse | RedirectResponse:
    if wants_json(request):
        return json_error(exc.kind)
    if exc.kind is ErrorKind.UNAUTHORIZED:
        return redirect("/login")
    return redirect(fallback_path, error=exc.kind.value)
