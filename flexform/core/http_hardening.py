from __future__ import annotations

import logging
import re
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from flexform.core.errors import (
    DecryptionError,
    KeyManagerNotInitialized,
    RecordNotFound,
    StoreError,
    TemplateExists,
    TemplateNotFound,
    ValidationError,
)

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("flexform.http")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def _request_id_from_header(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value:
        return uuid4().hex
    if not _REQUEST_ID_RE.fullmatch(value):
        return uuid4().hex
    return value


def _error(status_code: int, detail: str, **extra) -> JSONResponse:
    payload = {"detail": detail}
    payload.update(extra)
    return JSONResponse(status_code=status_code, content=payload)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return _error(422, "Please fix the following errors", errors=exc.violations)

    @app.exception_handler(DecryptionError)
    async def _decryption_error(request: Request, exc: DecryptionError):
        return _error(401, "Wrong password")

    @app.exception_handler(KeyManagerNotInitialized)
    async def _key_manager_missing(request: Request, exc: KeyManagerNotInitialized):
        _LOG.error("key manager unavailable: %s", exc)
        return _error(503, "Encryption is not configured")

    @app.exception_handler(RecordNotFound)
    async def _record_not_found(request: Request, exc: RecordNotFound):
        return _error(404, exc.message)

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError):
        return _error(502, f"Store request failed: {exc.message}")

    @app.exception_handler(TemplateNotFound)
    async def _template_not_found(request: Request, exc: TemplateNotFound):
        return _error(404, "Template not found")

    @app.exception_handler(TemplateExists)
    async def _template_exists(request: Request, exc: TemplateExists):
        return _error(409, "Template already exists")


def install_http_hardening(app: FastAPI) -> None:
    @app.middleware("http")
    async def _http_hardening_middleware(request: Request, call_next):
        request_id = _request_id_from_header(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        started_at = perf_counter()

        response = await call_next(request)

        for key, value in SECURITY_HEADERS.items():
            response.headers[key] = value
        # Submissions and exports carry personal data.
        response.headers["Cache-Control"] = "no-store"
        response.headers[REQUEST_ID_HEADER] = request_id

        duration_ms = (perf_counter() - started_at) * 1000.0
        _LOG.info(
            "%s %s status=%s duration_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    install_error_handlers(app)
