"""Uniform JSON error bodies: ``{"detail": <code>, "request_id": <id>}``."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ding.content.domain.exceptions import ContentError
from ding.identity.policy import IdentityError
from ding.obs import logging as obs_logging


def get_request_id(request: Request, default: str = "unknown") -> str:
	rid = obs_logging.current_request_id() or getattr(request.state, "request_id", None)
	return rid or default


def _error(
	request: Request,
	status_code: int,
	detail: Any,
	*,
	headers: Optional[Mapping[str, str]] = None,
	**extra: Any,
) -> JSONResponse:
	payload = {"detail": detail, **extra, "request_id": get_request_id(request)}
	return JSONResponse(status_code=status_code, content=payload, headers=dict(headers) if headers else None)


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		return _error(request, exc.status_code, exc.detail, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		return _error(request, 422, "validation_error", errors=jsonable_encoder(exc.errors()))

	# routes translate these themselves; this covers dependencies and helpers
	@app.exception_handler(ContentError)
	async def content_exc_handler(request: Request, exc: ContentError):  # type: ignore[override]
		return _error(request, exc.status_code, exc.detail)

	@app.exception_handler(IdentityError)
	async def identity_exc_handler(request: Request, exc: IdentityError):  # type: ignore[override]
		return _error(request, exc.status_code, exc.detail)
