"""Error translation helpers for the content API."""

from __future__ import annotations

from fastapi import HTTPException

from ding.content.domain import exceptions


def to_http_error(exc: exceptions.ContentError) -> HTTPException:
	"""Translate domain exceptions to FastAPI HTTP errors."""
	return HTTPException(status_code=exc.status_code, detail=exc.detail)
