"""Custom exceptions for content services."""

from __future__ import annotations

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class ContentError(Exception):
	"""Base class for content related errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "content_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class NotFoundError(ContentError):
	"""Thrown when an item is missing or not visible to the caller."""

	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class ForbiddenError(ContentError):
	"""Raised when label permissions reject a write."""

	status_code = status.HTTP_403_FORBIDDEN
	detail = "forbidden"


class ConflictError(ContentError):
	"""Raised for conflicting operations (e.g., deleting a tombstone)."""

	status_code = status.HTTP_409_CONFLICT
	detail = "conflict"


class ValidationError(ContentError):
	"""Raised for validation errors not covered by FastAPI schema validation."""

	status_code = _HTTP_422
	detail = "validation_error"


class QuotaExceededError(ContentError):
	"""Raised when the rolling daily post quota is spent."""

	status_code = status.HTTP_429_TOO_MANY_REQUESTS
	detail = "daily_post_limit_reached"
