"""JSON logging with per-request context.

Request-scoped fields (request id, route template, acting user) live in
context vars and are stamped on every record emitted while they are bound.
Values passed through ``extra`` are trimmed; credentials and post bodies are
never written out.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ding.settings import settings

_LOGGER_NAME = "ding"

_CONTEXT: Dict[str, ContextVar[Optional[str]]] = {
	"request_id": ContextVar("ding_request_id", default=None),
	"route": ContextVar("ding_route", default=None),
	"user": ContextVar("ding_user", default=None),
}

_SECRET_KEYS = ("token", "secret", "authorization", "password", "cookie")
_PII_KEYS = ("email", "body", "bio")

_MAX_TEXT = 200
_MAX_ITEMS = 10

_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def bind_context(**fields: Optional[str]) -> Dict[str, Token]:
	"""Bind the given request fields; returns tokens for ``reset_context``."""
	tokens: Dict[str, Token] = {}
	for key, value in fields.items():
		var = _CONTEXT.get(key)
		if var is not None and value is not None:
			tokens[key] = var.set(value)
	return tokens


def reset_context(tokens: Dict[str, Token]) -> None:
	for key, token in tokens.items():
		_CONTEXT[key].reset(token)


def bind_user(user: Optional[str]) -> None:
	_CONTEXT["user"].set(user)


def current_request_id() -> Optional[str]:
	return _CONTEXT["request_id"].get()


def _scrub(key: str, value: Any) -> Any:
	lowered = key.lower()
	if any(word in lowered for word in _SECRET_KEYS):
		return "[redacted]"
	if any(word in lowered for word in _PII_KEYS):
		# length only; enough to tell empty (tombstone) from present
		return f"[redacted:{len(value)}]" if isinstance(value, str) else "[redacted]"
	return _trim(value)


def _trim(value: Any) -> Any:
	if isinstance(value, str):
		return value if len(value) <= _MAX_TEXT else value[:_MAX_TEXT] + "…"
	if isinstance(value, dict):
		head = list(value.items())[:_MAX_ITEMS]
		out = {str(k): _scrub(str(k), v) for k, v in head}
		if len(value) > _MAX_ITEMS:
			out["…"] = f"+{len(value) - _MAX_ITEMS}"
		return out
	if isinstance(value, (list, tuple, set, frozenset)):
		items = [_trim(v) for v in list(value)[:_MAX_ITEMS]]
		if len(value) > _MAX_ITEMS:
			items.append(f"+{len(value) - _MAX_ITEMS}")
		return items
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"msg": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
		}
		for key, var in _CONTEXT.items():
			value = var.get()
			if value:
				payload[key] = value
		for key, value in record.__dict__.items():
			if key not in _STANDARD_ATTRS and key not in payload:
				payload[key] = _scrub(key, value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, default=str, ensure_ascii=False, separators=(",", ":"))


def configure_logging() -> logging.Logger:
	"""Route the root logger through the JSON formatter at the configured level."""
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	root = logging.getLogger()
	root.handlers[:] = [handler]
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
