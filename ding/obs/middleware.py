"""Request id propagation, access logging and HTTP metrics."""

from __future__ import annotations

import logging
import re
import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ding.obs import logging as obs_logging
from ding.obs import metrics

REQUEST_ID_HEADER = "X-Request-Id"

_CLIENT_ID = re.compile(r"^[A-Za-z0-9._-]{8,64}$")
_QUIET_PATHS = frozenset({"/healthz", "/metrics"})

_logger = obs_logging.get_logger("ding.http")


def _request_id(request: Request) -> str:
	supplied = request.headers.get(REQUEST_ID_HEADER, "")
	return supplied if _CLIENT_ID.match(supplied) else uuid4().hex


def _route_template(request: Request) -> str:
	route = request.scope.get("route")
	return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = _request_id(request)
		request.state.request_id = request_id
		tokens = obs_logging.bind_context(request_id=request_id, route=request.url.path)
		started = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
		except Exception:
			_logger.exception("http_request_failed", extra={"method": request.method})
			raise
		finally:
			elapsed = time.perf_counter() - started
			template = _route_template(request)
			metrics.observe_request(template, request.method, status_code, elapsed)
			level = logging.DEBUG if request.url.path in _QUIET_PATHS else logging.INFO
			_logger.log(
				level,
				"http_request",
				extra={
					"method": request.method,
					"template": template,
					"status": status_code,
					"latency_ms": round(elapsed * 1000, 2),
				},
			)
			obs_logging.reset_context(tokens)
		response.headers[REQUEST_ID_HEADER] = request_id
		return response


def install(app) -> None:
	app.add_middleware(ObservabilityMiddleware)
