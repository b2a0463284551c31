"""Operational endpoints: robots.txt, health and Prometheus metrics."""

from __future__ import annotations

import asyncpg
from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from ding.obs import metrics as obs_metrics
from ding.settings import settings

router = APIRouter(tags=["ops"])

ROBOTS_TXT = "User-agent: *\nDisallow: /u/\nDisallow: /labels/\nAllow: /\n"


@router.get("/robots.txt", response_class=PlainTextResponse, include_in_schema=False)
async def robots() -> str:
	return ROBOTS_TXT


@router.get("/healthz")
async def healthz(request: Request) -> JSONResponse:
	pool = getattr(request.app.state, "pool", None)
	database = "unknown"
	if pool is not None:
		try:
			async with pool.acquire() as conn:
				await conn.fetchval("SELECT 1")
			database = "ok"
		except (asyncpg.PostgresError, OSError) as exc:
			database = f"error:{type(exc).__name__}"
	status_code = 200 if database != "unknown" and not database.startswith("error") else 503
	return JSONResponse(
		status_code=status_code,
		content={"status": "ok" if status_code == 200 else "degraded", "database": database, "service": settings.service_name},
	)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
	payload, content_type = obs_metrics.render_latest()
	return Response(content=payload, media_type=content_type)
