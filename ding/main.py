"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from ding import __version__
from ding.api import auth, ops, users
from ding.api.errors import install_error_handlers
from ding.content.api import router as content_router
from ding.infra import postgres
from ding.infra.redis import redis_client
from ding.infra.schema import ensure_schema
from ding.obs import init as obs_init
from ding.obs import logging as obs_logging
from ding.settings import settings

logger = obs_logging.get_logger(__name__)

USER_AGENT = f"ding/{__version__} (+{settings.public_url})"


@asynccontextmanager
async def lifespan(app: FastAPI):
	pool = await postgres.init_pool()
	await ensure_schema(pool)
	app.state.pool = pool
	app.state.http = httpx.AsyncClient(
		headers={"User-Agent": USER_AGENT},
		timeout=settings.thumbnail_timeout_seconds,
	)
	logger.info("startup_complete", extra={"environment": settings.environment})
	try:
		yield
	finally:
		await app.state.http.aclose()
		await redis_client.aclose()
		await postgres.close_pool()


app = FastAPI(title="ding", version=__version__, lifespan=lifespan)
install_error_handlers(app)
obs_init(app)

app.include_router(auth.router, tags=["identity"])
app.include_router(users.router, tags=["profile"])
app.include_router(content_router)
app.include_router(ops.router, tags=["ops"])
