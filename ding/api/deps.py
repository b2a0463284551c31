"""FastAPI dependencies: repositories, services and the authenticated user.

A request is authenticated by the session cookie or, for scripted clients, by
HTTP Basic credentials (email and password). The user row is re-read on each
request so org grants and verification take effect immediately.
"""

from __future__ import annotations

from typing import Optional

import asyncpg
import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from jwt import InvalidTokenError

from ding.content.domain.repo import ContentRepository
from ding.content.domain.services import ContentService
from ding.content.infra.quota import PostQuota
from ding.content.infra.thumbnails import ThumbnailResolver
from ding.identity import policy
from ding.identity.models import User
from ding.identity.repo import UserRepository
from ding.identity.service import IdentityService
from ding.infra import jwt as jwt_helper
from ding.obs import logging as obs_logging
from ding.settings import settings

_basic_scheme = HTTPBasic(auto_error=False)


def get_db_pool(request: Request) -> asyncpg.pool.Pool:
	return request.app.state.pool


def get_http_client(request: Request) -> httpx.AsyncClient:
	return request.app.state.http


def get_user_repository(pool: asyncpg.pool.Pool = Depends(get_db_pool)) -> UserRepository:
	return UserRepository(pool)


def get_content_repository(pool: asyncpg.pool.Pool = Depends(get_db_pool)) -> ContentRepository:
	return ContentRepository(pool)


def get_identity_service(repo: UserRepository = Depends(get_user_repository)) -> IdentityService:
	return IdentityService(repo)


def get_content_service(
	repo: ContentRepository = Depends(get_content_repository),
	http: httpx.AsyncClient = Depends(get_http_client),
) -> ContentService:
	thumbnails = ThumbnailResolver(
		http=http,
		favicon_template=settings.favicon_service_url,
		timeout=settings.thumbnail_timeout_seconds,
	)
	quota = PostQuota(repo, limit=settings.daily_post_limit)
	return ContentService(repo, quota, thumbnails)


async def get_optional_user(
	request: Request,
	credentials: Optional[HTTPBasicCredentials] = Depends(_basic_scheme),
	identity: IdentityService = Depends(get_identity_service),
) -> Optional[User]:
	user: Optional[User] = None
	token = request.cookies.get(settings.cookie_name)
	if token:
		try:
			name = jwt_helper.decode_session(token)
		except InvalidTokenError:
			name = None
		if name:
			user = await identity.repo.get_by_name(name)
	if user is None and credentials is not None:
		subjects = (policy.normalise_email(credentials.username), client_ip(request))
		try:
			await policy.guard_basic_attempts(*subjects)
		except policy.RateLimitedError as exc:
			raise HTTPException(
				status_code=exc.status_code,
				detail=exc.detail,
				headers={"Retry-After": str(exc.retry_after)},
			) from None
		user = await identity.authenticate_basic(credentials.username, credentials.password)
		if user is None:
			await policy.record_basic_failure(*subjects)
			raise HTTPException(
				status_code=status.HTTP_401_UNAUTHORIZED,
				detail="invalid_credentials",
				headers={"WWW-Authenticate": "Basic"},
			)
	if user is not None:
		obs_logging.bind_user(user.name)
	return user


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
	if user is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="login_required")
	return user


def client_ip(request: Request) -> str:
	"""Peer address of the connection.

	Forwarding headers are not read here; behind a reverse proxy run uvicorn
	with ``--proxy-headers --forwarded-allow-ips`` so the peer is rewritten
	only for trusted proxies.
	"""
	return request.client.host if request.client else "unknown"
