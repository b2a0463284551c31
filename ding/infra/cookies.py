"""Session cookie helpers.

The session cookie is HttpOnly, SameSite=Lax and scoped to the whole site;
``Secure`` follows ``settings.cookie_secure`` and is forced on in production.
"""

from __future__ import annotations

from fastapi import Response

from ding.settings import settings


def set_session_cookie(response: Response, token: str) -> None:
	max_age = int(settings.session_ttl_days) * 86400
	response.set_cookie(
		key=settings.cookie_name,
		value=token,
		max_age=max_age,
		expires=max_age,
		path="/",
		secure=bool(settings.cookie_secure) or settings.is_prod(),
		httponly=True,
		samesite="lax",
	)


def clear_session_cookie(response: Response) -> None:
	response.delete_cookie(key=settings.cookie_name, path="/")
