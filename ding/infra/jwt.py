"""Session token helpers.

Sessions are HS256 JWTs carried in an HttpOnly cookie. The subject is the
user's handle; the user row is re-read on every request so org grants take
effect immediately.
"""

from __future__ import annotations

import time
from typing import Any, Dict

import jwt
from jwt import InvalidTokenError

from ding.settings import settings

ISSUER = "ding-api"
AUDIENCE = "ding-web"


def encode_session(subject: str, *, ttl_seconds: int | None = None) -> str:
	now = int(time.time())
	ttl = ttl_seconds if ttl_seconds is not None else settings.session_ttl_days * 86400
	body: Dict[str, Any] = {"iss": ISSUER, "aud": AUDIENCE, "iat": now, "exp": now + ttl, "sub": subject}
	return jwt.encode(body, settings.secret_key, algorithm="HS256")


def decode_session(token: str) -> str:
	"""Return the session subject.

	Raises jwt.InvalidTokenError subclasses on failure.
	"""
	payload = jwt.decode(
		token,
		settings.secret_key,
		algorithms=["HS256"],
		audience=AUDIENCE,
		issuer=ISSUER,
		leeway=5,
		options={"require": ["exp", "iat", "iss", "aud", "sub"]},
	)
	subject = str(payload.get("sub") or "").strip()
	if not subject:
		raise InvalidTokenError("missing_claim:sub")
	return subject
