"""Time-boxed HMAC tokens proving control of an email address.

A token is ``"<epoch>:<digest>"`` where ``digest`` is the first 32 hex chars
of HMAC-SHA256(secret, "<epoch>:<email>"). Nothing is stored server-side; a
token stays valid until it ages out.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Optional

from ding.settings import settings

DIGEST_LENGTH = 32


@dataclass(frozen=True)
class EmailTokenService:
	secret: str
	max_age_seconds: float

	def _digest(self, epoch: int, email: str) -> str:
		message = f"{epoch}:{email}".encode("utf-8")
		return hmac.new(self.secret.encode("utf-8"), message, hashlib.sha256).hexdigest()[:DIGEST_LENGTH]

	def issue(self, email: str, *, now: Optional[float] = None) -> str:
		epoch = int(now if now is not None else time.time())
		return f"{epoch}:{self._digest(epoch, email)}"

	def validate(self, token: str, email: str, *, now: Optional[float] = None) -> bool:
		prefix, sep, _ = (token or "").partition(":")
		if not sep:
			return False
		try:
			epoch = int(prefix)
		except ValueError:
			return False
		current = now if now is not None else time.time()
		if current - epoch > self.max_age_seconds:
			return False
		expected = f"{epoch}:{self._digest(epoch, email)}"
		return hmac.compare_digest(expected, token)


def default_service() -> EmailTokenService:
	return EmailTokenService(settings.email_token_secret, settings.email_token_max_age_seconds)


def issue_token(email: str) -> str:
	return default_service().issue(email)


def validate_token(token: str, email: str) -> bool:
	return default_service().validate(token, email)
