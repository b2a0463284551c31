"""Identity errors, validation guards, and auth throttling budgets."""

from __future__ import annotations

import re
import time

from ding.infra import rate_limit

HANDLE_REGEX = re.compile(r"^[A-Za-z0-9_]{2,32}$")
PASSWORD_MIN_LEN = 8
BIO_MAX_LEN = 1441
EMAIL_MAX_LEN = 254

SIGNUP_BUDGET = rate_limit.Budget("signup", 20, 3600)
LOGIN_BUDGET = rate_limit.Budget("login", 12, 60)
PWRESET_BUDGET = rate_limit.Budget("pwreset", 5, 3600)
VERIFY_BUDGET = rate_limit.Budget("verify", 6, 60)
INVITE_BUDGET = rate_limit.Budget("invite", 20, 3600)
# failed HTTP Basic attempts, per email and per client address
BASIC_FAILURE_BUDGET = rate_limit.Budget("basic_fail", 10, 300)


class IdentityError(Exception):
	status_code = 400
	detail = "identity_error"

	def __init__(self, detail: str | None = None) -> None:
		if detail:
			self.detail = detail
		super().__init__(self.detail)


class TokenError(IdentityError):
	status_code = 400
	detail = "token_invalid"


class CredentialsError(IdentityError):
	status_code = 401
	detail = "invalid_credentials"


class HandleConflict(IdentityError):
	status_code = 409
	detail = "handle_taken"


class EmailConflict(IdentityError):
	status_code = 409
	detail = "email_taken"


class IdentityValidationError(IdentityError):
	status_code = 422
	detail = "invalid_input"


class UserNotFound(IdentityError):
	status_code = 404
	detail = "user_not_found"


class RateLimitedError(IdentityError):
	status_code = 429
	detail = "rate_limited"

	def __init__(self, detail: str | None = None, *, retry_after: int | None = None) -> None:
		super().__init__(detail)
		self.retry_after = retry_after


def normalise_email(email: str) -> str:
	return (email or "").strip().lower()


def guard_handle_format(name: str) -> None:
	if not HANDLE_REGEX.match(name or ""):
		raise IdentityValidationError("handle_invalid")


def guard_email(email: str) -> None:
	local, sep, domain = email.partition("@")
	if not sep or not local or "." not in domain or len(email) > EMAIL_MAX_LEN:
		raise IdentityValidationError("email_invalid")


def guard_password(password: str) -> None:
	if len(password or "") < PASSWORD_MIN_LEN:
		raise IdentityValidationError("password_too_short")


def guard_bio(bio: str) -> None:
	if len(bio) > BIO_MAX_LEN:
		raise IdentityValidationError("bio_too_long")


async def enforce_rate(budget: rate_limit.Budget, subject: str) -> None:
	now = time.time()
	if not await rate_limit.allow(budget, subject, now=now):
		raise RateLimitedError(retry_after=budget.retry_after(now))


async def enforce_signup_rate(ip: str) -> None:
	await enforce_rate(SIGNUP_BUDGET, ip)


async def enforce_login_rate(key: str) -> None:
	await enforce_rate(LOGIN_BUDGET, key)


async def enforce_pwreset_rate(email: str) -> None:
	await enforce_rate(PWRESET_BUDGET, email)


async def enforce_verify_rate(key: str) -> None:
	await enforce_rate(VERIFY_BUDGET, key)


async def enforce_invite_rate(name: str) -> None:
	await enforce_rate(INVITE_BUDGET, name.lower())


async def guard_basic_attempts(*subjects: str) -> None:
	"""Refuse HTTP Basic checks once a subject has used up its failure budget."""
	now = time.time()
	for subject in subjects:
		if await rate_limit.peek(BASIC_FAILURE_BUDGET, subject, now=now) >= BASIC_FAILURE_BUDGET.limit:
			raise RateLimitedError(retry_after=BASIC_FAILURE_BUDGET.retry_after(now))


async def record_basic_failure(*subjects: str) -> None:
	now = time.time()
	for subject in subjects:
		await rate_limit.consume(BASIC_FAILURE_BUDGET, subject, now=now)
