"""Service layer for signup, login, email verification and account recovery."""

from __future__ import annotations

from types import ModuleType
from typing import Any, Optional

import asyncpg

from ding.identity import mailer as default_mailer
from ding.identity import policy
from ding.identity.models import User
from ding.identity.repo import UserRepository
from ding.identity.tokens import EmailTokenService, default_service
from ding.infra.password import hash_password, verify_password
from ding.obs import logging as obs_logging
from ding.obs import metrics as obs_metrics

logger = obs_logging.get_logger(__name__)


class IdentityService:
	def __init__(
		self,
		repository: UserRepository,
		*,
		tokens: Optional[EmailTokenService] = None,
		mailer: ModuleType | Any = default_mailer,
	) -> None:
		self.repo = repository
		self.tokens = tokens or default_service()
		self.mailer = mailer

	def _reject(self, exc: policy.IdentityError) -> policy.IdentityError:
		obs_metrics.inc_identity_reject(exc.detail)
		return exc

	async def signup(self, name: str, email: str, password: str, *, invited_by: str | None = None) -> User:
		"""Create an account and mail a verification link.

		The first account on an empty instance is the root user and invites
		itself; afterwards an inviter is optional and must exist when given.
		"""
		name = (name or "").strip()
		email = policy.normalise_email(email)
		try:
			policy.guard_handle_format(name)
			policy.guard_email(email)
			policy.guard_password(password)
		except policy.IdentityError as exc:
			raise self._reject(exc)

		if await self.repo.get_by_name(name) is not None:
			raise self._reject(policy.HandleConflict())
		if await self.repo.get_by_email(email) is not None:
			raise self._reject(policy.EmailConflict())
		if invited_by is not None:
			inviter = await self.repo.get_by_name(invited_by)
			if inviter is None:
				raise self._reject(policy.IdentityValidationError("inviter_not_found"))
			invited_by = inviter.name

		user = await self._create(name=name, email=email, password=hash_password(password), invited_by=invited_by)
		await self.mailer.send_verification(email, self.tokens.issue(email))
		obs_metrics.inc_identity_event("signup")
		logger.info("user_signed_up", extra={"user": user.name, "invited_by": user.invited_by})
		return user

	async def _create(self, *, name: str, email: str, password: str | None, invited_by: str | None) -> User:
		try:
			return await self.repo.create_user(name=name, email=email, password=password, invited_by=invited_by)
		except asyncpg.UniqueViolationError as exc:
			# Lost a race with a concurrent signup for the same handle or email.
			if "email" in str(exc):
				raise self._reject(policy.EmailConflict())
			raise self._reject(policy.HandleConflict())

	async def login(self, email: str, password: str) -> User:
		email = policy.normalise_email(email)
		user = await self.repo.get_by_email(email)
		if user is None or not verify_password(user.password, password):
			raise self._reject(policy.CredentialsError())
		if not user.is_verified:
			await self.mailer.send_verification(user.email, self.tokens.issue(user.email))
			logger.info("verification_resent", extra={"user": user.name})
		obs_metrics.inc_identity_event("login")
		return user

	async def authenticate_basic(self, email: str, password: str) -> Optional[User]:
		"""Resolve HTTP Basic credentials without side effects."""
		user = await self.repo.get_by_email(policy.normalise_email(email))
		if user is None or not verify_password(user.password, password):
			return None
		return user

	async def verify_email(self, email: str, token: str) -> User:
		email = policy.normalise_email(email)
		if not self.tokens.validate(token, email):
			raise self._reject(policy.TokenError())
		user = await self.repo.get_by_email(email)
		if user is None:
			raise self._reject(policy.TokenError())
		if await self.repo.mark_email_verified(user.usr_id):
			obs_metrics.inc_identity_event("email_verified")
			logger.info("email_verified", extra={"user": user.name})
		return await self.repo.get_by_email(email) or user

	async def request_password_reset(self, email: str) -> None:
		"""Mail a reset link when the account exists; silent otherwise."""
		email = policy.normalise_email(email)
		user = await self.repo.get_by_email(email)
		obs_metrics.inc_identity_event("pwreset_request")
		if user is None:
			return
		await self.mailer.send_password_reset(user.email, self.tokens.issue(user.email))

	async def reset_password(self, email: str, token: str, password: str) -> User:
		email = policy.normalise_email(email)
		if not self.tokens.validate(token, email):
			raise self._reject(policy.TokenError())
		try:
			policy.guard_password(password)
		except policy.IdentityError as exc:
			raise self._reject(exc)
		user = await self.repo.get_by_email(email)
		if user is None:
			raise self._reject(policy.TokenError())
		# Receiving the link proves control of the address.
		await self.repo.set_password(user.usr_id, hash_password(password), verify_email=True)
		obs_metrics.inc_identity_event("pwreset_success")
		logger.info("password_reset", extra={"user": user.name})
		return user

	async def invite(self, actor: User, name: str, email: str) -> User:
		"""Create a password-less account invited by ``actor`` and mail a password-set link."""
		name = (name or "").strip()
		email = policy.normalise_email(email)
		try:
			policy.guard_handle_format(name)
			policy.guard_email(email)
		except policy.IdentityError as exc:
			raise self._reject(exc)
		if await self.repo.get_by_name(name) is not None:
			raise self._reject(policy.HandleConflict())
		if await self.repo.get_by_email(email) is not None:
			raise self._reject(policy.EmailConflict())
		user = await self._create(name=name, email=email, password=None, invited_by=actor.name)
		await self.mailer.send_invite(email, self.tokens.issue(email), invited_by=actor.name, name=user.name)
		obs_metrics.inc_identity_event("invite")
		logger.info("user_invited", extra={"user": user.name, "invited_by": actor.name})
		return user

	async def get_profile(self, name: str) -> User:
		user = await self.repo.get_by_name(name)
		if user is None:
			raise policy.UserNotFound()
		return user

	async def update_profile(self, actor: User, *, bio: str) -> User:
		bio = (bio or "").strip()
		try:
			policy.guard_bio(bio)
		except policy.IdentityError as exc:
			raise self._reject(exc)
		updated = await self.repo.update_bio(actor.usr_id, bio)
		return updated or actor
