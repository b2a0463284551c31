"""Outbound mail for account verification, password reset and invites."""

from __future__ import annotations

import hashlib
from email.message import EmailMessage
from urllib.parse import urlencode

import aiosmtplib

from ding.obs import logging as obs_logging
from ding.settings import settings

logger = obs_logging.get_logger(__name__)


def mask_email(email: str) -> str:
	return hashlib.sha256(email.lower().encode("utf-8")).hexdigest()[:12]


def build_link(path: str, **params: str) -> str:
	return f"{settings.public_url.rstrip('/')}{path}?{urlencode(params)}"


async def _send_email(to_email: str, subject: str, body: str) -> None:
	"""Send a plain-text message; delivery failures are logged, not raised."""
	if not settings.smtp_host:
		logger.warning("smtp_not_configured", extra={"to": mask_email(to_email), "subject": subject})
		if settings.is_dev():
			logger.info("mail_body_dev", extra={"to": mask_email(to_email), "text": body})
		return

	msg = EmailMessage()
	msg["From"] = settings.smtp_from_email
	msg["To"] = to_email
	msg["Subject"] = subject
	msg.set_content(body)

	start_tls = bool(settings.smtp_tls) and int(settings.smtp_port) == 587
	use_tls = bool(settings.smtp_tls) and int(settings.smtp_port) == 465
	try:
		await aiosmtplib.send(
			msg,
			hostname=settings.smtp_host,
			port=settings.smtp_port,
			username=settings.smtp_user,
			password=settings.smtp_password,
			start_tls=start_tls,
			use_tls=use_tls,
		)
		logger.info("mail_sent", extra={"to": mask_email(to_email), "subject": subject})
	except (aiosmtplib.SMTPException, OSError) as exc:
		logger.error("mail_failed", extra={"to": mask_email(to_email), "subject": subject, "error": str(exc)})


async def send_verification(email: str, token: str) -> None:
	link = build_link("/verify-email", email=email, token=token)
	body = (
		"Hello,\n\n"
		"Confirm your email address by opening the link below:\n\n"
		f"{link}\n\n"
		"If you did not sign up, ignore this message.\n"
	)
	await _send_email(email, "Verify your email", body)


async def send_password_reset(email: str, token: str) -> None:
	link = build_link("/reset-password", email=email, token=token)
	body = (
		"Hello,\n\n"
		"Set a new password by opening the link below:\n\n"
		f"{link}\n\n"
		"If you did not request this, ignore this message.\n"
	)
	await _send_email(email, "Reset your password", body)


async def send_invite(email: str, token: str, *, invited_by: str, name: str) -> None:
	link = build_link("/reset-password", email=email, token=token)
	body = (
		f"Hello {name},\n\n"
		f"{invited_by} invited you. Choose a password to activate your account:\n\n"
		f"{link}\n"
	)
	await _send_email(email, f"{invited_by} invited you", body)
