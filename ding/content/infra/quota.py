"""Rolling 24 hour post quota.

The count and the later insert are separate statements, so concurrent
requests from one user can overshoot the ceiling slightly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from ding.content.domain.exceptions import QuotaExceededError
from ding.identity.models import User
from ding.obs import logging as obs_logging

logger = obs_logging.get_logger(__name__)

WINDOW = timedelta(hours=24)


class RecentPostCounter(Protocol):
	async def count_recent_by(self, author: str, since: datetime) -> int:
		...


class PostQuota:
	"""Sliding-window ceiling on items created per user."""

	def __init__(self, counter: RecentPostCounter, *, limit: int, window: timedelta = WINDOW) -> None:
		self.counter = counter
		self.limit = limit
		self.window = window

	async def check(self, actor: User, *, now: Optional[datetime] = None) -> bool:
		"""Return True while the actor may still post."""
		now = now or datetime.now(timezone.utc)
		used = await self.counter.count_recent_by(actor.name, now - self.window)
		return used < self.limit

	async def enforce(self, actor: User, *, now: Optional[datetime] = None) -> None:
		if not await self.check(actor, now=now):
			logger.info("post_quota_exhausted", extra={"actor": actor.name, "limit": self.limit})
			raise QuotaExceededError()
