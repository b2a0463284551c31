"""Fixed-window request budgets kept in Redis.

Each budget owns one counter per subject per window. Counters expire with
their window, so a quiet subject leaves nothing behind.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from ding.infra.redis import redis_client


@dataclass(frozen=True)
class Budget:
	kind: str
	limit: int
	window_seconds: int = 60

	def window_start(self, now: float) -> int:
		span = max(1, int(self.window_seconds))
		return int(now) // span * span

	def key(self, subject: str, now: float) -> str:
		return f"ding:throttle:{self.kind}:{subject}:{self.window_start(now)}"

	def retry_after(self, now: float) -> int:
		"""Seconds until the current window closes."""
		return max(1, self.window_start(now) + int(self.window_seconds) - int(now))


async def consume(budget: Budget, subject: str, *, now: Optional[float] = None) -> int:
	"""Count one hit against ``budget`` for ``subject`` and return the window total."""
	now = time.time() if now is None else now
	key = budget.key(subject, now)
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, max(1, int(budget.window_seconds)))
		count, _ = await pipe.execute()
	return int(count)


async def allow(budget: Budget, subject: str, *, now: Optional[float] = None) -> bool:
	if budget.limit <= 0:
		return False
	return await consume(budget, subject, now=now) <= budget.limit


async def peek(budget: Budget, subject: str, *, now: Optional[float] = None) -> int:
	"""Current window total for ``subject`` without counting a hit."""
	now = time.time() if now is None else now
	value = await redis_client.get(budget.key(subject, now))
	return int(value or 0)
