"""Async repository for user accounts."""

from __future__ import annotations

from typing import Optional, Sequence

import asyncpg

from ding.identity.models import User

_COLUMNS = "usr_id, name, email, password, bio, invited_by, orgs_r, orgs_w, email_verified_at, created_at"


class UserRepository:
	def __init__(self, pool: asyncpg.pool.Pool) -> None:
		self.pool = pool

	async def get_by_name(self, name: str) -> User | None:
		async with self.pool.acquire() as conn:
			record = await conn.fetchrow(f"SELECT {_COLUMNS} FROM usr WHERE LOWER(name) = LOWER($1)", name)
		return User.from_record(record) if record else None

	async def get_by_email(self, email: str) -> User | None:
		async with self.pool.acquire() as conn:
			record = await conn.fetchrow(f"SELECT {_COLUMNS} FROM usr WHERE email = $1", email)
		return User.from_record(record) if record else None

	async def create_user(
		self,
		*,
		name: str,
		email: str,
		password: Optional[str],
		invited_by: Optional[str],
	) -> User:
		"""Insert a user; a missing ``invited_by`` makes the user invite itself.

		Raises asyncpg.UniqueViolationError when the handle or email is taken.
		"""
		async with self.pool.acquire() as conn:
			record = await conn.fetchrow(
				f"""
				INSERT INTO usr (name, email, password, invited_by)
				VALUES ($1, $2, $3, COALESCE($4, $1))
				RETURNING {_COLUMNS}
				""",
				name,
				email,
				password,
				invited_by,
			)
		return User.from_record(record)

	async def set_password(self, usr_id: int, password_hash: str, *, verify_email: bool = False) -> None:
		async with self.pool.acquire() as conn:
			await conn.execute(
				"""
				UPDATE usr
				SET password = $2,
					email_verified_at = CASE WHEN $3 THEN COALESCE(email_verified_at, NOW()) ELSE email_verified_at END
				WHERE usr_id = $1
				""",
				usr_id,
				password_hash,
				verify_email,
			)

	async def mark_email_verified(self, usr_id: int) -> bool:
		"""Set ``email_verified_at`` once; False when it was already set."""
		async with self.pool.acquire() as conn:
			result = await conn.execute(
				"UPDATE usr SET email_verified_at = NOW() WHERE usr_id = $1 AND email_verified_at IS NULL",
				usr_id,
			)
		return result.split()[-1] != "0"

	async def update_bio(self, usr_id: int, bio: str) -> User | None:
		async with self.pool.acquire() as conn:
			record = await conn.fetchrow(
				f"UPDATE usr SET bio = $2 WHERE usr_id = $1 RETURNING {_COLUMNS}",
				usr_id,
				bio,
			)
		return User.from_record(record) if record else None

	async def grant_orgs(
		self,
		name: str,
		*,
		read: Sequence[str] = (),
		write: Sequence[str] = (),
		revoke: bool = False,
	) -> User | None:
		"""Add (or with ``revoke`` remove) org labels from a user's grants.

		Write access to an org implies read access, so granted write labels are
		added to ``orgs_r`` as well.
		"""
		read_set = sorted({org.lower() for org in (*read, *(() if revoke else write))})
		write_set = sorted({org.lower() for org in write})
		if revoke:
			sql = f"""
				UPDATE usr
				SET orgs_r = ARRAY(SELECT unnest(orgs_r) EXCEPT SELECT unnest($2::text[])),
					orgs_w = ARRAY(SELECT unnest(orgs_w) EXCEPT SELECT unnest($3::text[]))
				WHERE LOWER(name) = LOWER($1)
				RETURNING {_COLUMNS}
			"""
		else:
			sql = f"""
				UPDATE usr
				SET orgs_r = ARRAY(SELECT DISTINCT unnest(orgs_r || $2::text[]) ORDER BY 1),
					orgs_w = ARRAY(SELECT DISTINCT unnest(orgs_w || $3::text[]) ORDER BY 1)
				WHERE LOWER(name) = LOWER($1)
				RETURNING {_COLUMNS}
			"""
		async with self.pool.acquire() as conn:
			record = await conn.fetchrow(sql, name, read_set, write_set)
		return User.from_record(record) if record else None
