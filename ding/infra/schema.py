"""Database schema for users and content items.

Applied idempotently on startup; every statement is safe to re-run.
"""

from __future__ import annotations

import asyncpg

from ding.obs import logging as obs_logging

logger = obs_logging.get_logger(__name__)

STATEMENTS: tuple[str, ...] = (
	"""
	CREATE TABLE IF NOT EXISTS usr (
		usr_id BIGSERIAL PRIMARY KEY,
		name TEXT NOT NULL,
		email TEXT NOT NULL UNIQUE,
		password TEXT,
		bio TEXT NOT NULL DEFAULT '',
		invited_by TEXT NOT NULL,
		orgs_r TEXT[] NOT NULL DEFAULT '{}',
		orgs_w TEXT[] NOT NULL DEFAULT '{}',
		email_verified_at TIMESTAMPTZ,
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
	)
	""",
	"CREATE UNIQUE INDEX IF NOT EXISTS usr_name_lower_idx ON usr (LOWER(name))",
	"""
	CREATE TABLE IF NOT EXISTS com (
		cid BIGSERIAL PRIMARY KEY,
		parent_cid BIGINT REFERENCES com (cid),
		created_by TEXT NOT NULL,
		body TEXT NOT NULL CHECK (char_length(body) <= 1441),
		is_reaction BOOLEAN NOT NULL DEFAULT FALSE,
		tags TEXT[] NOT NULL DEFAULT '{}',
		orgs TEXT[] NOT NULL DEFAULT '{}',
		usrs TEXT[] NOT NULL DEFAULT '{}',
		thumb TEXT,
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
	)
	""",
	"CREATE INDEX IF NOT EXISTS com_parent_idx ON com (parent_cid)",
	"CREATE INDEX IF NOT EXISTS com_author_created_idx ON com (LOWER(created_by), created_at DESC)",
	"CREATE INDEX IF NOT EXISTS com_created_idx ON com (created_at DESC)",
	"CREATE INDEX IF NOT EXISTS com_tags_idx ON com USING GIN (tags)",
	"CREATE INDEX IF NOT EXISTS com_orgs_idx ON com USING GIN (orgs)",
	"CREATE INDEX IF NOT EXISTS com_usrs_idx ON com USING GIN (usrs)",
	"CREATE INDEX IF NOT EXISTS com_body_fts_idx ON com USING GIN (to_tsvector('english', body))",
)


async def ensure_schema(pool: asyncpg.pool.Pool) -> None:
	async with pool.acquire() as conn:
		async with conn.transaction():
			for statement in STATEMENTS:
				await conn.execute(statement)
	logger.info("schema_ready", extra={"statements": len(STATEMENTS)})
