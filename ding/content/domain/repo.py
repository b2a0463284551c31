"""Async repository for content items."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional, Sequence

import asyncpg

from ding.content.domain import models
from ding.content.domain.models import ListFilters
from ding.identity.models import User

_COLUMNS = "cid, parent_cid, created_by, body, is_reaction, tags, orgs, usrs, thumb, created_at"


def _cols(alias: str) -> str:
	return ", ".join(f"{alias}.{col.strip()}" for col in _COLUMNS.split(","))


class _Params:
	"""Collects positional arguments and hands out ``$n`` placeholders."""

	def __init__(self) -> None:
		self.values: list[Any] = []

	def add(self, value: Any) -> str:
		self.values.append(value)
		return f"${len(self.values)}"


def visibility_clause(alias: str, viewer: Optional[User], params: _Params) -> str:
	"""SQL form of the read rule for rows aliased as ``alias``."""
	orgs_r = params.add(list(viewer.orgs_r) if viewer else [])
	clause = f"{alias}.orgs <@ {orgs_r}::text[]"
	if viewer is None:
		return f"({clause} AND cardinality({alias}.usrs) = 0)"
	name = params.add(viewer.name.lower())
	return (
		f"({clause} AND (cardinality({alias}.usrs) = 0 OR EXISTS "
		f"(SELECT 1 FROM unnest({alias}.usrs) AS m(name) WHERE LOWER(m.name) = {name})))"
	)


def build_list_query(
	filters: ListFilters,
	viewer: Optional[User],
	*,
	sort: str,
	limit: int,
	offset: int,
) -> tuple[str, list[Any]]:
	"""Translate listing filters into one SELECT over ``com``."""
	params = _Params()
	where = [visibility_clause("c", viewer, params)]
	if filters.cid is not None:
		where.append(f"c.parent_cid = {params.add(filters.cid)}")
	elif filters.roots_only:
		where.append("c.parent_cid IS NULL")
	if filters.tags:
		where.append(f"c.tags @> {params.add(list(filters.tags))}::text[]")
	if filters.orgs:
		where.append(f"c.orgs && {params.add(list(filters.orgs))}::text[]")
	if filters.usrs:
		where.append(f"LOWER(c.created_by) = ANY({params.add([u.lower() for u in filters.usrs])}::text[])")
	if filters.mentions:
		mentions = params.add([u.lower() for u in filters.mentions])
		where.append(f"EXISTS (SELECT 1 FROM unnest(c.usrs) AS m(name) WHERE LOWER(m.name) = ANY({mentions}::text[]))")
	if filters.www:
		patterns = params.add([re.escape(domain) for domain in filters.www])
		where.append(f"c.body ~* ANY({patterns}::text[])")
	if filters.replies_to is not None:
		author = params.add(filters.replies_to.lower())
		where.append(
			"NOT c.is_reaction AND EXISTS (SELECT 1 FROM com p "
			f"WHERE p.cid = c.parent_cid AND LOWER(p.created_by) = {author})"
		)
	if filters.reactions:
		where.append("c.is_reaction")
	if filters.comments:
		where.append("c.parent_cid IS NOT NULL AND NOT c.is_reaction")
	if filters.q:
		where.append(f"to_tsvector('english', c.body) @@ websearch_to_tsquery('english', {params.add(filters.q)})")

	if sort == models.SORT_TOP:
		order = "rc.reaction_count DESC, c.created_at DESC, c.cid DESC"
	else:
		order = "c.created_at DESC, c.cid DESC"
	limit_ph = params.add(limit)
	offset_ph = params.add(offset)
	sql = (
		f"SELECT {_cols('c')}, rc.reaction_count "
		"FROM com c "
		"LEFT JOIN LATERAL (SELECT COUNT(*) AS reaction_count FROM com r "
		"WHERE r.parent_cid = c.cid AND r.is_reaction AND r.body <> '') rc ON TRUE "
		f"WHERE {' AND '.join(where)} "
		f"ORDER BY {order} "
		f"LIMIT {limit_ph} OFFSET {offset_ph}"
	)
	return sql, params.values


def build_descendants_query(root_cid: int, viewer: Optional[User], *, max_depth: int) -> tuple[str, list[Any]]:
	"""Replies under ``root_cid`` up to ``max_depth`` levels, not descending through reactions."""
	params = _Params()
	root = params.add(root_cid)
	depth = params.add(max_depth)
	visible = visibility_clause("t", viewer, params)
	sql = (
		"WITH RECURSIVE t AS ("
		f"SELECT {_COLUMNS}, 1 AS depth FROM com WHERE parent_cid = {root} "
		"UNION ALL "
		f"SELECT {_cols('c')}, t.depth + 1 "
		"FROM com c JOIN t ON c.parent_cid = t.cid "
		f"WHERE t.depth < {depth} AND NOT t.is_reaction"
		") "
		f"SELECT {_COLUMNS}, depth FROM t WHERE {visible} "
		"ORDER BY depth, created_at, cid"
	)
	return sql, params.values


class ContentRepository:
	"""Thin data-access layer around asyncpg."""

	def __init__(self, pool: asyncpg.pool.Pool) -> None:
		self.pool = pool

	async def get_item(self, cid: int) -> models.Item | None:
		async with self.pool.acquire() as conn:
			record = await conn.fetchrow(f"SELECT {_COLUMNS} FROM com WHERE cid = $1", cid)
		return models.Item.from_record(record) if record else None

	async def get_thread_root(self, cid: int) -> models.Item | None:
		async with self.pool.acquire() as conn:
			record = await conn.fetchrow(
				f"""
				WITH RECURSIVE up AS (
					SELECT {_COLUMNS} FROM com WHERE cid = $1
					UNION ALL
					SELECT {_cols('p')}
					FROM com p JOIN up ON p.cid = up.parent_cid
				)
				SELECT {_COLUMNS} FROM up WHERE parent_cid IS NULL
				""",
				cid,
			)
		return models.Item.from_record(record) if record else None

	async def insert_item(
		self,
		*,
		parent_cid: int | None,
		created_by: str,
		body: str,
		is_reaction: bool,
		tags: Sequence[str],
		orgs: Sequence[str],
		usrs: Sequence[str],
		thumb: str | None,
	) -> models.Item:
		async with self.pool.acquire() as conn:
			record = await conn.fetchrow(
				f"""
				INSERT INTO com (parent_cid, created_by, body, is_reaction, tags, orgs, usrs, thumb)
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
				RETURNING {_COLUMNS}
				""",
				parent_cid,
				created_by,
				body,
				is_reaction,
				list(tags),
				list(orgs),
				list(usrs),
				thumb,
			)
		return models.Item.from_record(record)

	async def count_recent_by(self, author: str, since: datetime) -> int:
		async with self.pool.acquire() as conn:
			value = await conn.fetchval(
				"SELECT COUNT(*) FROM com WHERE LOWER(created_by) = LOWER($1) AND created_at > $2",
				author,
				since,
			)
		return int(value or 0)

	async def withdraw_reaction(self, *, parent_cid: int, author: str, body: str) -> list[int]:
		"""Tombstone the author's live reactions of ``body`` on ``parent_cid``."""
		async with self.pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				UPDATE com SET body = ''
				WHERE parent_cid = $1 AND LOWER(created_by) = LOWER($2) AND is_reaction AND body = $3
				RETURNING cid
				""",
				parent_cid,
				author,
				body,
			)
		return [row["cid"] for row in rows]

	async def tombstone(self, cid: int) -> bool:
		async with self.pool.acquire() as conn:
			result = await conn.execute("UPDATE com SET body = '' WHERE cid = $1 AND body <> ''", cid)
		return result.split()[-1] != "0"

	async def update_body(self, cid: int, body: str) -> models.Item | None:
		async with self.pool.acquire() as conn:
			record = await conn.fetchrow(
				f"UPDATE com SET body = $2 WHERE cid = $1 AND body <> '' RETURNING {_COLUMNS}",
				cid,
				body,
			)
		return models.Item.from_record(record) if record else None

	async def list_descendants(self, root_cid: int, viewer: Optional[User], *, max_depth: int) -> list[models.Item]:
		sql, args = build_descendants_query(root_cid, viewer, max_depth=max_depth)
		async with self.pool.acquire() as conn:
			rows = await conn.fetch(sql, *args)
		return [models.Item.from_record(row) for row in rows]

	async def reply_stats(self, parent_cids: Sequence[int], viewer: Optional[User]) -> list[models.ReplyStat]:
		"""Comment counts and per-character reaction counts for each parent.

		Withdrawn reactions (tombstoned) are excluded; tombstoned comments count.
		"""
		if not parent_cids:
			return []
		async with self.pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT parent_cid,
					CASE WHEN is_reaction THEN body END AS reaction,
					COUNT(*) AS n,
					BOOL_OR(LOWER(created_by) = $2) AS mine
				FROM com
				WHERE parent_cid = ANY($1::bigint[]) AND NOT (is_reaction AND body = '')
				GROUP BY parent_cid, reaction
				""",
				list(parent_cids),
				viewer.name.lower() if viewer else None,
			)
		return [
			models.ReplyStat(
				parent_cid=row["parent_cid"],
				reaction=row["reaction"],
				count=int(row["n"]),
				mine=bool(row["mine"]),
			)
			for row in rows
		]

	async def list_items(
		self,
		filters: ListFilters,
		viewer: Optional[User],
		*,
		sort: str,
		limit: int,
		offset: int,
	) -> list[models.Item]:
		sql, args = build_list_query(filters, viewer, sort=sort, limit=limit, offset=offset)
		async with self.pool.acquire() as conn:
			rows = await conn.fetch(sql, *args)
		return [models.Item.from_record(row) for row in rows]
