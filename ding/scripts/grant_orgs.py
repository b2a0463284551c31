"""Grant or revoke org read/write labels for a user.

Usage::

	python -m ding.scripts.grant_orgs alice --read acme --write acme
	python -m ding.scripts.grant_orgs alice --write acme --revoke
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional, Sequence

from ding.identity.repo import UserRepository
from ding.infra.postgres import close_pool, get_pool
from ding.infra.schema import ensure_schema


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Grant org labels to a ding user")
	parser.add_argument("name", help="User handle")
	parser.add_argument("--read", action="append", default=[], help="Org the user may read (repeatable)")
	parser.add_argument("--write", action="append", default=[], help="Org the user may post to (repeatable)")
	parser.add_argument("--revoke", action="store_true", help="Remove the given orgs instead of adding them")
	args = parser.parse_args(argv)
	if not args.read and not args.write:
		parser.error("at least one of --read/--write is required")
	return args


def _strip(values: Sequence[str]) -> list[str]:
	return [value.strip().lstrip("*") for value in values if value.strip().lstrip("*")]


async def grant_orgs(name: str, read: Sequence[str], write: Sequence[str], *, revoke: bool = False) -> None:
	pool = await get_pool()
	try:
		await ensure_schema(pool)
		user = await UserRepository(pool).grant_orgs(name, read=_strip(read), write=_strip(write), revoke=revoke)
	finally:
		await close_pool()
	if user is None:
		raise SystemExit(f"No user named {name}")
	print(f"{user.name}: read={','.join(user.orgs_r) or '-'} write={','.join(user.orgs_w) or '-'}")


def main(argv: Optional[Sequence[str]] = None) -> None:
	args = _parse_args(argv)
	asyncio.run(grant_orgs(args.name, args.read, args.write, revoke=args.revoke))


if __name__ == "__main__":
	main()
