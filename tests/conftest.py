from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from ding.api import deps
from ding.content.domain import models, policies
from ding.content.domain.models import ListFilters
from ding.content.domain.services import ContentService
from ding.content.infra.quota import PostQuota
from ding.identity.models import User
from ding.identity.service import IdentityService
from ding.identity.tokens import EmailTokenService
from ding.infra import postgres
from ding.main import app
from ding.settings import settings

REACTIONS = ("👍", "👎")


class FakeContentRepository:
	"""In-memory stand-in for ContentRepository with the same query semantics."""

	def __init__(self) -> None:
		self.items: dict[int, models.Item] = {}
		self._next_cid = 1
		self._clock = datetime.now(timezone.utc)

	def _tick(self) -> datetime:
		self._clock += timedelta(seconds=1)
		return self._clock

	async def get_item(self, cid: int) -> models.Item | None:
		return self.items.get(cid)

	async def get_thread_root(self, cid: int) -> models.Item | None:
		item = self.items.get(cid)
		while item is not None and item.parent_cid is not None:
			item = self.items.get(item.parent_cid)
		return item

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
		item = models.Item(
			cid=self._next_cid,
			parent_cid=parent_cid,
			created_by=created_by,
			body=body,
			is_reaction=is_reaction,
			tags=list(tags),
			orgs=list(orgs),
			usrs=list(usrs),
			thumb=thumb,
			created_at=self._tick(),
		)
		self.items[item.cid] = item
		self._next_cid += 1
		return item

	async def count_recent_by(self, author: str, since: datetime) -> int:
		return sum(1 for item in self.items.values() if item.created_by.lower() == author.lower() and item.created_at > since)

	async def withdraw_reaction(self, *, parent_cid: int, author: str, body: str) -> list[int]:
		withdrawn = []
		for item in self.items.values():
			if (
				item.parent_cid == parent_cid
				and item.is_reaction
				and item.body == body
				and item.created_by.lower() == author.lower()
			):
				item.body = ""
				withdrawn.append(item.cid)
		return withdrawn

	async def tombstone(self, cid: int) -> bool:
		item = self.items.get(cid)
		if item is None or item.body == "":
			return False
		item.body = ""
		return True

	async def update_body(self, cid: int, body: str) -> models.Item | None:
		item = self.items.get(cid)
		if item is None or item.body == "":
			return None
		item.body = body
		return item

	def _children(self, cid: int) -> list[models.Item]:
		return sorted(
			(item for item in self.items.values() if item.parent_cid == cid),
			key=lambda item: (item.created_at, item.cid),
		)

	async def list_descendants(self, root_cid: int, viewer: Optional[User], *, max_depth: int) -> list[models.Item]:
		result: list[models.Item] = []
		frontier = [root_cid]
		for _depth in range(max_depth):
			level: list[models.Item] = []
			for cid in frontier:
				level.extend(self._children(cid))
			level.sort(key=lambda item: (item.created_at, item.cid))
			result.extend(item for item in level if policies.can_read(viewer, item.orgs, item.usrs))
			frontier = [item.cid for item in level if not item.is_reaction]
		return result

	async def reply_stats(self, parent_cids: Sequence[int], viewer: Optional[User]) -> list[models.ReplyStat]:
		groups: dict[tuple[int, Optional[str]], list[models.Item]] = defaultdict(list)
		for item in self.items.values():
			if item.parent_cid not in parent_cids:
				continue
			if item.is_reaction and item.body == "":
				continue
			groups[(item.parent_cid, item.body if item.is_reaction else None)].append(item)
		handle = viewer.name.lower() if viewer else None
		return [
			models.ReplyStat(
				parent_cid=parent,
				reaction=reaction,
				count=len(rows),
				mine=any(row.created_by.lower() == handle for row in rows),
			)
			for (parent, reaction), rows in groups.items()
		]

	def _reaction_count(self, cid: int) -> int:
		return sum(1 for item in self._children(cid) if item.is_reaction and item.body)

	def _matches(self, item: models.Item, filters: ListFilters, viewer: Optional[User]) -> bool:
		if not policies.can_read(viewer, item.orgs, item.usrs):
			return False
		if filters.cid is not None:
			if item.parent_cid != filters.cid:
				return False
		elif filters.roots_only and item.parent_cid is not None:
			return False
		if filters.tags and not set(filters.tags) <= set(item.tags):
			return False
		if filters.orgs and not set(filters.orgs) & set(item.orgs):
			return False
		if filters.usrs and item.created_by.lower() not in {u.lower() for u in filters.usrs}:
			return False
		if filters.mentions and not {u.lower() for u in item.usrs} & {m.lower() for m in filters.mentions}:
			return False
		if filters.www and not any(domain.lower() in item.body.lower() for domain in filters.www):
			return False
		if filters.replies_to is not None:
			parent = self.items.get(item.parent_cid) if item.parent_cid else None
			if item.is_reaction or parent is None or parent.created_by.lower() != filters.replies_to.lower():
				return False
		if filters.reactions and not item.is_reaction:
			return False
		if filters.comments and (item.parent_cid is None or item.is_reaction):
			return False
		if filters.q and not all(word.lower() in item.body.lower() for word in filters.q.split()):
			return False
		return True

	async def list_items(
		self,
		filters: ListFilters,
		viewer: Optional[User],
		*,
		sort: str,
		limit: int,
		offset: int,
	) -> list[models.Item]:
		rows = [item for item in self.items.values() if self._matches(item, filters, viewer)]
		rows.sort(key=lambda item: (item.created_at, item.cid), reverse=True)
		if sort == models.SORT_TOP:
			rows.sort(key=lambda item: self._reaction_count(item.cid), reverse=True)
		return rows[offset : offset + limit]


class FakeUserRepository:
	def __init__(self) -> None:
		self.users: dict[int, User] = {}
		self._next_id = 1

	def add(self, user: User) -> User:
		self.users[user.usr_id] = user
		self._next_id = max(self._next_id, user.usr_id + 1)
		return user

	async def get_by_name(self, name: str) -> User | None:
		return next((u for u in self.users.values() if u.name.lower() == name.lower()), None)

	async def get_by_email(self, email: str) -> User | None:
		return next((u for u in self.users.values() if u.email == email), None)

	async def create_user(self, *, name: str, email: str, password: Optional[str], invited_by: Optional[str]) -> User:
		user = User(
			usr_id=self._next_id,
			name=name,
			email=email,
			password=password,
			invited_by=invited_by or name,
			created_at=datetime.now(timezone.utc),
		)
		return self.add(user)

	async def set_password(self, usr_id: int, password_hash: str, *, verify_email: bool = False) -> None:
		user = self.users[usr_id]
		user.password = password_hash
		if verify_email and user.email_verified_at is None:
			user.email_verified_at = datetime.now(timezone.utc)

	async def mark_email_verified(self, usr_id: int) -> bool:
		user = self.users[usr_id]
		if user.email_verified_at is not None:
			return False
		user.email_verified_at = datetime.now(timezone.utc)
		return True

	async def update_bio(self, usr_id: int, bio: str) -> User | None:
		user = self.users.get(usr_id)
		if user is not None:
			user.bio = bio
		return user

	async def grant_orgs(
		self,
		name: str,
		*,
		read: Sequence[str] = (),
		write: Sequence[str] = (),
		revoke: bool = False,
	) -> User | None:
		user = await self.get_by_name(name)
		if user is None:
			return None
		read_set = {org.lower() for org in (*read, *(() if revoke else write))}
		write_set = {org.lower() for org in write}
		if revoke:
			user.orgs_r = [org for org in user.orgs_r if org not in read_set]
			user.orgs_w = [org for org in user.orgs_w if org not in write_set]
		else:
			user.orgs_r = sorted(set(user.orgs_r) | read_set)
			user.orgs_w = sorted(set(user.orgs_w) | write_set)
		return user


class RecordingMailer:
	def __init__(self) -> None:
		self.sent: list[tuple[str, str, str]] = []

	async def send_verification(self, email: str, token: str) -> None:
		self.sent.append(("verify", email, token))

	async def send_password_reset(self, email: str, token: str) -> None:
		self.sent.append(("reset", email, token))

	async def send_invite(self, email: str, token: str, *, invited_by: str, name: str) -> None:
		self.sent.append(("invite", email, token))

	def last(self, kind: str) -> tuple[str, str, str]:
		return next(entry for entry in reversed(self.sent) if entry[0] == kind)


def build_user(
	name: str,
	*,
	usr_id: int = 1,
	orgs_r: Sequence[str] = (),
	orgs_w: Sequence[str] = (),
	email: str | None = None,
	password: str | None = None,
) -> User:
	return User(
		usr_id=usr_id,
		name=name,
		email=email or f"{name.lower()}@example.com",
		password=password,
		invited_by=name,
		orgs_r=list(orgs_r),
		orgs_w=list(orgs_w),
		email_verified_at=datetime.now(timezone.utc),
		created_at=datetime.now(timezone.utc),
	)


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from ding.infra.redis import redis_client, set_redis_client

	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def app_environment(monkeypatch):
	monkeypatch.setattr(settings, "environment", "test")


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture()
def make_user():
	return build_user


@pytest.fixture()
def content_repo() -> FakeContentRepository:
	return FakeContentRepository()


@pytest.fixture()
def user_repo() -> FakeUserRepository:
	return FakeUserRepository()


@pytest.fixture()
def mailbox() -> RecordingMailer:
	return RecordingMailer()


@pytest.fixture()
def token_service() -> EmailTokenService:
	return EmailTokenService("test-secret", 2 * 24 * 3600)


@pytest.fixture()
def content_service(content_repo) -> ContentService:
	quota = PostQuota(content_repo, limit=settings.daily_post_limit)
	return ContentService(content_repo, quota, None, reaction_defaults=REACTIONS)


@pytest.fixture()
def identity_service(user_repo, mailbox, token_service) -> IdentityService:
	return IdentityService(user_repo, tokens=token_service, mailer=mailbox)


@pytest_asyncio.fixture
async def api_client(content_service, identity_service):
	app.dependency_overrides[deps.get_content_service] = lambda: content_service
	app.dependency_overrides[deps.get_identity_service] = lambda: identity_service
	transport = ASGITransport(app=app)
	try:
		async with AsyncClient(transport=transport, base_url="http://testserver") as client:
			yield client
	finally:
		app.dependency_overrides.clear()
