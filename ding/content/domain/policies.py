"""Label-driven authorization policies for content operations."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ding.content.domain import models
from ding.content.domain.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ding.content.domain.labels import Labels
from ding.identity.models import User


def can_read(viewer: Optional[User], orgs: Sequence[str], usrs: Sequence[str]) -> bool:
	"""Read rule: every org must be readable and, if usrs is set, the viewer named.

	Anonymous viewers read nothing org-labelled and nothing mention-gated.
	"""
	readable = set(viewer.orgs_r) if viewer else set()
	if not set(orgs) <= readable:
		return False
	if not usrs:
		return True
	if viewer is None:
		return False
	handle = viewer.name.lower()
	return any(usr.lower() == handle for usr in usrs)


def require_visible(item: models.Item | None, viewer: Optional[User]) -> models.Item:
	"""Missing and hidden items are both reported as not found."""
	if item is None or not can_read(viewer, item.orgs, item.usrs):
		raise NotFoundError("item_not_found")
	return item


def assert_can_post_root(actor: User, labels: Labels) -> None:
	if not labels.tag:
		raise ValidationError("tag_required")
	writable = set(actor.orgs_w)
	missing = [org for org in labels.org if org not in writable]
	if missing:
		raise ForbiddenError("org_write_denied")


def assert_can_reply(actor: User, root: models.Item) -> None:
	"""Replies re-check read access against the thread root's labels."""
	if not can_read(actor, root.orgs, root.usrs):
		raise ForbiddenError("reply_not_permitted")


def ensure_no_reply_labels(labels: Labels) -> None:
	if labels.tag or labels.org or labels.usr:
		raise ValidationError("reply_labels_forbidden")


def ensure_body(body: str, *, max_length: int) -> None:
	if not body or not body.strip():
		raise ValidationError("body_required")
	if len(body) > max_length:
		raise ValidationError("body_too_long")


def ensure_author(item: models.Item, actor: User) -> None:
	if not actor.same_handle(item.created_by):
		raise ForbiddenError("author_required")


def ensure_not_tombstone(item: models.Item) -> None:
	if item.is_tombstone:
		raise ConflictError("item_deleted")


def ensure_sort(sort: str) -> str:
	if sort not in models.SORTS:
		raise ValidationError("invalid_sort")
	return sort


def clamp_limit(limit: int | None, *, default: int, maximum: int) -> int:
	if limit is None:
		return default
	return max(1, min(maximum, int(limit)))


def normalise_names(values: Iterable[str]) -> list[str]:
	seen: list[str] = []
	for value in values:
		lowered = value.strip().lstrip("@").lower()
		if lowered and lowered not in seen:
			seen.append(lowered)
	return seen
