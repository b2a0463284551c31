"""Domain models for content items."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

import regex
from pydantic import BaseModel, ConfigDict, Field

_GRAPHEME = regex.compile(r"\X")

SORT_NEW = "new"
SORT_TOP = "top"
SORTS = (SORT_NEW, SORT_TOP)


def grapheme_count(text: str) -> int:
	"""Number of user-perceived characters (extended grapheme clusters)."""
	return len(_GRAPHEME.findall(text))


def is_reaction_body(body: str) -> bool:
	return grapheme_count(body) == 1


class Item(BaseModel):
	"""A persisted post or reply."""

	cid: int
	parent_cid: Optional[int] = None
	created_by: str
	body: str
	is_reaction: bool = False
	tags: list[str] = Field(default_factory=list)
	orgs: list[str] = Field(default_factory=list)
	usrs: list[str] = Field(default_factory=list)
	thumb: Optional[str] = None
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Item":
		data = {key: record[key] for key in record.keys() if key in cls.model_fields}
		for key in ("tags", "orgs", "usrs"):
			data[key] = list(data.get(key) or [])
		return cls.model_validate(data)

	@property
	def is_root(self) -> bool:
		return self.parent_cid is None

	@property
	def is_tombstone(self) -> bool:
		return self.body == ""


@dataclass(frozen=True)
class ReplyStat:
	"""One aggregate row over the direct replies of ``parent_cid``.

	``reaction`` is the reaction character, or None for the row counting
	comments. ``mine`` is set when the viewer authored at least one of the rows.
	"""

	parent_cid: int
	reaction: Optional[str]
	count: int
	mine: bool = False


@dataclass
class ListFilters:
	"""Listing predicates. Categories combine with AND."""

	tags: list[str] = field(default_factory=list)
	orgs: list[str] = field(default_factory=list)
	usrs: list[str] = field(default_factory=list)
	mentions: list[str] = field(default_factory=list)
	www: list[str] = field(default_factory=list)
	replies_to: Optional[str] = None
	reactions: bool = False
	comments: bool = False
	q: Optional[str] = None
	cid: Optional[int] = None

	@property
	def roots_only(self) -> bool:
		return self.cid is None and not self.reactions and not self.comments and self.replies_to is None


@dataclass(frozen=True)
class CreateResult:
	"""Outcome of a create call.

	``created`` is False when a repeated reaction withdrew the viewer's
	existing one instead of inserting a row.
	"""

	cid: int
	created: bool = True
