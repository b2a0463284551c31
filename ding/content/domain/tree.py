"""Bounded-depth comment trees and reply aggregation."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from ding.content.domain.models import Item, ReplyStat

# Levels below the requested item that are materialized. Replies one level
# further down are returned as bare ids; callers re-query with one of them as
# the new root to go deeper.
TREE_DEPTH = 2


@dataclass
class ReplySummary:
	comments: int = 0
	reaction_counts: dict[str, int] = field(default_factory=dict)
	user_reactions: list[str] = field(default_factory=list)

	@classmethod
	def seeded(cls, defaults: Sequence[str]) -> "ReplySummary":
		return cls(reaction_counts={symbol: 0 for symbol in defaults})

	@property
	def reaction_total(self) -> int:
		return sum(self.reaction_counts.values())


def summarize_replies(
	stats: Iterable[ReplyStat],
	cids: Iterable[int],
	defaults: Sequence[str],
) -> dict[int, ReplySummary]:
	"""Fold per-parent reply stats into comment counts and reaction tallies.

	Rows are summed rather than de-duplicated, so duplicate reactions from
	concurrent submissions are counted as they are stored.
	"""
	summaries = {cid: ReplySummary.seeded(defaults) for cid in cids}
	for stat in stats:
		summary = summaries.setdefault(stat.parent_cid, ReplySummary.seeded(defaults))
		if stat.reaction is None:
			summary.comments += stat.count
			continue
		summary.reaction_counts[stat.reaction] = summary.reaction_counts.get(stat.reaction, 0) + stat.count
		if stat.mine and stat.reaction not in summary.user_reactions:
			summary.user_reactions.append(stat.reaction)
	return summaries


@dataclass
class TreeNode:
	item: Item
	depth: int
	children: list["TreeNode"] = field(default_factory=list)
	reply_ids: list[int] = field(default_factory=list)

	def walk(self) -> Iterator["TreeNode"]:
		yield self
		for child in self.children:
			yield from child.walk()


def assemble_tree(root: Item, descendants: Sequence[Item], *, max_depth: int = TREE_DEPTH) -> TreeNode:
	"""Attach non-reaction replies under ``root`` down to ``max_depth`` levels.

	``descendants`` must be ordered the way children should be displayed.
	Reactions never appear as children; they only feed the aggregates.
	"""
	by_parent: dict[int, list[Item]] = defaultdict(list)
	for item in descendants:
		if item.parent_cid is not None and not item.is_reaction:
			by_parent[item.parent_cid].append(item)

	def build(item: Item, depth: int) -> TreeNode:
		node = TreeNode(item=item, depth=depth)
		replies = by_parent.get(item.cid, [])
		if depth < max_depth:
			node.children = [build(reply, depth + 1) for reply in replies]
		else:
			node.reply_ids = [reply.cid for reply in replies]
		return node

	return build(root, 0)
