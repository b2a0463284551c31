"""Service layer orchestrating content operations.

Every read goes through the label read rule; every write goes through the
label write rules, the post quota, and (for root posts with a link) the
thumbnail resolver.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ding.content.domain import policies
from ding.content.domain import repo as repo_module
from ding.content.domain.exceptions import ConflictError, ContentError, NotFoundError, ValidationError
from ding.content.domain.labels import format_labels, parse_labels
from ding.content.domain.models import CreateResult, Item, ListFilters, is_reaction_body
from ding.content.domain.tree import TREE_DEPTH, ReplySummary, TreeNode, assemble_tree, summarize_replies
from ding.content.infra.quota import PostQuota
from ding.content.infra.thumbnails import ThumbnailResolver
from ding.content.schemas import dto
from ding.identity.models import User
from ding.obs import logging as obs_logging
from ding.obs import metrics as obs_metrics
from ding.settings import settings

logger = obs_logging.get_logger(__name__)


class ContentService:
	"""Implements post, reply, reaction, and listing logic over a repository."""

	def __init__(
		self,
		repository: repo_module.ContentRepository,
		quota: PostQuota,
		thumbnails: Optional[ThumbnailResolver] = None,
		*,
		reaction_defaults: Sequence[str] | None = None,
		body_max_length: int | None = None,
		tree_depth: int = TREE_DEPTH,
	) -> None:
		self.repo = repository
		self.quota = quota
		self.thumbnails = thumbnails
		self.reaction_defaults = tuple(reaction_defaults if reaction_defaults is not None else settings.reaction_defaults())
		self.body_max_length = body_max_length or settings.body_max_length
		self.tree_depth = tree_depth

	# ------------------------------------------------------------------
	# Helpers

	def _to_view(self, item: Item, summary: ReplySummary | None) -> dto.ItemView:
		summary = summary or ReplySummary.seeded(self.reaction_defaults)
		return dto.ItemView(
			cid=item.cid,
			parent_cid=item.parent_cid,
			created_by=item.created_by,
			body=item.body,
			tags=item.tags,
			orgs=item.orgs,
			usrs=item.usrs,
			labels=format_labels(item),
			thumb=item.thumb,
			created_at=item.created_at,
			is_reaction=item.is_reaction,
			is_deleted=item.is_tombstone,
			comments=summary.comments,
			reaction_counts=dict(summary.reaction_counts),
			user_reactions=list(summary.user_reactions),
		)

	def _node_to_view(self, node: TreeNode, summaries: dict[int, ReplySummary]) -> dto.ItemView:
		view = self._to_view(node.item, summaries.get(node.item.cid))
		view.children = [self._node_to_view(child, summaries) for child in node.children]
		view.reply_ids = list(node.reply_ids)
		return view

	async def _summaries(self, cids: list[int], viewer: Optional[User]) -> dict[int, ReplySummary]:
		stats = await self.repo.reply_stats(cids, viewer)
		return summarize_replies(stats, cids, self.reaction_defaults)

	async def _resolve_thumbnail(self, body: str) -> Optional[str]:
		if self.thumbnails is None:
			return None
		return await self.thumbnails.resolve(body)

	# ------------------------------------------------------------------
	# Writes

	async def check_rate_limit(self, actor: User) -> bool:
		return await self.quota.check(actor)

	async def create_item(
		self,
		actor: User,
		body: str,
		*,
		parent_cid: int | None = None,
		labels: str | None = None,
	) -> CreateResult:
		"""Create a root post (``parent_cid`` None) or a reply.

		Root posts take their labels from ``labels``; replies must not pass
		labels and inherit the thread root's. A single-grapheme reply is a
		reaction; repeating one the actor already has live withdraws it.
		"""
		try:
			return await self._create_item(actor, body, parent_cid=parent_cid, labels=labels)
		except ContentError as exc:
			obs_metrics.inc_item_rejected(exc.detail)
			raise

	async def _create_item(
		self,
		actor: User,
		body: str,
		*,
		parent_cid: int | None,
		labels: str | None,
	) -> CreateResult:
		await self.quota.enforce(actor)
		policies.ensure_body(body, max_length=self.body_max_length)
		parsed = parse_labels(labels)

		if parent_cid is None:
			policies.assert_can_post_root(actor, parsed)
			thumb = await self._resolve_thumbnail(body)
			item = await self.repo.insert_item(
				parent_cid=None,
				created_by=actor.name,
				body=body,
				is_reaction=False,
				tags=parsed.tag,
				orgs=parsed.org,
				usrs=parsed.usr,
				thumb=thumb,
			)
			obs_metrics.inc_item_created("post")
			logger.info("item_created", extra={"cid": item.cid, "kind": "post", "actor": actor.name})
			return CreateResult(cid=item.cid)

		policies.ensure_no_reply_labels(parsed)
		parent = await self.repo.get_item(parent_cid)
		if parent is None:
			raise NotFoundError("item_not_found")
		root = parent if parent.is_root else await self.repo.get_thread_root(parent.cid)
		if root is None:
			raise NotFoundError("item_not_found")
		policies.assert_can_reply(actor, root)

		reaction = is_reaction_body(body)
		if reaction:
			withdrawn = await self.repo.withdraw_reaction(parent_cid=parent.cid, author=actor.name, body=body)
			if withdrawn:
				obs_metrics.inc_reaction_toggle()
				logger.info("reaction_withdrawn", extra={"parent_cid": parent.cid, "actor": actor.name})
				return CreateResult(cid=withdrawn[0], created=False)

		item = await self.repo.insert_item(
			parent_cid=parent.cid,
			created_by=actor.name,
			body=body,
			is_reaction=reaction,
			tags=root.tags,
			orgs=root.orgs,
			usrs=root.usrs,
			thumb=None,
		)
		kind = "reaction" if reaction else "reply"
		obs_metrics.inc_item_created(kind)
		logger.info("item_created", extra={"cid": item.cid, "kind": kind, "actor": actor.name})
		return CreateResult(cid=item.cid)

	async def update_item(self, actor: User, cid: int, body: str) -> dto.ItemView:
		policies.ensure_body(body, max_length=self.body_max_length)
		item = policies.require_visible(await self.repo.get_item(cid), actor)
		policies.ensure_author(item, actor)
		policies.ensure_not_tombstone(item)
		if item.is_reaction:
			raise ValidationError("reaction_not_editable")
		if not item.is_root and is_reaction_body(body):
			raise ValidationError("reply_body_too_short")
		if await self.repo.update_body(cid, body) is None:
			raise ConflictError("item_deleted")
		return await self.get_item(actor, cid)

	async def delete_item(self, actor: User, cid: int) -> None:
		"""Tombstone an item: the body is cleared, replies and labels stay."""
		item = policies.require_visible(await self.repo.get_item(cid), actor)
		policies.ensure_author(item, actor)
		policies.ensure_not_tombstone(item)
		if not await self.repo.tombstone(cid):
			raise ConflictError("item_deleted")
		logger.info("item_deleted", extra={"cid": cid, "actor": actor.name})

	# ------------------------------------------------------------------
	# Reads

	async def get_item(self, viewer: Optional[User], cid: int) -> dto.ItemView:
		item = policies.require_visible(await self.repo.get_item(cid), viewer)
		descendants = await self.repo.list_descendants(cid, viewer, max_depth=self.tree_depth + 1)
		tree = assemble_tree(item, descendants, max_depth=self.tree_depth)
		summaries = await self._summaries([node.item.cid for node in tree.walk()], viewer)
		return self._node_to_view(tree, summaries)

	async def list_items(
		self,
		viewer: Optional[User],
		filters: ListFilters,
		*,
		sort: str = "new",
		page: int = 0,
		limit: int | None = None,
	) -> list[dto.ItemView]:
		sort = policies.ensure_sort(sort)
		limit = policies.clamp_limit(limit, default=settings.list_default_limit, maximum=settings.list_max_limit)
		page = max(0, int(page))
		items = await self.repo.list_items(filters, viewer, sort=sort, limit=limit, offset=page * limit)
		summaries = await self._summaries([item.cid for item in items], viewer)
		return [self._to_view(item, summaries.get(item.cid)) for item in items]
