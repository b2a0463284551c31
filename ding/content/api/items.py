"""Item routes: listing, threads, posting, replying, editing and deleting."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ding.api.deps import get_content_service, get_current_user, get_optional_user
from ding.content.api._errors import to_http_error
from ding.content.domain import policies
from ding.content.domain.exceptions import ContentError
from ding.content.domain.labels import parse_labels
from ding.content.domain.models import ListFilters
from ding.content.domain.services import ContentService
from ding.content.schemas import dto
from ding.identity.models import User
from ding.settings import settings

router = APIRouter(tags=["content:items"])


def _lowered(values: List[str], prefix: str) -> list[str]:
	result: list[str] = []
	for value in values:
		cleaned = value.strip().removeprefix(prefix).lower()
		if cleaned and cleaned not in result:
			result.append(cleaned)
	return result


def build_filters(
	*,
	tag: List[str],
	org: List[str],
	usr: List[str],
	mention: List[str],
	www: List[str],
	replies_to: Optional[str],
	reactions: bool,
	comments: bool,
	q: Optional[str],
	cid: Optional[int],
	labels: Optional[str],
) -> ListFilters:
	"""Merge explicit filter parameters with a raw ``labels`` search string."""
	parsed = parse_labels(labels)
	text = " ".join(part for part in ((q or "").strip(), parsed.text) if part)
	replies = policies.normalise_names([replies_to]) if replies_to else []
	return ListFilters(
		tags=_lowered([*tag, *parsed.tag], "#"),
		orgs=_lowered([*org, *parsed.org], "*"),
		usrs=policies.normalise_names([*usr, *parsed.usr]),
		mentions=policies.normalise_names(mention),
		www=_lowered([*www, *parsed.www], "~"),
		replies_to=replies[0] if replies else None,
		reactions=reactions,
		comments=comments,
		q=text or None,
		cid=cid,
	)


@router.get("/c", response_model=dto.ItemListResponse)
async def list_items_endpoint(
	tag: List[str] = Query(default=[]),
	org: List[str] = Query(default=[]),
	usr: List[str] = Query(default=[]),
	mention: List[str] = Query(default=[]),
	www: List[str] = Query(default=[]),
	replies_to: Optional[str] = Query(default=None),
	reactions: bool = Query(default=False),
	comments: bool = Query(default=False),
	q: Optional[str] = Query(default=None, max_length=500),
	cid: Optional[int] = Query(default=None),
	labels: Optional[str] = Query(default=None, max_length=1000),
	sort: str = Query(default="new"),
	page: int = Query(default=0, ge=0),
	limit: int = Query(default=settings.list_default_limit),
	viewer: Optional[User] = Depends(get_optional_user),
	service: ContentService = Depends(get_content_service),
) -> dto.ItemListResponse:
	filters = build_filters(
		tag=tag,
		org=org,
		usr=usr,
		mention=mention,
		www=www,
		replies_to=replies_to,
		reactions=reactions,
		comments=comments,
		q=q,
		cid=cid,
		labels=labels,
	)
	try:
		items = await service.list_items(viewer, filters, sort=sort, page=page, limit=limit)
	except ContentError as exc:
		raise to_http_error(exc) from exc
	clamped = policies.clamp_limit(limit, default=settings.list_default_limit, maximum=settings.list_max_limit)
	return dto.ItemListResponse(items=items, page=page, limit=clamped)


@router.post("/c", response_model=dto.ItemCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_item_endpoint(
	payload: dto.ItemCreateRequest,
	actor: User = Depends(get_current_user),
	service: ContentService = Depends(get_content_service),
) -> dto.ItemCreateResponse:
	try:
		result = await service.create_item(actor, payload.body, labels=payload.labels)
	except ContentError as exc:
		raise to_http_error(exc) from exc
	return dto.ItemCreateResponse(cid=result.cid, created=result.created)


@router.get("/c/{cid}", response_model=dto.ItemView)
async def get_item_endpoint(
	cid: int,
	viewer: Optional[User] = Depends(get_optional_user),
	service: ContentService = Depends(get_content_service),
) -> dto.ItemView:
	try:
		return await service.get_item(viewer, cid)
	except ContentError as exc:
		raise to_http_error(exc) from exc


@router.post("/c/{cid}", response_model=dto.ItemCreateResponse, status_code=status.HTTP_201_CREATED)
async def reply_endpoint(
	cid: int,
	payload: dto.ItemCreateRequest,
	response: Response,
	actor: User = Depends(get_current_user),
	service: ContentService = Depends(get_content_service),
) -> dto.ItemCreateResponse:
	try:
		result = await service.create_item(actor, payload.body, parent_cid=cid, labels=payload.labels)
	except ContentError as exc:
		raise to_http_error(exc) from exc
	if not result.created:
		response.status_code = status.HTTP_200_OK
	return dto.ItemCreateResponse(cid=result.cid, created=result.created)


@router.patch("/c/{cid}", response_model=dto.ItemView)
async def update_item_endpoint(
	cid: int,
	payload: dto.ItemUpdateRequest,
	actor: User = Depends(get_current_user),
	service: ContentService = Depends(get_content_service),
) -> dto.ItemView:
	try:
		return await service.update_item(actor, cid, payload.body)
	except ContentError as exc:
		raise to_http_error(exc) from exc


@router.delete(
	"/c/{cid}",
	status_code=status.HTTP_204_NO_CONTENT,
	response_class=Response,
	response_model=None,
)
async def delete_item_endpoint(
	cid: int,
	actor: User = Depends(get_current_user),
	service: ContentService = Depends(get_content_service),
) -> None:
	try:
		await service.delete_item(actor, cid)
	except ContentError as exc:
		raise to_http_error(exc) from exc
	return None
