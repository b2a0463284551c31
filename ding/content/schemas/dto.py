"""Pydantic schemas for the content API."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field


class ItemCreateRequest(BaseModel):
	body: str = Field(..., min_length=1, max_length=1441)
	labels: Optional[str] = Field(
		default=None,
		max_length=1000,
		validation_alias=AliasChoices("labels", "tags"),
	)


class ItemUpdateRequest(BaseModel):
	body: str = Field(..., min_length=1, max_length=1441)


class ItemCreateResponse(BaseModel):
	cid: int
	created: bool = True


class ItemView(BaseModel):
	cid: int
	parent_cid: Optional[int] = None
	created_by: str
	body: str
	tags: List[str]
	orgs: List[str]
	usrs: List[str]
	labels: List[str]
	thumb: Optional[str] = None
	created_at: datetime
	is_reaction: bool = False
	is_deleted: bool = False
	comments: int = 0
	reaction_counts: Dict[str, int] = Field(default_factory=dict)
	user_reactions: List[str] = Field(default_factory=list)
	children: List["ItemView"] = Field(default_factory=list)
	reply_ids: List[int] = Field(default_factory=list)


ItemView.model_rebuild()


class ItemListResponse(BaseModel):
	items: List[ItemView]
	page: int
	limit: int


class LabelsResponse(BaseModel):
	tag: List[str]
	org: List[str]
	usr: List[str]
	www: List[str]
	text: str
	params: List[List[str]]
	display: str
