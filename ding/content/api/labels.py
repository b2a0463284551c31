"""Label codec endpoints used by the search box."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request

from ding.content.domain.labels import decode_labels, encode_labels, parse_labels
from ding.content.schemas import dto

router = APIRouter(prefix="/labels", tags=["content:labels"])


def _response(raw: str) -> dto.LabelsResponse:
	labels = parse_labels(raw)
	params = encode_labels(labels)
	return dto.LabelsResponse(
		tag=labels.tag,
		org=labels.org,
		usr=labels.usr,
		www=labels.www,
		text=labels.text,
		params=[[key, value] for key, value in params],
		display=decode_labels(params),
	)


@router.get("/parse", response_model=dto.LabelsResponse)
async def parse_endpoint(s: str = Query(default="", max_length=1000)) -> dto.LabelsResponse:
	return _response(s)


@router.get("/decode", response_model=dto.LabelsResponse)
async def decode_endpoint(request: Request) -> dto.LabelsResponse:
	"""Render ``tag``/``org``/``usr``/``www``/``q`` query parameters as a label string."""
	return _response(decode_labels(request.query_params))
