"""Profile routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ding.api.deps import get_current_user, get_identity_service
from ding.identity import policy, schemas
from ding.identity.models import User
from ding.identity.service import IdentityService

router = APIRouter(prefix="/u", tags=["identity:users"])


def _self_profile(user: User) -> schemas.SelfProfile:
	return schemas.SelfProfile(
		name=user.name,
		bio=user.bio,
		invited_by=user.invited_by,
		created_at=user.created_at,
		email=user.email,
		email_verified=user.is_verified,
		orgs_r=user.orgs_r,
		orgs_w=user.orgs_w,
	)


@router.get("", response_model=schemas.SelfProfile)
async def get_self(actor: User = Depends(get_current_user)) -> schemas.SelfProfile:
	return _self_profile(actor)


@router.patch("", response_model=schemas.SelfProfile)
async def update_self(
	payload: schemas.ProfileUpdateRequest,
	actor: User = Depends(get_current_user),
	service: IdentityService = Depends(get_identity_service),
) -> schemas.SelfProfile:
	try:
		user = await service.update_profile(actor, bio=payload.bio)
	except policy.IdentityError as exc:
		raise HTTPException(status_code=exc.status_code, detail=exc.detail) from None
	return _self_profile(user)


@router.get("/{name}", response_model=schemas.PublicProfile)
async def get_profile(name: str, service: IdentityService = Depends(get_identity_service)) -> schemas.PublicProfile:
	try:
		user = await service.get_profile(name)
	except policy.IdentityError as exc:
		raise HTTPException(status_code=exc.status_code, detail=exc.detail) from None
	return schemas.PublicProfile(name=user.name, bio=user.bio, invited_by=user.invited_by, created_at=user.created_at)
