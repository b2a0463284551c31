"""Account routes: signup, login, verification and password recovery."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from ding.api.deps import client_ip, get_current_user, get_identity_service
from ding.identity import policy, schemas
from ding.identity.models import User
from ding.identity.service import IdentityService
from ding.infra import jwt as jwt_helper
from ding.infra.cookies import clear_session_cookie, set_session_cookie

router = APIRouter(tags=["identity:auth"])


def _map_identity_error(exc: policy.IdentityError) -> HTTPException:
	headers = None
	if isinstance(exc, policy.RateLimitedError) and exc.retry_after:
		headers = {"Retry-After": str(exc.retry_after)}
	return HTTPException(status_code=exc.status_code, detail=exc.detail, headers=headers)


def _session(user: User) -> schemas.SessionResponse:
	return schemas.SessionResponse(name=user.name, email_verified=user.is_verified)


@router.post("/signup", response_model=schemas.SessionResponse, status_code=status.HTTP_201_CREATED)
async def signup(
	payload: schemas.SignupRequest,
	request: Request,
	response: Response,
	service: IdentityService = Depends(get_identity_service),
) -> schemas.SessionResponse:
	try:
		await policy.enforce_signup_rate(client_ip(request))
		user = await service.signup(payload.name, payload.email, payload.password, invited_by=payload.invited_by)
	except policy.IdentityError as exc:
		raise _map_identity_error(exc) from None
	set_session_cookie(response, jwt_helper.encode_session(user.name))
	return _session(user)


@router.post("/login", response_model=schemas.SessionResponse)
async def login(
	payload: schemas.LoginRequest,
	request: Request,
	response: Response,
	service: IdentityService = Depends(get_identity_service),
) -> schemas.SessionResponse:
	try:
		await policy.enforce_login_rate(client_ip(request))
		await policy.enforce_login_rate(policy.normalise_email(payload.email))
		user = await service.login(payload.email, payload.password)
	except policy.IdentityError as exc:
		raise _map_identity_error(exc) from None
	set_session_cookie(response, jwt_helper.encode_session(user.name))
	return _session(user)


@router.post("/logout", response_model=schemas.StatusResponse)
async def logout(response: Response) -> schemas.StatusResponse:
	clear_session_cookie(response)
	return schemas.StatusResponse()


@router.get("/verify-email", response_model=schemas.SessionResponse)
async def verify_email(
	request: Request,
	email: str = Query(..., max_length=254),
	token: str = Query(..., max_length=128),
	service: IdentityService = Depends(get_identity_service),
) -> schemas.SessionResponse:
	try:
		await policy.enforce_verify_rate(client_ip(request))
		user = await service.verify_email(email, token)
	except policy.IdentityError as exc:
		raise _map_identity_error(exc) from None
	return _session(user)


@router.post("/forgot-password", status_code=status.HTTP_202_ACCEPTED, response_model=schemas.StatusResponse)
async def forgot_password(
	payload: schemas.ForgotPasswordRequest,
	service: IdentityService = Depends(get_identity_service),
) -> schemas.StatusResponse:
	try:
		await policy.enforce_pwreset_rate(policy.normalise_email(payload.email))
		await service.request_password_reset(payload.email)
	except policy.IdentityError as exc:
		raise _map_identity_error(exc) from None
	return schemas.StatusResponse()


@router.post("/reset-password", response_model=schemas.SessionResponse)
async def reset_password(
	payload: schemas.ResetPasswordRequest,
	request: Request,
	response: Response,
	service: IdentityService = Depends(get_identity_service),
) -> schemas.SessionResponse:
	try:
		await policy.enforce_verify_rate(client_ip(request))
		user = await service.reset_password(payload.email, payload.token, payload.password)
	except policy.IdentityError as exc:
		raise _map_identity_error(exc) from None
	set_session_cookie(response, jwt_helper.encode_session(user.name))
	return schemas.SessionResponse(name=user.name, email_verified=True)


@router.post("/invite", response_model=schemas.PublicProfile, status_code=status.HTTP_201_CREATED)
async def invite(
	payload: schemas.InviteRequest,
	actor: User = Depends(get_current_user),
	service: IdentityService = Depends(get_identity_service),
) -> schemas.PublicProfile:
	try:
		await policy.enforce_invite_rate(actor.name)
		user = await service.invite(actor, payload.name, payload.email)
	except policy.IdentityError as exc:
		raise _map_identity_error(exc) from None
	return schemas.PublicProfile(name=user.name, bio=user.bio, invited_by=user.invited_by, created_at=user.created_at)
