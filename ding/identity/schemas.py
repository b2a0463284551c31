"""Pydantic schemas for identity and profile flows."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, EmailStr, Field

HANDLE_PATTERN = r"^[A-Za-z0-9_]{2,32}$"


class SignupRequest(BaseModel):
	name: Annotated[str, Field(pattern=HANDLE_PATTERN)]
	email: EmailStr
	password: Annotated[str, Field(min_length=8, max_length=256)]
	invited_by: Optional[str] = None


class LoginRequest(BaseModel):
	email: EmailStr
	password: str


class ForgotPasswordRequest(BaseModel):
	email: EmailStr


class ResetPasswordRequest(BaseModel):
	email: EmailStr
	token: str
	password: Annotated[str, Field(min_length=8, max_length=256)]


class InviteRequest(BaseModel):
	name: Annotated[str, Field(pattern=HANDLE_PATTERN)]
	email: EmailStr


class ProfileUpdateRequest(BaseModel):
	bio: Annotated[str, Field(default="", max_length=1441)]


class PublicProfile(BaseModel):
	name: str
	bio: str = ""
	invited_by: str
	created_at: datetime


class SelfProfile(PublicProfile):
	email: str
	email_verified: bool = False
	orgs_r: List[str] = Field(default_factory=list)
	orgs_w: List[str] = Field(default_factory=list)


class SessionResponse(BaseModel):
	name: str
	email_verified: bool = False


class StatusResponse(BaseModel):
	ok: bool = True
