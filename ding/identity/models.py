"""Domain models for the identity subsystem."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
	"""A registered account.

	``orgs_r`` lists the org labels the user may read; ``orgs_w`` the ones they
	may attach when posting. Both are granted administratively.
	"""

	usr_id: int
	name: str
	email: str
	password: Optional[str] = Field(default=None, repr=False)
	bio: str = ""
	invited_by: str
	orgs_r: list[str] = Field(default_factory=list)
	orgs_w: list[str] = Field(default_factory=list)
	email_verified_at: Optional[datetime] = None
	created_at: datetime

	model_config = ConfigDict(from_attributes=True)

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "User":
		data = dict(record)
		data["orgs_r"] = list(data.get("orgs_r") or [])
		data["orgs_w"] = list(data.get("orgs_w") or [])
		return cls.model_validate(data)

	@property
	def is_verified(self) -> bool:
		return self.email_verified_at is not None

	def same_handle(self, other: str | None) -> bool:
		return other is not None and self.name.lower() == other.lower()
