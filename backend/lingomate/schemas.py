"""Request models validated at the HTTP boundary, and the response envelope."""
from __future__ import annotations

import uuid
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Body(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SyncUserRequest(_Body):
	username: Optional[str] = None
	email: Optional[str] = None
	avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")


class ProfileUpdateRequest(_Body):
	name: Optional[str] = None
	avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")
	country: Optional[str] = None
	style: Optional[str] = None
	gender: Optional[str] = None


class SettingsUpdateRequest(_Body):
	country: Optional[str] = None
	style: Optional[str] = None
	gender: Optional[str] = None


class FinishRequest(_Body):
	session_id: int = Field(alias="sessionId", gt=0)
	# Items stay raw; malformed turns are dropped by the core, not rejected here
	script: List[Any]
	# Non-numeric or non-finite scores fall back to the heuristic
	score: Optional[Any] = None


class DeleteRequest(_Body):
	session_id: Optional[int] = Field(default=None, alias="sessionId", gt=0)
	all: bool = False


def success_response(data: Any, message: str = "ok") -> dict:
	return {
		"success": True,
		"data": data,
		"message": message,
		"meta": {"requestId": str(uuid.uuid4())},
	}


def error_response(code: str, message: str) -> dict:
	return {
		"success": False,
		"code": code,
		"message": message,
		"traceId": str(uuid.uuid4()),
	}
