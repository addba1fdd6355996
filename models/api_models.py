"""Pydantic request/response models for the FastAPI endpoints.

Keep transport concerns (validation, docs) here and keep business/domain
types in `models.domain_models`.
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class CreatePlayerRequest(BaseModel):
	name: str = Field(min_length=1, max_length=200)
	class_name: str = Field(min_length=1, max_length=100)
	email: str | None = None
	player_id: str | None = None


class JoinGameRequest(BaseModel):
	pin: str


class SubmitProofRequest(BaseModel):
	target_name: str = Field(min_length=1, max_length=200)
	media_url: str | None = None
	location: str | None = None


class ReviewProofRequest(BaseModel):
	admin_notes: str = ""


class PlayerNameRequest(BaseModel):
	name: str = Field(min_length=1, max_length=200)


class SetBountyRequest(BaseModel):
	name: str = Field(min_length=1, max_length=200)
	prize: str
	description: str = ""


class SetGamePinRequest(BaseModel):
	pin: str | None = None  # omitted: generate one


class ErrorBody(BaseModel):
	code: str
	message: str


class ErrorResponse(BaseModel):
	error: ErrorBody


__all__ = [
	"CreatePlayerRequest",
	"JoinGameRequest",
	"SubmitProofRequest",
	"ReviewProofRequest",
	"PlayerNameRequest",
	"SetBountyRequest",
	"SetGamePinRequest",
	"ErrorBody",
	"ErrorResponse",
]
