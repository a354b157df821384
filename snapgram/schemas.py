"""
Pydantic schemas for the Snapgram HTTP API.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class SignUpRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    username: Optional[str] = Field(default=None, max_length=128)
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=8, max_length=256)


class SignInRequest(BaseModel):
    email: str
    password: str


class LikePostRequest(BaseModel):
    likes: list[str]


class SavePostRequest(BaseModel):
    user_id: str


class StatusResponse(BaseModel):
    status: Literal["ok"]


class DocumentListResponse(BaseModel):
    total: int
    documents: list[dict[str, Any]]


class InfinitePostsResponse(DocumentListResponse):
    next_cursor: Optional[str] = None
