from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from ..favorites.models import Restaurant


class ChatMessage(BaseModel):
    role: Literal["user", "model"]
    content: str


class ChatRequest(BaseModel):
    """A message for the recommendation chat. Omit ``history_id`` to start a new chat."""

    message: str = Field(..., min_length=1, max_length=1000)
    history_id: str | None = None


class Pick(BaseModel):
    id: str
    name: str
    reason: str


class Recommendation(BaseModel):
    recommendations: list[Pick] = Field(default_factory=list)
    summary: str = ""


class RecommendedRestaurant(BaseModel):
    restaurant: Restaurant
    reason: str


class ChatHistory(BaseModel):
    id: str
    user_id: str
    title: str
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: str


class ChatResponse(BaseModel):
    history_id: str
    summary: str
    recommendations: list[RecommendedRestaurant] = Field(default_factory=list)
    messages: list[ChatMessage] = Field(default_factory=list)
