"""Login, rider and leaderboard schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Email-only login; the pseudo is used on first login."""

    email: str = ""
    pseudo: str | None = Field(default=None, description="Display name, max 40 chars")


class LoginResponse(BaseModel):
    ok: bool = True
    id: str
    pseudo: str


class LeaderboardEntry(BaseModel):
    id: str
    name: str
    distance: int
    score: int


class LeaderboardResponse(BaseModel):
    ok: bool = True
    leaderboard: list[LeaderboardEntry]
