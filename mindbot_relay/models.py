"""
Shared data models for the MindBot Relay service.

This module defines the core domain records used across multiple layers
of the application (orchestration, storage, CLI, API).
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class ChatTurn(BaseModel):
    """One persisted exchange: the user's message and everything derived from it."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(..., min_length=1, description="The user's raw message")
    reply: str = Field(..., description="The generated assistant reply")
    sentiment: str = Field(..., min_length=1, description="Derived sentiment label")
    risk: bool = Field(..., description="Whether a high-risk phrase matched")
    timestamp: datetime = Field(
        default_factory=utc_now, description="When the turn was recorded"
    )


class MoodEntry(BaseModel):
    """A mood label at a point in time."""

    model_config = ConfigDict(frozen=True)

    mood: str = Field(..., min_length=1, description="The mood label")
    timestamp: datetime = Field(
        default_factory=utc_now, description="When the mood was recorded"
    )


class StoredMood(MoodEntry):
    """A mood entry annotated with its storage-assigned identifier."""

    id: str = Field(..., description="Identifier assigned by the store")


class ChatReply(BaseModel):
    """The outcome of handling one chat message."""

    reply: str
    sentiment: str
    risk: bool
