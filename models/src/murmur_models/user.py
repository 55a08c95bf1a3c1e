"""User record produced by the local login."""

from typing import Literal

from pydantic import BaseModel, Field

Mood = Literal["happy", "sad", "surprised", "neutral"]


class User(BaseModel):
    """The signed-in user."""

    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address")
    avatar: str | None = Field(None, description="Avatar URL or data URI")
