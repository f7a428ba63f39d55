"""Схемы отзывов клиентов"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional
from datetime import datetime
from uuid import UUID

from .auth import PublicUser

CONTENT_MIN = 10
CONTENT_MAX = 500


def _content(value: str) -> str:
    value = value.strip()
    if not CONTENT_MIN <= len(value) <= CONTENT_MAX:
        raise ValueError(f"Content must be between {CONTENT_MIN} and {CONTENT_MAX} characters")
    return value


class TestimonialCreate(BaseModel):
    content: str
    rating: int = Field(default=5, ge=1, le=5)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _content(v)


class TestimonialUpdate(BaseModel):
    content: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)

    model_config = ConfigDict(extra="forbid")

    @field_validator("*", mode="before")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Field must not be null")
        return v

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: Optional[str]) -> Optional[str]:
        return _content(v) if v is not None else v


class TestimonialRead(BaseModel):
    id: UUID
    user: Optional[PublicUser] = None
    content: str
    rating: int
    is_approved: bool
    is_featured: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
