"""Схемы статей блога"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Optional
from datetime import datetime
from uuid import UUID

from ..enums import BlogCategory
from .auth import PublicUser

CONTENT_MIN = 50

# Поля, которые нельзя очистить через PUT
REQUIRED_FIELDS = ("title", "content", "category", "tags", "is_published")


def _title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Please add a title")
    return value


def _content(value: str) -> str:
    if len(value.strip()) < CONTENT_MIN:
        raise ValueError(f"Content must be at least {CONTENT_MIN} characters long")
    return value


class BlogPostCreate(BaseModel):
    title: str = Field(max_length=100)
    content: str
    excerpt: Optional[str] = Field(default=None, max_length=200)
    cover_image: Optional[str] = None
    category: BlogCategory
    tags: List[str] = Field(default_factory=list)
    is_published: bool = False

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _title(v)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _content(v)


class BlogPostUpdate(BaseModel):
    """Частичное обновление. excerpt и cover_image можно очистить через null"""
    title: Optional[str] = Field(default=None, max_length=100)
    content: Optional[str] = None
    excerpt: Optional[str] = Field(default=None, max_length=200)
    cover_image: Optional[str] = None
    category: Optional[BlogCategory] = None
    tags: Optional[List[str]] = None
    is_published: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator(*REQUIRED_FIELDS, mode="before")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Field must not be null")
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return _title(v) if v is not None else v

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: Optional[str]) -> Optional[str]:
        return _content(v) if v is not None else v


class BlogPostRead(BaseModel):
    id: UUID
    title: str
    slug: str
    content: str
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None
    category: BlogCategory
    tags: List[str] = []
    author: Optional[PublicUser] = None
    is_published: bool
    published_at: Optional[datetime] = None
    read_time: int
    views: int
    average_rating: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BlogPostListResponse(BaseModel):
    count: int
    total: int
    page: int
    pages: int
    data: List[BlogPostRead]
