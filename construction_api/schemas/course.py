"""Схемы курсов"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Any, List, Optional
from datetime import datetime
from uuid import UUID

from ..enums import CourseLevel

DESCRIPTION_MIN = 50

REQUIRED_FIELDS = (
    "title",
    "description",
    "level",
    "duration",
    "instructor_name",
    "requirements",
    "objectives",
    "is_published",
    "is_active",
)


def _required_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Field must not be empty")
    return value


def _description(value: str) -> str:
    if len(value.strip()) < DESCRIPTION_MIN:
        raise ValueError(f"Description must be at least {DESCRIPTION_MIN} characters long")
    return value


class CourseCreate(BaseModel):
    title: str = Field(max_length=100)
    description: str
    short_description: Optional[str] = Field(default=None, max_length=200)
    level: CourseLevel
    duration: int = Field(ge=1, description="Длительность в часах")
    instructor_name: str
    instructor_email: Optional[EmailStr] = None
    instructor_bio: Optional[str] = None
    video: Optional[str] = None
    photo: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    objectives: List[str] = Field(default_factory=list)
    is_published: bool = False
    is_active: bool = True

    @field_validator("title", "instructor_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return _required_text(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return _description(v)


class CourseUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    short_description: Optional[str] = Field(default=None, max_length=200)
    level: Optional[CourseLevel] = None
    duration: Optional[int] = Field(default=None, ge=1)
    instructor_name: Optional[str] = None
    instructor_email: Optional[EmailStr] = None
    instructor_bio: Optional[str] = None
    video: Optional[str] = None
    photo: Optional[str] = None
    requirements: Optional[List[str]] = None
    objectives: Optional[List[str]] = None
    is_published: Optional[bool] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator(*REQUIRED_FIELDS, mode="before")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("Field must not be null")
        return v

    @field_validator("title", "instructor_name")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> Optional[str]:
        return _required_text(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _description(v) if v is not None else v


class CourseRead(BaseModel):
    id: UUID
    title: str
    slug: str
    description: str
    short_description: Optional[str] = None
    level: CourseLevel
    duration: int
    instructor_name: str
    instructor_email: Optional[str] = None
    instructor_bio: Optional[str] = None
    video: Optional[str] = None
    photo: Optional[str] = None
    requirements: List[str] = []
    objectives: List[str] = []
    is_published: bool
    is_active: bool
    average_rating: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CourseListResponse(BaseModel):
    count: int
    total: int
    page: int
    pages: int
    data: List[CourseRead]
