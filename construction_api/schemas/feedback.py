"""Схемы оценок к статьям и курсам"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List
from datetime import datetime


class FeedbackCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field(max_length=500)

    @field_validator("comment")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment is required")
        return v


class FeedbackRead(BaseModel):
    id: int
    rating: int
    comment: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FeedbackListResponse(BaseModel):
    count: int
    average_rating: float
    data: List[FeedbackRead]


class FeedbackDeleteResponse(BaseModel):
    message: str
    average_rating: float
