"""Схемы для заявок на консультацию"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from uuid import UUID

from ..enums import ConsultationStatus, ServiceCategory

DESCRIPTION_MIN = 50
DESCRIPTION_MAX = 1000


def _required_text(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Field must not be empty")
    return value


def _description(value: str) -> str:
    value = value.strip()
    if not DESCRIPTION_MIN <= len(value) <= DESCRIPTION_MAX:
        raise ValueError(f"Description must be between {DESCRIPTION_MIN} and {DESCRIPTION_MAX} characters")
    return value


class ConsultationCreate(BaseModel):
    """Новая заявка на консультацию (статус всегда pending)"""
    service: ServiceCategory
    project_type: str
    description: str
    location: str
    preferred_date: datetime
    is_urgent: bool = False

    @field_validator("project_type", "location")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return _required_text(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        return _description(v)


class ConsultationUpdate(BaseModel):
    """Частичное обновление заявки. Статус меняется только через PATCH /status"""
    service: Optional[ServiceCategory] = None
    project_type: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    preferred_date: Optional[datetime] = None
    is_urgent: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("*", mode="before")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        # Колонки NOT NULL: null не очищает поле
        if v is None:
            raise ValueError("Field must not be null")
        return v

    @field_validator("project_type", "location")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> Optional[str]:
        return _required_text(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return _description(v) if v is not None else v


class ConsultationOwner(BaseModel):
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ConsultationRead(BaseModel):
    id: UUID
    user_id: UUID
    user: Optional[ConsultationOwner] = None
    service: ServiceCategory
    project_type: str
    description: str
    location: str
    preferred_date: datetime
    is_urgent: bool
    status: ConsultationStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ConsultationListResponse(BaseModel):
    count: int
    total: int
    data: List[ConsultationRead]


class StatusUpdateRequest(BaseModel):
    status: ConsultationStatus
    reason: Optional[str] = Field(default=None, max_length=500)


class UrgentUpdateRequest(BaseModel):
    is_urgent: bool = True


class StatusChangeRead(BaseModel):
    old_status: ConsultationStatus
    new_status: ConsultationStatus
    changed_by: UUID
    reason: Optional[str] = None
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StatusUpdateResponse(BaseModel):
    data: ConsultationRead
    status_change: StatusChangeRead


class StatusHistoryRead(BaseModel):
    """Запись журнала смены статусов"""
    id: int
    status: ConsultationStatus
    changed_by: Optional[UUID] = None
    changed_by_name: Optional[str] = None
    reason: Optional[str] = None
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_entry(cls, entry) -> "StatusHistoryRead":
        data: Dict[str, Any] = {
            "id": entry.id,
            "status": entry.status,
            "changed_by": entry.changed_by,
            "changed_by_name": entry.changed_by_user.name if entry.changed_by_user else None,
            "reason": entry.reason,
            "changed_at": entry.changed_at,
        }
        return cls(**data)


class StatusHistoryResponse(BaseModel):
    consultation_id: UUID
    current_status: ConsultationStatus
    history: List[StatusHistoryRead]


class ConsultationStatsRead(BaseModel):
    total: int
    pending: int
    confirmed: int
    completed: int
    cancelled: int
    urgent: int


class ConsultationStatsResponse(BaseModel):
    stats: ConsultationStatsRead
    recent: List[ConsultationRead]
