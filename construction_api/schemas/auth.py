"""Схемы для аутентификации и администрирования пользователей"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from ..enums import UserRole


def _check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if not any(char.isdigit() for char in value):
        raise ValueError("Password must contain at least one number")
    return value


class RegisterRequest(BaseModel):
    """Регистрация нового пользователя"""
    name: str
    email: EmailStr
    password: str
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not 2 <= len(v) <= 50:
            raise ValueError("Name must be between 2 and 50 characters")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("phone", mode="before")
    @classmethod
    def empty_phone(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class PasswordChange(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class BlockHistoryRead(BaseModel):
    """Запись истории блокировок"""
    id: int
    blocked_by: Optional[UUID] = None
    reason: Optional[str] = None
    blocked_at: datetime
    expires_at: Optional[datetime] = None  # None - бессрочная блокировка
    unblocked_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserRead(BaseModel):
    """Пользователь без пароля и токенов"""
    id: UUID
    name: str
    email: str
    role: UserRole
    phone: Optional[str] = None
    is_blocked: bool = False
    block_reason: Optional[str] = None
    block_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserProfile(UserRead):
    block_history: List[BlockHistoryRead] = []


class TokenResponse(BaseModel):
    """Ответ на вход/регистрацию/обновление токена"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserRead


class BlockRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    duration_hours: Optional[float] = Field(default=None, gt=0)  # None - бессрочно


class RoleUpdate(BaseModel):
    role: UserRole


class PublicUser(BaseModel):
    """Автор отзыва или статьи в публичных ответах (без email и телефона)"""
    id: UUID
    name: str

    model_config = ConfigDict(from_attributes=True)
