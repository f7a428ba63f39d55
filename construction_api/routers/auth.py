"""Роуты для аутентификации"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies.security import get_current_user
from ..exceptions import AuthenticationError, UserNotFoundError
from ..models import User
from ..schemas.auth import (
    LoginRequest,
    PasswordChange,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserProfile,
    UserRead,
    BlockHistoryRead,
)
from ..services.mailer import SmtpMailer, get_mailer
from ..services.notifications import send_welcome_email
from ..services.user_service import UserService
from ..utils.security import REFRESH_TOKEN, create_access_token, create_refresh_token, decode_token, token_user_id

logger = logging.getLogger(__name__)

router = APIRouter()


async def _issue_tokens(service: UserService, user: User) -> TokenResponse:
    """Выпускает пару токенов и запоминает refresh токен пользователя"""
    access_token = create_access_token(user.id)
    refresh_token = create_refresh_token(user.id)
    await service.store_refresh_token(user, refresh_token)
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserRead.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    payload: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    mailer: SmtpMailer = Depends(get_mailer),
):
    """Регистрация. Приветственное письмо отправляется после ответа."""
    service = UserService(db)
    user = await service.register(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        phone=payload.phone,
    )
    response = await _issue_tokens(service, user)
    background_tasks.add_task(send_welcome_email, mailer, user.name, user.email)
    return response


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    service = UserService(db)
    user = await service.authenticate(payload.email, payload.password)
    logger.info(f"User {user.id} logged in")
    return await _issue_tokens(service, user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(payload: RefreshRequest, db: AsyncSession = Depends(get_db)):
    """
    Обмен refresh токена на новую пару.

    Токен должен совпадать с последним выданным пользователю,
    поэтому после logout или повторного входа старый токен не работает.
    """
    token_payload = decode_token(payload.refresh_token, REFRESH_TOKEN)
    service = UserService(db)
    try:
        user = await service.get(token_user_id(token_payload))
    except UserNotFoundError as e:
        raise AuthenticationError("Invalid refresh token") from e

    if not user.refresh_token or user.refresh_token != payload.refresh_token:
        raise AuthenticationError("Invalid refresh token")
    if user.is_currently_blocked():
        raise AuthenticationError("Account is blocked")

    return await _issue_tokens(service, user)


@router.post("/logout")
async def logout(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await UserService(db).store_refresh_token(user, None)
    logger.info(f"User {user.id} logged out")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserProfile)
async def me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Профиль текущего пользователя с историей блокировок"""
    history = await UserService(db).block_history(user.id)
    return UserProfile(
        **UserRead.model_validate(user).model_dump(),
        block_history=[BlockHistoryRead.model_validate(entry) for entry in history],
    )


@router.put("/password")
async def change_password(
    payload: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await UserService(db).change_password(user, payload.current_password, payload.new_password)
    return {"message": "Password updated successfully"}
