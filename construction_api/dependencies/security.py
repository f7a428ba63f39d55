"""Зависимости для авторизации по Bearer токену."""
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from ..database import get_db
from ..exceptions import AuthenticationError, ForbiddenError, UserBlockedError, UserNotFoundError
from ..models import User
from ..services.consultation_service import Actor
from ..services.user_service import UserService, block_info
from ..utils.security import ACCESS_TOKEN, decode_token, token_user_id

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Пользователь из access токена.

    401 - нет токена, токен невалиден или пользователь удален
    403 - пользователь заблокирован
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authorized, no token")

    payload = decode_token(credentials.credentials, ACCESS_TOKEN)
    try:
        user = await UserService(db).get(token_user_id(payload))
    except UserNotFoundError as e:
        raise AuthenticationError("User not found") from e

    if user.is_currently_blocked():
        raise UserBlockedError("Account is blocked", {"block_info": block_info(user)})
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user


async def get_current_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor(id=user.id, is_admin=user.is_admin)


async def get_admin_actor(user: User = Depends(require_admin)) -> Actor:
    return Actor(id=user.id, is_admin=True)
