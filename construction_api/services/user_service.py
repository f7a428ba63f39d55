"""
Сервис пользователей: регистрация, вход, роли, блокировки.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..enums import UserRole
from ..exceptions import (
    AuthenticationError,
    ForbiddenError,
    PersistenceError,
    UserBlockedError,
    UserNotFoundError,
    ValidationError,
)
from ..models import User, UserBlock, utcnow
from ..utils.security import hash_password, verify_password
from ..utils.structured_logging import log_with_context

logger = logging.getLogger(__name__)


def block_info(user: User) -> dict:
    """Информация о блокировке для ответа API"""
    return {
        "reason": user.block_reason or "No reason provided",
        "expires_at": user.block_expires_at.isoformat() if user.block_expires_at else "permanent",
    }


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to {action}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to {action}") from e

    async def get(self, user_id: uuid.UUID) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise UserNotFoundError(user_id)
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def list_users(self) -> List[User]:
        result = await self.db.execute(select(User).order_by(User.created_at.asc()))
        return list(result.scalars().all())

    async def admin_emails(self) -> List[str]:
        result = await self.db.execute(select(User.email).where(User.role == UserRole.ADMIN.value))
        return list(result.scalars().all())

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        role: UserRole = UserRole.USER,
    ) -> User:
        if await self.get_by_email(email):
            raise ValidationError("User already exists", {"email": email})

        user = User(
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=hash_password(password),
            phone=phone,
            role=role.value,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            # Параллельная регистрация с тем же email
            await self.db.rollback()
            raise ValidationError("User already exists", {"email": email}) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to register user {email}: {e}", exc_info=True)
            raise PersistenceError("Failed to register user") from e

        await self.db.refresh(user)
        logger.info(f"Registered user {user.id} ({user.email})")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """
        Проверка учетных данных.

        Raises:
            AuthenticationError: неизвестный email или неверный пароль
            UserBlockedError: учетная запись заблокирована
        """
        user = await self.get_by_email(email)
        if not user:
            raise AuthenticationError("Invalid credentials")

        if user.is_currently_blocked():
            raise UserBlockedError("Account is blocked", {"block_info": block_info(user)})

        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        return user

    async def store_refresh_token(self, user: User, refresh_token: Optional[str]) -> None:
        user.refresh_token = refresh_token
        await self._commit("store refresh token")

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        await self._commit("update password")
        logger.info(f"Password updated for user {user.id}")

    async def set_role(self, user_id: uuid.UUID, role: UserRole) -> User:
        user = await self.get(user_id)
        if user.role == UserRole.ADMIN.value and role != UserRole.ADMIN:
            admins = await self.db.execute(
                select(func.count(User.id)).where(User.role == UserRole.ADMIN.value)
            )
            if (admins.scalar() or 0) <= 1:
                raise ValidationError("Cannot demote the last admin")
        user.role = role.value
        await self._commit("update role")
        await self.db.refresh(user)
        return user

    # ------------------------------------------------------------------
    # Блокировки
    # ------------------------------------------------------------------

    async def block(
        self,
        user_id: uuid.UUID,
        blocked_by: uuid.UUID,
        reason: str,
        duration_hours: Optional[float] = None,
    ) -> User:
        """
        Блокирует пользователя на duration_hours часов (None - бессрочно).

        Raises:
            ValidationError: нет причины или пользователь уже заблокирован
            ForbiddenError: попытка заблокировать администратора
        """
        if not reason or not reason.strip():
            raise ValidationError("Please provide a reason for blocking")

        user = await self.get(user_id)
        if user.is_admin:
            raise ForbiddenError("Cannot block admin users")
        if user.is_currently_blocked():
            raise ValidationError("User is already blocked")

        now = utcnow()
        if user.is_blocked:
            # Истекшая блокировка, которую планировщик еще не снял
            await self._clear_block(user, now)
        expires_at = now + timedelta(hours=duration_hours) if duration_hours else None

        user.is_blocked = True
        user.block_reason = reason.strip()
        user.block_expires_at = expires_at
        self.db.add(UserBlock(
            user_id=user.id,
            blocked_by=blocked_by,
            reason=reason.strip(),
            blocked_at=now,
            expires_at=expires_at,
        ))
        await self._commit("block user")
        await self.db.refresh(user)

        log_with_context(
            logger,
            logging.INFO,
            f"User {user.id} blocked by {blocked_by}",
            context={"user_id": str(user.id), "expires_at": expires_at, "reason": user.block_reason},
        )
        return user

    async def unblock(self, user_id: uuid.UUID) -> User:
        user = await self.get(user_id)
        if not user.is_currently_blocked():
            raise ValidationError("User is not blocked")

        await self._clear_block(user, utcnow())
        await self._commit("unblock user")
        await self.db.refresh(user)
        logger.info(f"User {user.id} unblocked")
        return user

    async def _clear_block(self, user: User, now: datetime) -> None:
        user.is_blocked = False
        user.block_reason = None
        user.block_expires_at = None

        # Закрываем последнюю открытую запись истории
        last_block = await self.db.execute(
            select(UserBlock)
            .where(UserBlock.user_id == user.id, UserBlock.unblocked_at.is_(None))
            .order_by(UserBlock.id.desc())
            .limit(1)
        )
        entry = last_block.scalar_one_or_none()
        if entry:
            entry.unblocked_at = now

    async def block_history(self, user_id: uuid.UUID) -> List[UserBlock]:
        await self.get(user_id)
        result = await self.db.execute(
            select(UserBlock).where(UserBlock.user_id == user_id).order_by(UserBlock.id.asc())
        )
        return list(result.scalars().all())

    async def lift_expired_blocks(self, now: Optional[datetime] = None) -> int:
        """
        Снимает блокировки с истекшим сроком (задача планировщика).

        Returns:
            Количество разблокированных пользователей
        """
        now = now or datetime.now(timezone.utc)
        result = await self.db.execute(
            select(User).where(
                User.is_blocked.is_(True),
                User.block_expires_at.isnot(None),
                User.block_expires_at <= now,
            )
        )
        users = list(result.scalars().all())
        for user in users:
            await self._clear_block(user, now)

        if users:
            await self._commit("lift expired blocks")
            logger.info(f"Lifted {len(users)} expired user blocks")
        return len(users)
