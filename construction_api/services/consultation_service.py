"""
Сервис консультаций: создание, редактирование владельцем, удаление,
смена статуса с записью в журнал.

Права проверяются по паре (actor.id, actor.is_admin), которую передает
слой HTTP; сервис сам никого не аутентифицирует.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..enums import ConsultationStatus
from ..exceptions import (
    ConsultationNotFoundError,
    ForbiddenError,
    InvalidStatusTransitionError,
    ConcurrentStatusChangeError,
    PersistenceError,
    ValidationError,
)
from ..models import Consultation, ConsultationStatusHistory, utcnow
from ..utils.structured_logging import log_with_context
from .consultation_status import can_transition

logger = logging.getLogger(__name__)

PENDING = ConsultationStatus.PENDING.value

# Поля, которые можно менять через PUT (статус меняется только через update_status)
EDITABLE_FIELDS = frozenset({
    "service",
    "project_type",
    "description",
    "location",
    "preferred_date",
    "is_urgent",
})


@dataclass(frozen=True)
class Actor:
    """Текущий пользователь, от имени которого выполняется операция"""
    id: uuid.UUID
    is_admin: bool = False


@dataclass(frozen=True)
class StatusChange:
    """Результат смены статуса (для уведомлений и логов)"""
    old_status: str
    new_status: str
    changed_by: uuid.UUID
    reason: Optional[str]
    changed_at: datetime


def _status_value(status) -> str:
    if isinstance(status, ConsultationStatus):
        return status.value
    return status


def _enum_to_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class ConsultationService:
    """Операции над консультациями в рамках одной сессии БД"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Чтение
    # ------------------------------------------------------------------

    async def get(self, consultation_id: uuid.UUID, refresh: bool = False) -> Consultation:
        query = select(Consultation).where(Consultation.id == consultation_id)
        if refresh:
            # Перечитываем строку, даже если объект уже есть в identity map сессии
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        consultation = result.scalar_one_or_none()
        if not consultation:
            raise ConsultationNotFoundError(consultation_id)
        return consultation

    async def get_for_actor(self, consultation_id: uuid.UUID, actor: Actor) -> Consultation:
        consultation = await self.get(consultation_id)
        self._ensure_can_access(consultation, actor)
        return consultation

    async def get_history(self, consultation_id: uuid.UUID) -> List[ConsultationStatusHistory]:
        """Журнал смены статусов в порядке добавления"""
        await self.get(consultation_id)
        result = await self.db.execute(
            select(ConsultationStatusHistory)
            .where(ConsultationStatusHistory.consultation_id == consultation_id)
            .order_by(ConsultationStatusHistory.id.asc())
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Права
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_can_access(consultation: Consultation, actor: Actor) -> None:
        if actor.is_admin or consultation.user_id == actor.id:
            return
        raise ForbiddenError(
            "Not authorized to access this consultation",
            {"consultation_id": str(consultation.id)},
        )

    @classmethod
    def _ensure_can_modify(cls, consultation: Consultation, actor: Actor, action: str) -> None:
        cls._ensure_can_access(consultation, actor)
        if not actor.is_admin and consultation.status != PENDING:
            raise ForbiddenError(
                f"Cannot {action} consultation after it has been processed",
                {"consultation_id": str(consultation.id), "status": consultation.status},
            )

    # ------------------------------------------------------------------
    # Изменение
    # ------------------------------------------------------------------

    async def create(self, actor: Actor, data: Dict[str, Any]) -> Consultation:
        """Создает консультацию от имени actor (статус pending, журнал пуст)"""
        unknown = set(data) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError("Unsupported consultation fields", {"fields": sorted(unknown)})

        consultation = Consultation(
            user_id=actor.id,
            status=PENDING,
            **{key: _enum_to_value(value) for key, value in data.items()},
        )
        self.db.add(consultation)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to create consultation for user {actor.id}: {e}", exc_info=True)
            raise PersistenceError("Failed to save consultation") from e

        logger.info(f"Created consultation {consultation.id} for user {actor.id}")
        return await self.get(consultation.id, refresh=True)

    async def update(
        self,
        consultation_id: uuid.UUID,
        actor: Actor,
        changes: Dict[str, Any],
    ) -> Consultation:
        """
        Редактирование консультации.

        Владелец может менять консультацию только пока она в статусе pending,
        администратор - в любом статусе. Поле status здесь не меняется.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError("Unsupported consultation fields", {"fields": sorted(unknown)})

        consultation = await self.get(consultation_id, refresh=True)
        self._ensure_can_modify(consultation, actor, "update")
        if not changes:
            return consultation

        values = {key: _enum_to_value(value) for key, value in changes.items()}
        values["updated_at"] = utcnow()

        query = update(Consultation).where(Consultation.id == consultation_id)
        if not actor.is_admin:
            # Статус мог смениться после чтения - условие проверяется в момент записи
            query = query.where(Consultation.status == PENDING)

        try:
            result = await self.db.execute(
                query.values(**values).execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.db.rollback()
                raise ForbiddenError(
                    "Cannot update consultation after it has been processed",
                    {"consultation_id": str(consultation_id)},
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to update consultation {consultation_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to update consultation") from e

        logger.info(f"Updated consultation {consultation_id} by {actor.id}: fields={sorted(changes)}")
        return await self.get(consultation_id, refresh=True)

    async def delete(self, consultation_id: uuid.UUID, actor: Actor) -> None:
        """Удаление консультации (вместе с журналом статусов)"""
        consultation = await self.get(consultation_id, refresh=True)
        self._ensure_can_modify(consultation, actor, "delete")

        query = delete(Consultation).where(Consultation.id == consultation_id)
        if not actor.is_admin:
            query = query.where(Consultation.status == PENDING)

        try:
            result = await self.db.execute(query.execution_options(synchronize_session=False))
            if result.rowcount != 1:
                await self.db.rollback()
                raise ForbiddenError(
                    "Cannot delete consultation after it has been processed",
                    {"consultation_id": str(consultation_id)},
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to delete consultation {consultation_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to delete consultation") from e

        self.db.expunge(consultation)
        logger.info(f"Deleted consultation {consultation_id} by {actor.id}")

    async def mark_urgent(self, consultation_id: uuid.UUID, is_urgent: bool = True) -> Consultation:
        consultation = await self.get(consultation_id)
        consultation.is_urgent = is_urgent
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to mark consultation {consultation_id} urgent: {e}", exc_info=True)
            raise PersistenceError("Failed to update consultation") from e
        logger.info(f"Consultation {consultation_id} urgent flag set to {is_urgent}")
        return await self.get(consultation_id, refresh=True)

    async def update_status(
        self,
        consultation_id: uuid.UUID,
        new_status,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> StatusChange:
        """
        Смена статуса консультации администратором.

        Проверка прав администратора выполняется на уровне роутера.

        Raises:
            ConsultationNotFoundError: консультации нет
            InvalidStatusTransitionError: переход не разрешен таблицей
            ConcurrentStatusChangeError: статус изменен параллельным запросом
            PersistenceError: ошибка БД (ничего не записано)
        """
        consultation = await self.get(consultation_id, refresh=True)
        return await self.transition(consultation, new_status, actor.id, reason)

    async def transition(
        self,
        consultation: Consultation,
        new_status,
        actor_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> StatusChange:
        """
        Применяет переход к уже загруженной консультации.

        Статус и запись журнала пишутся в одной транзакции. UPDATE выполняется
        с условием на статус, прочитанный перед проверкой таблицы переходов
        (compare-and-set): если другой запрос успел сменить статус, строка не
        обновится и транзакция откатывается без записи в журнал.
        """
        consultation_id = consultation.id
        old_status = consultation.status
        new_status = _status_value(new_status)
        reason = reason.strip() if reason and reason.strip() else None

        if not can_transition(old_status, new_status):
            raise InvalidStatusTransitionError(old_status, new_status)

        changed_at = utcnow()
        try:
            result = await self.db.execute(
                update(Consultation)
                .where(Consultation.id == consultation_id, Consultation.status == old_status)
                .values(status=new_status, updated_at=changed_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.db.rollback()
                logger.warning(
                    f"Concurrent status change on consultation {consultation_id}: "
                    f"expected {old_status}, requested {new_status}"
                )
                raise ConcurrentStatusChangeError(consultation_id, old_status, new_status)

            self.db.add(ConsultationStatusHistory(
                consultation_id=consultation_id,
                status=new_status,
                changed_by=actor_id,
                reason=reason,
                changed_at=changed_at,
            ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Failed to change status of consultation {consultation_id} "
                f"({old_status} -> {new_status}): {e}",
                exc_info=True,
            )
            raise PersistenceError(
                "Failed to save status change",
                {"consultation_id": str(consultation_id)},
            ) from e

        await self.db.refresh(consultation)
        log_with_context(
            logger,
            logging.INFO,
            f"Consultation {consultation_id} status changed: {old_status} -> {new_status}",
            context={
                "consultation_id": str(consultation_id),
                "old_status": old_status,
                "new_status": new_status,
                "changed_by": str(actor_id),
            },
        )
        return StatusChange(
            old_status=old_status,
            new_status=new_status,
            changed_by=actor_id,
            reason=reason,
            changed_at=changed_at,
        )
