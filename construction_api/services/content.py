"""
Общие операции для контента сайта (статьи блога, курсы).

- unique_slug: slug из заголовка, уникальный в пределах таблицы
- FeedbackService: оценки и комментарии с пересчетом average_rating
"""
import logging
import uuid
from typing import Any, List, Optional, Tuple

from sqlalchemy import select, delete, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, PersistenceError
from ..utils.text import slugify

logger = logging.getLogger(__name__)


async def unique_slug(db: AsyncSession, model, title: str, current_id: Optional[uuid.UUID] = None) -> str:
    """
    Slug из заголовка. При совпадении с другой записью добавляется
    суффикс: green-roofs, green-roofs-2, green-roofs-3.
    """
    base = slugify(title)
    query = select(model.slug).where(or_(model.slug == base, model.slug.like(f"{base}-%")))
    if current_id is not None:
        query = query.where(model.id != current_id)
    result = await db.execute(query)
    taken = set(result.scalars().all())

    if base not in taken:
        return base
    number = 2
    while f"{base}-{number}" in taken:
        number += 1
    return f"{base}-{number}"


async def commit(db: AsyncSession, action: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to {action}: {e}", exc_info=True)
        raise PersistenceError(f"Failed to {action}") from e


def page_bounds(page: int, limit: int) -> Tuple[int, int]:
    """(offset, limit) для номера страницы, начиная с 1"""
    page = max(page, 1)
    limit = max(limit, 1)
    return (page - 1) * limit, limit


class FeedbackService:
    """
    Оценки (1-5) с комментарием к статье или курсу.

    После добавления и удаления оценки average_rating родителя
    пересчитывается в той же транзакции. Строка родителя читается
    с FOR UPDATE, поэтому параллельные оценки не теряют пересчет.
    """

    def __init__(self, db: AsyncSession, parent_model, feedback_model, parent_key, label: str):
        self.db = db
        self.parent_model = parent_model
        self.feedback_model = feedback_model
        self.parent_key = parent_key  # Колонка feedback_model со ссылкой на родителя
        self.label = label

    async def _parent(self, parent_id: uuid.UUID, lock: bool = False):
        query = select(self.parent_model).where(self.parent_model.id == parent_id)
        if lock:
            query = query.with_for_update(of=self.parent_model)
        result = await self.db.execute(query.execution_options(populate_existing=True))
        parent = result.unique().scalar_one_or_none()
        if not parent:
            raise NotFoundError(f"{self.label} not found", {"id": str(parent_id)})
        return parent

    async def list(self, parent_id: uuid.UUID) -> Tuple[Any, List[Any]]:
        """(родитель, оценки от старых к новым)"""
        parent = await self._parent(parent_id)
        result = await self.db.execute(
            select(self.feedback_model)
            .where(self.parent_key == parent_id)
            .order_by(self.feedback_model.id.asc())
        )
        return parent, list(result.scalars().all())

    async def recompute_average(self, parent) -> float:
        """Средняя оценка по всем записям, с точностью до 0.1 (0 - оценок нет)"""
        result = await self.db.execute(
            select(func.avg(self.feedback_model.rating)).where(self.parent_key == parent.id)
        )
        average = result.scalar()
        parent.average_rating = round(float(average), 1) if average is not None else 0.0
        return parent.average_rating

    async def add(self, parent_id: uuid.UUID, rating: int, comment: str):
        parent = await self._parent(parent_id, lock=True)
        entry = self.feedback_model(rating=rating, comment=comment)
        setattr(entry, self.parent_key.key, parent_id)
        self.db.add(entry)
        try:
            await self.db.flush()
            await self.recompute_average(parent)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to add feedback to {self.label} {parent_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to add feedback") from e
        await commit(self.db, "add feedback")

        logger.info(f"Feedback {entry.id} added to {self.label} {parent_id}, average {parent.average_rating}")
        return entry

    async def delete(self, parent_id: uuid.UUID, feedback_id: int) -> float:
        """Удаляет оценку и возвращает новую среднюю"""
        parent = await self._parent(parent_id, lock=True)
        try:
            result = await self.db.execute(
                delete(self.feedback_model)
                .where(self.feedback_model.id == feedback_id, self.parent_key == parent_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.db.rollback()
                raise NotFoundError("Feedback not found", {"id": str(parent_id), "feedback_id": feedback_id})
            average = await self.recompute_average(parent)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to delete feedback {feedback_id} of {self.label} {parent_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to delete feedback") from e
        await commit(self.db, "delete feedback")

        logger.info(f"Feedback {feedback_id} removed from {self.label} {parent_id}, average {average}")
        return average
