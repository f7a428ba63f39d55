"""
Сервис отзывов клиентов.

Новый отзыв ждет одобрения администратора. Избранными могут быть только
одобренные отзывы. Если автор меняет текст или оценку, одобрение и
отметка "избранное" снимаются до повторной модерации.
"""
import logging
import uuid
from typing import Any, Dict, List

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import ForbiddenError, NotFoundError, PersistenceError, ValidationError
from ..models import Testimonial
from .consultation_service import Actor
from .content import commit

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"content", "rating"})
FEATURED_LIMIT = 6


def _newest_first(query):
    return query.order_by(Testimonial.created_at.desc(), Testimonial.id.desc())


class TestimonialService:
    __test__ = False  # Не тестовый класс для pytest

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _all(self, query) -> List[Testimonial]:
        result = await self.db.execute(query)
        return list(result.unique().scalars().all())

    async def get(self, testimonial_id: uuid.UUID) -> Testimonial:
        result = await self.db.execute(
            select(Testimonial)
            .where(Testimonial.id == testimonial_id)
            .execution_options(populate_existing=True)
        )
        testimonial = result.unique().scalar_one_or_none()
        if not testimonial:
            raise NotFoundError("Testimonial not found", {"id": str(testimonial_id)})
        return testimonial

    async def get_public(self, testimonial_id: uuid.UUID) -> Testimonial:
        """Неодобренный отзыв для посетителей сайта не существует"""
        testimonial = await self.get(testimonial_id)
        if not testimonial.is_approved:
            raise NotFoundError("Testimonial not found", {"id": str(testimonial_id)})
        return testimonial

    async def list_approved(self) -> List[Testimonial]:
        return await self._all(_newest_first(select(Testimonial).where(Testimonial.is_approved.is_(True))))

    async def list_all(self) -> List[Testimonial]:
        return await self._all(_newest_first(select(Testimonial)))

    async def list_for_user(self, user_id: uuid.UUID) -> List[Testimonial]:
        return await self._all(_newest_first(select(Testimonial).where(Testimonial.user_id == user_id)))

    async def featured(self, limit: int = FEATURED_LIMIT) -> List[Testimonial]:
        return await self._all(
            _newest_first(
                select(Testimonial).where(
                    Testimonial.is_approved.is_(True),
                    Testimonial.is_featured.is_(True),
                )
            ).limit(limit)
        )

    @staticmethod
    def _ensure_can_modify(testimonial: Testimonial, actor: Actor, action: str) -> None:
        if actor.is_admin or testimonial.user_id == actor.id:
            return
        raise ForbiddenError(
            f"Not authorized to {action} this testimonial",
            {"testimonial_id": str(testimonial.id)},
        )

    async def create(self, actor: Actor, content: str, rating: int) -> Testimonial:
        testimonial = Testimonial(user_id=actor.id, content=content, rating=rating)
        self.db.add(testimonial)
        await commit(self.db, "create testimonial")
        logger.info(f"Created testimonial {testimonial.id} by {actor.id}")
        return await self.get(testimonial.id)

    async def update(self, testimonial_id: uuid.UUID, actor: Actor, changes: Dict[str, Any]) -> Testimonial:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError("Unsupported testimonial fields", {"fields": sorted(unknown)})

        testimonial = await self.get(testimonial_id)
        self._ensure_can_modify(testimonial, actor, "update")
        for key, value in changes.items():
            setattr(testimonial, key, value)
        if changes and not actor.is_admin:
            testimonial.is_approved = False
            testimonial.is_featured = False
        await commit(self.db, "update testimonial")

        logger.info(f"Updated testimonial {testimonial_id} by {actor.id}: fields={sorted(changes)}")
        return await self.get(testimonial_id)

    async def delete(self, testimonial_id: uuid.UUID, actor: Actor) -> None:
        testimonial = await self.get(testimonial_id)
        self._ensure_can_modify(testimonial, actor, "delete")
        try:
            await self.db.execute(
                delete(Testimonial)
                .where(Testimonial.id == testimonial_id)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to delete testimonial {testimonial_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to delete testimonial") from e
        self.db.expunge(testimonial)
        logger.info(f"Deleted testimonial {testimonial_id} by {actor.id}")

    async def approve(self, testimonial_id: uuid.UUID) -> Testimonial:
        testimonial = await self.get(testimonial_id)
        testimonial.is_approved = True
        await commit(self.db, "approve testimonial")
        logger.info(f"Approved testimonial {testimonial_id}")
        return await self.get(testimonial_id)

    async def toggle_featured(self, testimonial_id: uuid.UUID) -> Testimonial:
        testimonial = await self.get(testimonial_id)
        if not testimonial.is_approved:
            raise ValidationError("Cannot feature unapproved testimonial", {"id": str(testimonial_id)})
        testimonial.is_featured = not testimonial.is_featured
        await commit(self.db, "feature testimonial")
        logger.info(f"Testimonial {testimonial_id} featured={testimonial.is_featured}")
        return await self.get(testimonial_id)
