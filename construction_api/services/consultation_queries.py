"""Выборки консультаций для админки: ожидающие, срочные, фильтр, статистика."""
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, case, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ..enums import ConsultationStatus
from ..models import Consultation

ALL = "all"
RECENT_LIMIT = 5


def _newest_first(query):
    return query.order_by(Consultation.created_at.desc(), Consultation.id.desc())


def _count_status(status: ConsultationStatus):
    return func.coalesce(func.sum(case((Consultation.status == status.value, 1), else_=0)), 0)


class ConsultationQueries:
    """Только чтение, без побочных эффектов"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _all(self, query) -> List[Consultation]:
        result = await self.db.execute(query)
        return list(result.scalars().unique().all())

    async def list_for_owner(self, user_id: uuid.UUID) -> List[Consultation]:
        return await self._all(
            _newest_first(select(Consultation).where(Consultation.user_id == user_id))
        )

    async def list_pending(self) -> List[Consultation]:
        return await self._all(
            _newest_first(
                select(Consultation).where(Consultation.status == ConsultationStatus.PENDING.value)
            )
        )

    async def list_urgent(self) -> List[Consultation]:
        """Срочные необработанные заявки: is_urgent и статус pending"""
        return await self._all(
            _newest_first(
                select(Consultation).where(
                    Consultation.is_urgent.is_(True),
                    Consultation.status == ConsultationStatus.PENDING.value,
                )
            )
        )

    async def list_by_filter(
        self,
        status: Optional[str] = None,
        service: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Consultation]:
        """
        Фильтр для списка в админке.

        status и service - точное совпадение, значение "all" или None фильтр не задает.
        search - подстрока без учета регистра по project_type, description, service, location.
        Все заданные условия объединяются через AND.
        """
        conditions = []
        if status and status != ALL:
            conditions.append(Consultation.status == status)
        if service and service != ALL:
            conditions.append(Consultation.service == service)
        if search and search.strip():
            term = search.strip()
            conditions.append(or_(
                Consultation.project_type.icontains(term, autoescape=True),
                Consultation.description.icontains(term, autoescape=True),
                Consultation.service.icontains(term, autoescape=True),
                Consultation.location.icontains(term, autoescape=True),
            ))

        query = select(Consultation)
        if conditions:
            query = query.where(and_(*conditions))
        return await self._all(_newest_first(query))

    async def stats(self) -> Dict[str, Any]:
        """
        Счетчики по статусам одним агрегирующим запросом и 5 последних заявок.

        urgent - срочные заявки в статусе pending.

        Счетчики и список recent читаются двумя запросами. При READ COMMITTED
        между ними может пройти параллельная запись, и recent может разойтись
        со счетчиками на одну-две заявки. Для дашборда это допустимо; сами
        счетчики согласованы между собой, так как считаются одним запросом.
        """
        result = await self.db.execute(
            select(
                func.count(Consultation.id).label("total"),
                _count_status(ConsultationStatus.PENDING).label("pending"),
                _count_status(ConsultationStatus.CONFIRMED).label("confirmed"),
                _count_status(ConsultationStatus.COMPLETED).label("completed"),
                _count_status(ConsultationStatus.CANCELLED).label("cancelled"),
                func.coalesce(func.sum(case(
                    (
                        and_(
                            Consultation.is_urgent.is_(True),
                            Consultation.status == ConsultationStatus.PENDING.value,
                        ),
                        1,
                    ),
                    else_=0,
                )), 0).label("urgent"),
            )
        )
        row = result.one()
        counts = {key: int(value or 0) for key, value in row._mapping.items()}

        recent = await self._all(_newest_first(select(Consultation)).limit(RECENT_LIMIT))
        return {"stats": counts, "recent": recent}
