"""Роуты заявок на консультацию: создание, редактирование, статусы, выборки для админки."""
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies.security import get_admin_actor, get_current_actor, get_current_user
from ..models import User
from ..schemas.consultation import (
    ConsultationCreate,
    ConsultationListResponse,
    ConsultationRead,
    ConsultationStatsResponse,
    ConsultationUpdate,
    StatusChangeRead,
    StatusHistoryRead,
    StatusHistoryResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
    UrgentUpdateRequest,
)
from ..services.consultation_queries import ConsultationQueries
from ..services.consultation_service import Actor, ConsultationService
from ..services.mailer import SmtpMailer, get_mailer
from ..services.notifications import consultation_snapshot, send_consultation_created, send_status_update
from ..services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=ConsultationRead, status_code=201)
async def create_consultation(
    payload: ConsultationCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    mailer: SmtpMailer = Depends(get_mailer),
):
    """Новая заявка от текущего пользователя. Письма клиенту и админам уходят после ответа."""
    actor = Actor(id=user.id, is_admin=user.is_admin)
    consultation = await ConsultationService(db).create(actor, payload.model_dump())

    admin_emails = await UserService(db).admin_emails()
    background_tasks.add_task(
        send_consultation_created,
        mailer,
        consultation_snapshot(consultation, owner=user),
        admin_emails,
    )
    return consultation


@router.get("/my", response_model=List[ConsultationRead])
async def my_consultations(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ConsultationQueries(db).list_for_owner(actor.id)


@router.get("", response_model=ConsultationListResponse)
async def list_consultations(
    status: Optional[str] = Query(default=None, description="Статус или all"),
    service: Optional[str] = Query(default=None, description="Услуга или all"),
    search: Optional[str] = Query(default=None, description="Подстрока для поиска"),
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    """Список для админки с фильтрами (условия объединяются через AND)"""
    consultations = await ConsultationQueries(db).list_by_filter(status=status, service=service, search=search)
    return ConsultationListResponse(
        count=len(consultations),
        total=len(consultations),
        data=[ConsultationRead.model_validate(item) for item in consultations],
    )


@router.get("/stats", response_model=ConsultationStatsResponse)
async def consultation_stats(
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ConsultationQueries(db).stats()


@router.get("/pending", response_model=List[ConsultationRead])
async def pending_consultations(
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ConsultationQueries(db).list_pending()


@router.get("/urgent", response_model=List[ConsultationRead])
async def urgent_consultations(
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ConsultationQueries(db).list_urgent()


@router.get("/{consultation_id}", response_model=ConsultationRead)
async def get_consultation(
    consultation_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await ConsultationService(db).get_for_actor(consultation_id, actor)


@router.put("/{consultation_id}", response_model=ConsultationRead)
async def update_consultation(
    consultation_id: uuid.UUID,
    payload: ConsultationUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Обновление заявки.

    Владелец может редактировать заявку только в статусе pending,
    администратор - в любом. Статус через этот роут не меняется.
    """
    changes = payload.model_dump(exclude_unset=True)
    return await ConsultationService(db).update(consultation_id, actor, changes)


@router.delete("/{consultation_id}")
async def delete_consultation(
    consultation_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    await ConsultationService(db).delete(consultation_id, actor)
    return {"message": "Consultation removed"}


@router.patch("/{consultation_id}/status", response_model=StatusUpdateResponse)
async def update_consultation_status(
    consultation_id: uuid.UUID,
    payload: StatusUpdateRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
    mailer: SmtpMailer = Depends(get_mailer),
):
    """
    Смена статуса администратором.

    Недопустимый переход - 400, параллельная смена статуса - 409.
    Письмо владельцу отправляется после ответа и на результат не влияет.
    """
    service = ConsultationService(db)
    change = await service.update_status(consultation_id, payload.status, actor, payload.reason)
    consultation = await service.get(consultation_id, refresh=True)

    status_change = StatusChangeRead.model_validate(change)
    background_tasks.add_task(
        send_status_update,
        mailer,
        consultation_snapshot(consultation),
        {
            "old_status": change.old_status,
            "new_status": change.new_status,
            "reason": change.reason,
        },
    )
    return StatusUpdateResponse(
        data=ConsultationRead.model_validate(consultation),
        status_change=status_change,
    )


@router.get("/{consultation_id}/status-history", response_model=StatusHistoryResponse)
async def consultation_status_history(
    consultation_id: uuid.UUID,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    """Журнал смены статусов от старых к новым"""
    service = ConsultationService(db)
    consultation = await service.get(consultation_id)
    history = await service.get_history(consultation_id)
    return StatusHistoryResponse(
        consultation_id=consultation.id,
        current_status=consultation.status,
        history=[StatusHistoryRead.from_entry(entry) for entry in history],
    )


@router.patch("/{consultation_id}/urgent", response_model=ConsultationRead)
async def mark_consultation_urgent(
    consultation_id: uuid.UUID,
    payload: Optional[UrgentUpdateRequest] = None,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    is_urgent = payload.is_urgent if payload else True
    return await ConsultationService(db).mark_urgent(consultation_id, is_urgent)
