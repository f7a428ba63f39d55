"""Роуты отзывов клиентов: публичные выборки, отзывы пользователя, модерация."""
import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies.security import get_admin_actor, get_current_actor
from ..schemas.testimonial import TestimonialCreate, TestimonialRead, TestimonialUpdate
from ..services.consultation_service import Actor
from ..services.testimonial_service import FEATURED_LIMIT, TestimonialService

router = APIRouter()


@router.get("", response_model=List[TestimonialRead])
async def list_testimonials(db: AsyncSession = Depends(get_db)):
    """Одобренные отзывы, новые сверху"""
    return await TestimonialService(db).list_approved()


@router.get("/featured", response_model=List[TestimonialRead])
async def featured_testimonials(
    limit: int = Query(default=FEATURED_LIMIT, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    return await TestimonialService(db).featured(limit)


@router.get("/my", response_model=List[TestimonialRead])
async def my_testimonials(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await TestimonialService(db).list_for_user(actor.id)


@router.get("/admin/all", response_model=List[TestimonialRead])
async def all_testimonials(
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    """Все отзывы, включая ожидающие модерации"""
    return await TestimonialService(db).list_all()


@router.get("/{testimonial_id}", response_model=TestimonialRead)
async def get_testimonial(testimonial_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await TestimonialService(db).get_public(testimonial_id)


@router.post("", response_model=TestimonialRead, status_code=201)
async def create_testimonial(
    payload: TestimonialCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Новый отзыв появится на сайте после одобрения администратором"""
    return await TestimonialService(db).create(actor, payload.content, payload.rating)


@router.put("/{testimonial_id}", response_model=TestimonialRead)
async def update_testimonial(
    testimonial_id: uuid.UUID,
    payload: TestimonialUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await TestimonialService(db).update(testimonial_id, actor, payload.model_dump(exclude_unset=True))


@router.delete("/{testimonial_id}")
async def delete_testimonial(
    testimonial_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    await TestimonialService(db).delete(testimonial_id, actor)
    return {"message": "Testimonial removed"}


@router.patch("/{testimonial_id}/approve", response_model=TestimonialRead)
async def approve_testimonial(
    testimonial_id: uuid.UUID,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await TestimonialService(db).approve(testimonial_id)


@router.patch("/{testimonial_id}/feature", response_model=TestimonialRead)
async def feature_testimonial(
    testimonial_id: uuid.UUID,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    """Переключает отметку "избранное". Неодобренный отзыв - 400"""
    return await TestimonialService(db).toggle_featured(testimonial_id)
