"""Роуты курсов: каталог, поиск, оценки, управление курсами для админа."""
import math
import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies.security import get_admin_actor
from ..schemas.course import CourseCreate, CourseListResponse, CourseRead, CourseUpdate
from ..schemas.feedback import FeedbackCreate, FeedbackDeleteResponse, FeedbackListResponse, FeedbackRead
from ..services.consultation_service import Actor
from ..services.course_service import CourseService
from . import feedback

router = APIRouter()


@router.get("", response_model=CourseListResponse)
async def list_courses(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    courses, total = await CourseService(db).list_courses(page, limit)
    return CourseListResponse(
        count=len(courses),
        total=total,
        page=page,
        pages=math.ceil(total / limit) if total else 0,
        data=[CourseRead.model_validate(course) for course in courses],
    )


@router.get("/search", response_model=List[CourseRead])
async def search_courses(q: str = Query(default=""), db: AsyncSession = Depends(get_db)):
    return await CourseService(db).search(q)


@router.get("/{course_id}", response_model=CourseRead)
async def get_course(course_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await CourseService(db).get(course_id)


@router.post("", response_model=CourseRead, status_code=201)
async def create_course(
    payload: CourseCreate,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await CourseService(db).create(payload.model_dump())


@router.put("/{course_id}", response_model=CourseRead)
async def update_course(
    course_id: uuid.UUID,
    payload: CourseUpdate,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await CourseService(db).update(course_id, payload.model_dump(exclude_unset=True))


@router.delete("/{course_id}")
async def delete_course(
    course_id: uuid.UUID,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    await CourseService(db).delete(course_id)
    return {"message": "Course deleted successfully"}


@router.get("/{course_id}/feedback", response_model=FeedbackListResponse)
async def list_course_feedback(course_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await feedback.list_feedback(CourseService(db).feedback, course_id)


@router.post("/{course_id}/feedback", response_model=FeedbackRead, status_code=201)
async def add_course_feedback(
    course_id: uuid.UUID,
    payload: FeedbackCreate,
    db: AsyncSession = Depends(get_db),
):
    return await feedback.add_feedback(CourseService(db).feedback, course_id, payload)


@router.delete("/{course_id}/feedback/{feedback_id}", response_model=FeedbackDeleteResponse)
async def delete_course_feedback(
    course_id: uuid.UUID,
    feedback_id: int,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await feedback.delete_feedback(CourseService(db).feedback, course_id, feedback_id)
