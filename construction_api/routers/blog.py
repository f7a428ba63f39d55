"""Роуты блога: публичные статьи, оценки читателей, управление статьями для админа."""
import math
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..dependencies.security import get_admin_actor
from ..enums import BlogCategory
from ..schemas.blog import BlogPostCreate, BlogPostListResponse, BlogPostRead, BlogPostUpdate
from ..schemas.feedback import FeedbackCreate, FeedbackDeleteResponse, FeedbackListResponse, FeedbackRead
from ..services.blog_service import POPULAR_LIMIT, BlogService
from ..services.consultation_service import Actor
from . import feedback

router = APIRouter()


def _page(posts, total: int, page: int, limit: int) -> BlogPostListResponse:
    return BlogPostListResponse(
        count=len(posts),
        total=total,
        page=page,
        pages=math.ceil(total / limit) if total else 0,
        data=[BlogPostRead.model_validate(post) for post in posts],
    )


@router.get("", response_model=BlogPostListResponse)
async def list_posts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    category: Optional[BlogCategory] = None,
    db: AsyncSession = Depends(get_db),
):
    """Опубликованные статьи, новые сверху"""
    category_value = category.value if category else None
    posts, total = await BlogService(db).list_posts(page, limit, category_value)
    return _page(posts, total, page, limit)


@router.get("/popular", response_model=List[BlogPostRead])
async def popular_posts(
    limit: int = Query(default=POPULAR_LIMIT, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    return await BlogService(db).popular(limit)


@router.get("/search", response_model=List[BlogPostRead])
async def search_posts(q: str = Query(default=""), db: AsyncSession = Depends(get_db)):
    return await BlogService(db).search(q)


@router.get("/slug/{slug}", response_model=BlogPostRead)
async def get_post_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    service = BlogService(db)
    post = await service.get_by_slug(slug)
    await service.register_view(post.id)
    return await service.get(post.id)


@router.get("/admin/all", response_model=BlogPostListResponse)
async def all_posts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    category: Optional[BlogCategory] = None,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    """Все статьи, включая черновики"""
    category_value = category.value if category else None
    posts, total = await BlogService(db).list_posts(page, limit, category_value, published_only=False)
    return _page(posts, total, page, limit)


@router.get("/{post_id}", response_model=BlogPostRead)
async def get_post(post_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Опубликованная статья. Каждый запрос увеличивает счетчик просмотров"""
    service = BlogService(db)
    await service.get(post_id, published_only=True)
    await service.register_view(post_id)
    return await service.get(post_id)


@router.post("", response_model=BlogPostRead, status_code=201)
async def create_post(
    payload: BlogPostCreate,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await BlogService(db).create(actor.id, payload.model_dump())


@router.put("/{post_id}", response_model=BlogPostRead)
async def update_post(
    post_id: uuid.UUID,
    payload: BlogPostUpdate,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await BlogService(db).update(post_id, payload.model_dump(exclude_unset=True))


@router.delete("/{post_id}")
async def delete_post(
    post_id: uuid.UUID,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    await BlogService(db).delete(post_id)
    return {"message": "Blog post deleted successfully"}


@router.get("/{post_id}/feedback", response_model=FeedbackListResponse)
async def list_post_feedback(post_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await feedback.list_feedback(BlogService(db).feedback, post_id)


@router.post("/{post_id}/feedback", response_model=FeedbackRead, status_code=201)
async def add_post_feedback(
    post_id: uuid.UUID,
    payload: FeedbackCreate,
    db: AsyncSession = Depends(get_db),
):
    """Оценка статьи, доступна без входа"""
    return await feedback.add_feedback(BlogService(db).feedback, post_id, payload)


@router.delete("/{post_id}/feedback/{feedback_id}", response_model=FeedbackDeleteResponse)
async def delete_post_feedback(
    post_id: uuid.UUID,
    feedback_id: int,
    actor: Actor = Depends(get_admin_actor),
    db: AsyncSession = Depends(get_db),
):
    return await feedback.delete_feedback(BlogService(db).feedback, post_id, feedback_id)
