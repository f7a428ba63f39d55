"""
Сервис статей блога.

После каждого создания и изменения статьи сервис вызывает
_refresh_derived_fields: slug из заголовка, excerpt из текста (если
не задан явно), время чтения и дата первой публикации.
"""
import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, PersistenceError, ValidationError
from ..models import BlogFeedback, BlogPost, utcnow
from ..utils.text import make_excerpt, read_time_minutes
from .content import FeedbackService, commit, page_bounds, unique_slug

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    "title",
    "content",
    "excerpt",
    "cover_image",
    "category",
    "tags",
    "is_published",
})
SEARCH_LIMIT = 10
POPULAR_LIMIT = 5


def _value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class BlogService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.feedback = FeedbackService(db, BlogPost, BlogFeedback, BlogFeedback.post_id, "Blog post")

    async def get(self, post_id: uuid.UUID, published_only: bool = False) -> BlogPost:
        query = select(BlogPost).where(BlogPost.id == post_id).execution_options(populate_existing=True)
        if published_only:
            query = query.where(BlogPost.is_published.is_(True))
        result = await self.db.execute(query)
        post = result.unique().scalar_one_or_none()
        if not post:
            raise NotFoundError("Blog post not found", {"id": str(post_id)})
        return post

    async def get_by_slug(self, slug: str) -> BlogPost:
        result = await self.db.execute(
            select(BlogPost).where(BlogPost.slug == slug, BlogPost.is_published.is_(True))
        )
        post = result.unique().scalar_one_or_none()
        if not post:
            raise NotFoundError("Blog post not found", {"slug": slug})
        return post

    async def list_posts(
        self,
        page: int = 1,
        limit: int = 10,
        category: Optional[str] = None,
        published_only: bool = True,
    ) -> Tuple[List[BlogPost], int]:
        """Страница статей и общее количество. Опубликованные - по дате публикации"""
        conditions = []
        if published_only:
            conditions.append(BlogPost.is_published.is_(True))
        if category:
            conditions.append(BlogPost.category == category)

        total = (await self.db.execute(
            select(func.count(BlogPost.id)).where(*conditions)
        )).scalar_one()

        order = BlogPost.published_at.desc() if published_only else BlogPost.created_at.desc()
        offset, limit = page_bounds(page, limit)
        result = await self.db.execute(
            select(BlogPost).where(*conditions).order_by(order, BlogPost.id.desc()).offset(offset).limit(limit)
        )
        return list(result.unique().scalars().all()), total

    async def popular(self, limit: int = POPULAR_LIMIT) -> List[BlogPost]:
        result = await self.db.execute(
            select(BlogPost)
            .where(BlogPost.is_published.is_(True))
            .order_by(BlogPost.views.desc(), BlogPost.published_at.desc())
            .limit(limit)
        )
        return list(result.unique().scalars().all())

    async def search(self, term: str) -> List[BlogPost]:
        """Поиск по заголовку, тексту и excerpt среди опубликованных (без учета регистра)"""
        term = term.strip()
        if not term:
            raise ValidationError("Please provide a search query")
        result = await self.db.execute(
            select(BlogPost)
            .where(
                BlogPost.is_published.is_(True),
                or_(
                    BlogPost.title.icontains(term, autoescape=True),
                    BlogPost.content.icontains(term, autoescape=True),
                    BlogPost.excerpt.icontains(term, autoescape=True),
                ),
            )
            .order_by(BlogPost.published_at.desc())
            .limit(SEARCH_LIMIT)
        )
        return list(result.unique().scalars().all())

    async def register_view(self, post_id: uuid.UUID) -> None:
        await self.db.execute(
            update(BlogPost)
            .where(BlogPost.id == post_id)
            .values(views=BlogPost.views + 1)
            .execution_options(synchronize_session=False)
        )
        await commit(self.db, "count blog view")

    async def _refresh_derived_fields(
        self,
        post: BlogPost,
        changed: frozenset,
        explicit_excerpt: bool,
    ) -> None:
        if "title" in changed or not post.slug:
            post.slug = await unique_slug(self.db, BlogPost, post.title, current_id=post.id)
        if not explicit_excerpt and ("content" in changed or not post.excerpt):
            post.excerpt = make_excerpt(post.content)
        if "content" in changed:
            post.read_time = read_time_minutes(post.content)
        if post.is_published and post.published_at is None:
            post.published_at = utcnow()

    async def create(self, author_id: uuid.UUID, data: Dict[str, Any]) -> BlogPost:
        post = BlogPost(
            id=uuid.uuid4(),
            author_id=author_id,
            **{key: _value(value) for key, value in data.items() if key in EDITABLE_FIELDS},
        )
        post.tags = [tag.strip().lower() for tag in (post.tags or []) if tag.strip()]
        await self._refresh_derived_fields(post, frozenset(data), explicit_excerpt=bool(data.get("excerpt")))
        self.db.add(post)
        await commit(self.db, "create blog post")

        logger.info(f"Created blog post {post.id} ({post.slug}) by {author_id}")
        return await self.get(post.id)

    async def update(self, post_id: uuid.UUID, changes: Dict[str, Any]) -> BlogPost:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError("Unsupported blog post fields", {"fields": sorted(unknown)})

        post = await self.get(post_id)
        for key, value in changes.items():
            setattr(post, key, _value(value))
        if "tags" in changes:
            post.tags = [tag.strip().lower() for tag in (post.tags or []) if tag.strip()]
        await self._refresh_derived_fields(post, frozenset(changes), explicit_excerpt=bool(changes.get("excerpt")))
        await commit(self.db, "update blog post")

        logger.info(f"Updated blog post {post_id}: fields={sorted(changes)}")
        return await self.get(post_id)

    async def delete(self, post_id: uuid.UUID) -> None:
        """Удаляет статью вместе с оценками"""
        post = await self.get(post_id)
        try:
            await self.db.execute(
                delete(BlogPost).where(BlogPost.id == post_id).execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to delete blog post {post_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to delete blog post") from e
        self.db.expunge(post)
        logger.info(f"Deleted blog post {post_id}")
