"""
Сервис курсов: каталог, поиск, редактирование администратором, оценки.
"""
import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Tuple

from sqlalchemy import select, delete, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, PersistenceError, ValidationError
from ..models import Course, CourseFeedback
from ..utils.text import make_excerpt
from .content import FeedbackService, commit, page_bounds, unique_slug

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    "title",
    "description",
    "short_description",
    "level",
    "duration",
    "instructor_name",
    "instructor_email",
    "instructor_bio",
    "video",
    "photo",
    "requirements",
    "objectives",
    "is_published",
    "is_active",
})
SEARCH_LIMIT = 10


def _value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class CourseService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.feedback = FeedbackService(db, Course, CourseFeedback, CourseFeedback.course_id, "Course")

    async def get(self, course_id: uuid.UUID) -> Course:
        result = await self.db.execute(
            select(Course).where(Course.id == course_id).execution_options(populate_existing=True)
        )
        course = result.scalar_one_or_none()
        if not course:
            raise NotFoundError("Course not found", {"id": str(course_id)})
        return course

    async def list_courses(self, page: int = 1, limit: int = 10) -> Tuple[List[Course], int]:
        total = (await self.db.execute(select(func.count(Course.id)))).scalar_one()
        offset, limit = page_bounds(page, limit)
        result = await self.db.execute(
            select(Course).order_by(Course.created_at.desc(), Course.id.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def search(self, term: str) -> List[Course]:
        term = term.strip()
        if not term:
            raise ValidationError("Please provide a search query")
        result = await self.db.execute(
            select(Course)
            .where(or_(
                Course.title.icontains(term, autoescape=True),
                Course.description.icontains(term, autoescape=True),
                Course.short_description.icontains(term, autoescape=True),
            ))
            .order_by(Course.created_at.desc())
            .limit(SEARCH_LIMIT)
        )
        return list(result.scalars().all())

    async def _refresh_derived_fields(self, course: Course, changed: frozenset, explicit_summary: bool) -> None:
        if "title" in changed or not course.slug:
            course.slug = await unique_slug(self.db, Course, course.title, current_id=course.id)
        if not explicit_summary and ("description" in changed or not course.short_description):
            course.short_description = make_excerpt(course.description)

    async def create(self, data: Dict[str, Any]) -> Course:
        course = Course(
            id=uuid.uuid4(),
            **{key: _value(value) for key, value in data.items() if key in EDITABLE_FIELDS},
        )
        await self._refresh_derived_fields(
            course, frozenset(data), explicit_summary=bool(data.get("short_description"))
        )
        self.db.add(course)
        await commit(self.db, "create course")

        logger.info(f"Created course {course.id} ({course.slug})")
        return await self.get(course.id)

    async def update(self, course_id: uuid.UUID, changes: Dict[str, Any]) -> Course:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError("Unsupported course fields", {"fields": sorted(unknown)})

        course = await self.get(course_id)
        for key, value in changes.items():
            setattr(course, key, _value(value))
        await self._refresh_derived_fields(
            course, frozenset(changes), explicit_summary=bool(changes.get("short_description"))
        )
        await commit(self.db, "update course")

        logger.info(f"Updated course {course_id}: fields={sorted(changes)}")
        return await self.get(course_id)

    async def delete(self, course_id: uuid.UUID) -> None:
        course = await self.get(course_id)
        try:
            await self.db.execute(
                delete(Course).where(Course.id == course_id).execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to delete course {course_id}: {e}", exc_info=True)
            raise PersistenceError("Failed to delete course") from e
        self.db.expunge(course)
        logger.info(f"Deleted course {course_id}")
