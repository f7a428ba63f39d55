"""
SQLAlchemy модели сайта строительной компании.

Таблицы:
- users, user_block_history: учетные записи и история блокировок
- consultations, consultation_status_history: заявки на консультацию и журнал смены статусов
- testimonials: отзывы клиентов (модерация и избранное)
- blog_posts, blog_feedback, courses, course_feedback: контент сайта и оценки читателей

Типы колонок переносимые (Uuid, DateTime(timezone=True), Text), чтобы те же
модели работали на PostgreSQL (asyncpg) и SQLite (тесты).
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Boolean, DateTime, ForeignKey, Text, Integer, String, Float, JSON,
    Uuid, CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
from .enums import (
    BlogCategory, ConsultationStatus, CourseLevel, ServiceCategory, UserRole, enum_values
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _in_values(column: str, enum_cls) -> str:
    values = ", ".join(f"'{value}'" for value in enum_values(enum_cls))
    return f"{column} IN ({values})"


class User(Base):
    """Пользователи сайта (клиенты и администраторы)"""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(_in_values("role", UserRole), name="ck_users_role"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False)
    email = Column(Text, unique=True, nullable=False, index=True)  # Хранится в нижнем регистре
    password_hash = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default=UserRole.USER.value)
    phone = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)  # Последний выданный refresh токен
    is_blocked = Column(Boolean, default=False, nullable=False)
    block_expires_at = Column(DateTime(timezone=True), nullable=True)  # NULL = бессрочная блокировка
    block_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    block_history = relationship(
        "UserBlock",
        back_populates="user",
        foreign_keys="UserBlock.user_id",
        order_by="UserBlock.id",
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def is_currently_blocked(self, now: datetime = None) -> bool:
        """Блокировка действует, если флаг стоит и срок не истек (NULL = навсегда)"""
        if not self.is_blocked:
            return False
        if self.block_expires_at is None:
            return True
        now = now or utcnow()
        expires_at = self.block_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at > now


class UserBlock(Base):
    """История блокировок пользователей"""
    __tablename__ = "user_block_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    blocked_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reason = Column(Text, nullable=True)
    blocked_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    unblocked_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="block_history", foreign_keys=[user_id])


class Consultation(Base):
    """Заявки на консультацию"""
    __tablename__ = "consultations"
    __table_args__ = (
        CheckConstraint(_in_values("status", ConsultationStatus), name="ck_consultations_status"),
        CheckConstraint(_in_values("service", ServiceCategory), name="ck_consultations_service"),
        Index("ix_consultations_status_created_at", "status", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)  # Владелец, не меняется
    service = Column(Text, nullable=False)
    project_type = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    location = Column(Text, nullable=False)
    preferred_date = Column(DateTime(timezone=True), nullable=False)
    is_urgent = Column(Boolean, default=False, nullable=False)
    status = Column(Text, nullable=False, default=ConsultationStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    user = relationship("User", lazy="joined")
    status_history = relationship(
        "ConsultationStatusHistory",
        back_populates="consultation",
        order_by="ConsultationStatusHistory.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ConsultationStatusHistory(Base):
    """Журнал смены статусов консультаций (только добавление)"""
    __tablename__ = "consultation_status_history"
    __table_args__ = (
        CheckConstraint(_in_values("status", ConsultationStatus), name="ck_status_history_status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    consultation_id = Column(Uuid, ForeignKey("consultations.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Text, nullable=False)  # Новый статус
    changed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reason = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    consultation = relationship("Consultation", back_populates="status_history")
    changed_by_user = relationship("User", lazy="joined")


RATING_RANGE = "rating BETWEEN 1 AND 5"


class Testimonial(Base):
    """Отзывы клиентов. На сайте показываются только одобренные"""
    __tablename__ = "testimonials"
    __table_args__ = (
        CheckConstraint(RATING_RANGE, name="ck_testimonials_rating"),
        Index("ix_testimonials_approved_created_at", "is_approved", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False, default=5)
    is_approved = Column(Boolean, default=False, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)  # Только для одобренных
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    user = relationship("User", lazy="joined")


class BlogPost(Base):
    """
    Статьи блога.

    slug, excerpt, read_time, published_at и average_rating вычисляются
    сервисом после каждого изменения (services/blog_service.py).
    """
    __tablename__ = "blog_posts"
    __table_args__ = (
        CheckConstraint(_in_values("category", BlogCategory), name="ck_blog_posts_category"),
        Index("ix_blog_posts_published", "is_published", "published_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(100), nullable=False)
    slug = Column(Text, unique=True, nullable=False, index=True)
    content = Column(Text, nullable=False)
    excerpt = Column(String(200), nullable=True)
    cover_image = Column(Text, nullable=True)  # URL картинки, файлы хранятся вне сервиса
    category = Column(Text, nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_published = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    read_time = Column(Integer, default=0, nullable=False)  # Минуты
    views = Column(Integer, default=0, nullable=False)
    average_rating = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    author = relationship("User", lazy="joined")
    feedback = relationship(
        "BlogFeedback",
        back_populates="post",
        order_by="BlogFeedback.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class BlogFeedback(Base):
    """Оценки и комментарии к статьям"""
    __tablename__ = "blog_feedback"
    __table_args__ = (
        CheckConstraint(RATING_RANGE, name="ck_blog_feedback_rating"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Uuid, ForeignKey("blog_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    post = relationship("BlogPost", back_populates="feedback")


class Course(Base):
    """Обучающие курсы"""
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint(_in_values("level", CourseLevel), name="ck_courses_level"),
        CheckConstraint("duration >= 1", name="ck_courses_duration"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(100), nullable=False)
    slug = Column(Text, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    short_description = Column(String(200), nullable=True)
    level = Column(Text, nullable=False)
    duration = Column(Integer, nullable=False)  # Часы
    instructor_name = Column(Text, nullable=False)
    instructor_email = Column(Text, nullable=True)
    instructor_bio = Column(Text, nullable=True)
    video = Column(Text, nullable=True)
    photo = Column(Text, nullable=True)
    requirements = Column(JSON, nullable=False, default=list)
    objectives = Column(JSON, nullable=False, default=list)
    is_published = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    average_rating = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    feedback = relationship(
        "CourseFeedback",
        back_populates="course",
        order_by="CourseFeedback.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class CourseFeedback(Base):
    """Оценки и комментарии к курсам"""
    __tablename__ = "course_feedback"
    __table_args__ = (
        CheckConstraint(RATING_RANGE, name="ck_course_feedback_rating"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    course = relationship("Course", back_populates="feedback")
