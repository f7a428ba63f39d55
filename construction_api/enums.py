"""Перечисления предметной области (статусы, категории услуг и статей, роли, уровни курсов)."""
from enum import Enum


class ConsultationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ServiceCategory(str, Enum):
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    RENOVATION = "renovation"
    INTERIOR_DESIGN = "interior-design"
    PROJECT_MANAGEMENT = "project-management"
    SUSTAINABILITY = "sustainability"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class BlogCategory(str, Enum):
    CONSTRUCTION = "construction"
    ARCHITECTURE = "architecture"
    INTERIOR_DESIGN = "interior-design"
    RENOVATION = "renovation"
    SUSTAINABILITY = "sustainability"
    INDUSTRY_NEWS = "industry-news"


class CourseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


def enum_values(enum_cls) -> list:
    """Строковые значения перечисления (для CHECK-ограничений и сообщений)"""
    return [member.value for member in enum_cls]
