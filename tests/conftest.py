import asyncio
import os
from datetime import datetime, timedelta, timezone

# Настройки читаются при импорте construction_api.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("EMAIL_RETRY_DELAY", "0")
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from construction_api.database import Base, build_engine, build_session_factory, get_db
from construction_api.enums import UserRole
from construction_api.main import app
from construction_api.services.consultation_service import Actor, ConsultationService
from construction_api.services.mailer import get_mailer
from construction_api.services.user_service import UserService
from construction_api.utils.security import create_access_token

DESCRIPTION = (
    "We would like to build a two storey family house with a basement "
    "and a small garden on a sloped plot."
)


class FakeMailer:
    """Запоминает письма вместо отправки"""

    def __init__(self):
        self.sent = []
        self.error = None  # Исключение, которое бросает send

    async def send(self, to, subject, html, text=None):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return True

    def subjects(self):
        return [message["subject"] for message in self.sent]


@pytest.fixture
def engine(tmp_path):
    db_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def _create():
        async with db_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield db_engine
    asyncio.run(db_engine.dispose())


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(session_factory, mailer):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    """Создает пользователя и возвращает Actor"""
    counter = {"value": 0}

    def _make(role: UserRole = UserRole.USER, name: str = None, password: str = "secret1") -> Actor:
        counter["value"] += 1
        number = counter["value"]

        async def _register():
            async with session_factory() as session:
                return await UserService(session).register(
                    name=name or f"User {number}",
                    email=f"{role.value}{number}@example.com",
                    password=password,
                    role=role,
                )

        user = asyncio.run(_register())
        return Actor(id=user.id, is_admin=role == UserRole.ADMIN)

    return _make


@pytest.fixture
def owner(make_user):
    return make_user(UserRole.USER, name="Jane Owner")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, name="Alice Admin")


def auth_headers(actor: Actor) -> dict:
    return {"Authorization": f"Bearer {create_access_token(actor.id)}"}


def consultation_data(**overrides) -> dict:
    data = {
        "service": "residential",
        "project_type": "Family house",
        "description": DESCRIPTION,
        "location": "Springfield",
        "preferred_date": datetime.now(timezone.utc) + timedelta(days=7),
        "is_urgent": False,
    }
    data.update(overrides)
    return data


def consultation_payload(**overrides) -> dict:
    data = consultation_data(**overrides)
    data["preferred_date"] = data["preferred_date"].isoformat()
    return data


@pytest.fixture
def make_consultation(session_factory):
    def _make(actor: Actor, **overrides):
        async def _create():
            async with session_factory() as session:
                return await ConsultationService(session).create(actor, consultation_data(**overrides))

        return asyncio.run(_create()).id

    return _make
