from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    AsyncAttrs
)
from sqlalchemy import event
from sqlalchemy.orm import DeclarativeBase
from .config import settings


def build_engine(database_url: str, **overrides) -> AsyncEngine:
    """
    Создает async engine.

    Для PostgreSQL (asyncpg) настраивается пул соединений:
    pool_size - базовый размер пула постоянных соединений
    max_overflow - дополнительные соединения, создаваемые при перегрузке
    pool_recycle - переиспользование соединений для предотвращения устаревших соединений
    pool_timeout - максимальное время ожидания свободного соединения
    pool_pre_ping - проверка работоспособности соединения перед использованием

    Для SQLite параметры пула не передаются.
    """
    options = {
        "echo": settings.DEBUG,
        "future": True,
    }
    if not database_url.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=settings.DB_POOL_RECYCLE,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )
    options.update(overrides)
    async_engine = create_async_engine(database_url, **options)

    if database_url.startswith("sqlite"):
        # ON DELETE CASCADE в SQLite работает только с включенными внешними ключами
        @event.listens_for(async_engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return async_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Фабрика async сессий для переданного engine"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


engine = build_engine(settings.database_url)

AsyncSessionLocal = build_session_factory(engine)


class Base(AsyncAttrs, DeclarativeBase):
    """Базовый класс для всех моделей"""
    pass


async def get_db() -> AsyncSession:
    """
    Dependency для получения async сессии БД.
    Использование:
        async def some_route(db: AsyncSession = Depends(get_db)):
            ...
    В тестах подменяется через app.dependency_overrides.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
