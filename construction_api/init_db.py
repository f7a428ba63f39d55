"""
Идемпотентная инициализация базы данных.

Создает таблицы по моделям. Можно запускать многократно без ошибок.
Изменения схемы в production выполняются через Alembic.
"""
import asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from .database import Base, engine
# Импортируем все модели для регистрации в Base.metadata
from . import models  # noqa: F401

# Ключ advisory lock для параллельного старта нескольких контейнеров (только PostgreSQL)
INIT_LOCK_KEY = 987654321


async def create_tables(bind: AsyncEngine):
    """Создает все таблицы через SQLAlchemy (идемпотентно)"""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("✓ Таблицы созданы")


async def init_db(bind: AsyncEngine = None):
    """
    Полная инициализация БД.

    Идемпотентна - можно запускать многократно.
    """
    bind = bind or engine
    lock_conn = None
    try:
        if bind.dialect.name == "postgresql":
            lock_conn = await bind.connect()
            await lock_conn.execute(text("SELECT pg_advisory_lock(:key)"), {"key": INIT_LOCK_KEY})

        print("Начало инициализации БД...")
        await create_tables(bind)
        print("✓ Инициализация БД завершена успешно")
    except Exception as e:
        print(f"✗ Ошибка инициализации БД: {e}")
        raise
    finally:
        if lock_conn:
            try:
                await lock_conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": INIT_LOCK_KEY})
            finally:
                await lock_conn.close()


async def check_db_connection(bind: AsyncEngine = None):
    """Проверяет подключение к БД"""
    bind = bind or engine
    try:
        async with bind.begin() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.scalar()
        print("✓ Подключение к БД успешно")
        return True
    except Exception as e:
        print(f"✗ Ошибка подключения к БД: {e}")
        return False


if __name__ == "__main__":
    """Запуск инициализации из командной строки"""
    asyncio.run(init_db())
