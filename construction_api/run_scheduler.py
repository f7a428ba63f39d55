#!/usr/bin/env python3
"""
Отдельный процесс планировщика (ENABLE_SCHEDULER=false в API).

Запуск: python -m construction_api.run_scheduler
"""
import asyncio
import logging
import sys

from .config import settings
from .init_db import check_db_connection
from .scheduler import setup_scheduler, start_scheduler, shutdown_scheduler
from .utils.structured_logging import configure_logging

logger = logging.getLogger('scheduler_service')


async def wait_for_db(max_attempts: int = 30):
    """Ждем готовности БД"""
    logger.info("⏳ Waiting for database to be ready...")
    for attempt in range(max_attempts):
        if await check_db_connection():
            logger.info("✓ Database is ready")
            return True

        if attempt < max_attempts - 1:
            await asyncio.sleep(2)

    logger.error("✗ Database is still unavailable after %s attempts", max_attempts)
    return False


async def main():
    """Главная функция scheduler сервиса"""
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    logger.info("🚀 Scheduler Service Starting")
    logger.info(f"  Block expiry interval: {settings.BLOCK_EXPIRY_INTERVAL_MINUTES}min")

    if not await wait_for_db():
        logger.error("✗ Cannot start scheduler: database is not available")
        sys.exit(1)

    setup_scheduler()
    start_scheduler()
    logger.info("🔄 Scheduler is running")
    try:
        while True:
            await asyncio.sleep(60)
    finally:
        shutdown_scheduler()
        logger.info("✓ Scheduler stopped")


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("⚠ Shutting down scheduler service...")
        sys.exit(0)
