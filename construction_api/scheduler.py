"""
Планировщик фоновых задач.
Использует APScheduler для запуска периодических задач.
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import settings
from .database import AsyncSessionLocal
from .services.user_service import UserService

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

BLOCK_EXPIRY_JOB_ID = "lift_expired_blocks"


async def lift_expired_blocks_job(session_factory=None) -> int:
    """Снимает истекшие блокировки, чтобы флаги в БД совпадали с вычисляемым состоянием"""
    session_factory = session_factory or AsyncSessionLocal
    try:
        async with session_factory() as session:
            lifted = await UserService(session).lift_expired_blocks()
    except Exception as e:
        logger.error(f"Job {BLOCK_EXPIRY_JOB_ID} failed: {e}", exc_info=True)
        return 0

    if lifted:
        logger.info(f"Job {BLOCK_EXPIRY_JOB_ID}: lifted {lifted} blocks")
    return lifted


def setup_scheduler():
    """Настройка планировщика задач"""
    interval = settings.BLOCK_EXPIRY_INTERVAL_MINUTES
    scheduler.add_job(
        lift_expired_blocks_job,
        IntervalTrigger(minutes=interval),
        id=BLOCK_EXPIRY_JOB_ID,
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=interval * 60 * 2,  # Пропустить если опоздал больше чем на два интервала
    )

    logger.info(f"Scheduler configured: {BLOCK_EXPIRY_JOB_ID} every {interval}min")
    print(f"✓ Scheduler configured with {len(scheduler.get_jobs())} tasks")


def start_scheduler():
    """Запуск планировщика"""
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")
        print("✓ Scheduler started")
        for job in scheduler.get_jobs():
            next_run = job.next_run_time.strftime("%Y-%m-%d %H:%M:%S UTC") if job.next_run_time else "Not scheduled"
            print(f"    - {job.id}: next run at {next_run}")


def shutdown_scheduler():
    """Остановка планировщика"""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")
