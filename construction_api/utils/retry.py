"""
Повтор асинхронных операций с экспоненциальной задержкой.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def retry_async(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple = (Exception,),
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    operation: str = "operation",
) -> T:
    """
    Выполняет func до max_attempts раз.

    Args:
        func: Асинхронная функция без аргументов
        max_attempts: Максимальное количество попыток
        delay: Начальная задержка в секундах
        backoff: Множитель задержки для следующей попытки
        exceptions: Исключения, при которых делается повтор
        on_retry: Callback (номер попытки, исключение) перед ожиданием
        operation: Название операции для логов

    Raises:
        Последнее исключение, если все попытки исчерпаны
    """
    last_exception = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except exceptions as e:
            last_exception = e

            if attempt >= max_attempts:
                logger.error(f"{operation}: all {max_attempts} attempts failed. Last error: {e}")
                break

            wait_time = delay * (backoff ** (attempt - 1))
            logger.warning(
                f"{operation}: attempt {attempt}/{max_attempts} failed: {e}. "
                f"Retrying in {wait_time:.2f}s..."
            )
            if on_retry:
                try:
                    on_retry(attempt, e)
                except Exception as callback_error:
                    logger.warning(f"Error in retry callback: {callback_error}")
            await asyncio.sleep(wait_time)

    raise last_exception
