"""
Настройка логирования: обычный текстовый формат или JSON.
"""
import logging
import json
from typing import Dict, Any, Optional
from datetime import datetime, timezone

TEXT_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"

_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName", "context",
))


class StructuredFormatter(logging.Formatter):
    """
    Форматтер для логов в JSON (одна строка на запись).
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "context"):
            log_data["context"] = record.context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Настраивает корневой логгер приложения.

    Args:
        level: Уровень логирования (INFO, DEBUG, ...)
        json_output: True - StructuredFormatter, False - текстовый формат
    """
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: Optional[Dict[str, Any]] = None,
    **kwargs
) -> None:
    """
    Логирует сообщение с контекстными данными.

    Args:
        logger: Логгер
        level: Уровень логирования
        message: Сообщение
        context: Контекстные данные (попадают в поле context JSON-лога)
        **kwargs: Дополнительные поля для логирования
    """
    extra = kwargs.copy()
    if context:
        extra["context"] = context

    logger.log(level, message, extra=extra)
