"""
Почтовые уведомления.

Функции вызываются через BackgroundTasks после ответа клиенту, поэтому
получают простые dict со снимком данных, а не ORM объекты (сессия к этому
моменту уже закрыта). Ошибка отправки логируется и не влияет на результат
основной операции.
"""
import logging
import smtplib
from typing import Any, Callable, Dict, Optional, Sequence

from ..config import settings
from ..models import Consultation, User
from ..utils.retry import retry_async
from . import email_templates
from .mailer import SmtpMailer

logger = logging.getLogger(__name__)

MAIL_ERRORS = (smtplib.SMTPException, OSError)


def consultation_snapshot(consultation: Consultation, owner: Optional[User] = None) -> Dict[str, Any]:
    """Снимок консультации и владельца для писем"""
    owner = owner or consultation.user
    return {
        "id": str(consultation.id),
        "service": consultation.service,
        "project_type": consultation.project_type,
        "description": consultation.description,
        "location": consultation.location,
        "preferred_date": consultation.preferred_date.date().isoformat() if consultation.preferred_date else None,
        "is_urgent": consultation.is_urgent,
        "user_name": owner.name if owner else None,
        "user_email": owner.email if owner else None,
    }


async def _deliver(
    mailer: SmtpMailer,
    to,
    build_template: Callable[[], Dict[str, str]],
    operation: str,
) -> bool:
    """Собирает письмо и отправляет с повторами. Никогда не пробрасывает ошибку."""
    try:
        template = build_template()
        return await retry_async(
            lambda: mailer.send(to, template["subject"], template["html"], template["text"]),
            max_attempts=settings.EMAIL_MAX_ATTEMPTS,
            delay=settings.EMAIL_RETRY_DELAY,
            exceptions=MAIL_ERRORS,
            operation=operation,
        )
    except MAIL_ERRORS as e:
        logger.error(f"{operation} failed, giving up: {e}")
        return False
    except Exception as e:
        logger.error(f"{operation} failed with unexpected error: {e}", exc_info=True)
        return False


async def send_welcome_email(mailer: SmtpMailer, name: str, email: str) -> bool:
    return await _deliver(mailer, email, lambda: email_templates.welcome(name), f"welcome email to {email}")


async def send_consultation_created(
    mailer: SmtpMailer,
    snapshot: Dict[str, Any],
    admin_emails: Sequence[str] = (),
) -> None:
    """Подтверждение клиенту и уведомление администраторам о новой заявке"""
    if snapshot.get("user_email"):
        await _deliver(
            mailer,
            snapshot["user_email"],
            lambda: email_templates.consultation_confirmation(snapshot.get("user_name") or "", snapshot),
            f"consultation {snapshot.get('id')} confirmation",
        )

    recipients = list(dict.fromkeys([*admin_emails, settings.ADMIN_EMAIL]))
    recipients = [address for address in recipients if address]
    if not recipients:
        logger.debug("No admin recipients, admin notice skipped")
        return

    await _deliver(
        mailer,
        recipients,
        lambda: email_templates.admin_new_consultation(snapshot),
        f"consultation {snapshot.get('id')} admin notice",
    )


async def send_status_update(mailer: SmtpMailer, snapshot: Dict[str, Any], change: Dict[str, Any]) -> bool:
    """Письмо владельцу после смены статуса"""
    if not snapshot.get("user_email"):
        logger.warning(f"Consultation {snapshot.get('id')} owner has no email, status update not sent")
        return False

    return await _deliver(
        mailer,
        snapshot["user_email"],
        lambda: email_templates.consultation_status_update(snapshot.get("user_name") or "", {**snapshot, **change}),
        f"consultation {snapshot.get('id')} status update",
    )
