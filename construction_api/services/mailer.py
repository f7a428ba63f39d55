"""
Отправка писем через SMTP.

smtplib блокирующий, поэтому отправка выполняется в отдельном потоке.
Если SMTP_HOST не задан, письма не отправляются (dev окружение).
"""
import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List, Optional, Sequence, Union

from ..config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


@dataclass
class EmailMessageData:
    to: List[str]
    subject: str
    html: str
    text: Optional[str] = None


class SmtpMailer:
    """SMTP транспорт. Создается один раз при старте и передается через get_mailer."""

    def __init__(self, config: Settings):
        self.host = config.SMTP_HOST
        self.port = config.SMTP_PORT
        self.username = config.SMTP_USER
        self.password = config.SMTP_PASSWORD
        self.use_ssl = config.SMTP_USE_SSL
        self.starttls = config.SMTP_STARTTLS
        self.timeout = config.SMTP_TIMEOUT
        self.from_address = formataddr((config.SMTP_FROM_NAME, config.SMTP_FROM_EMAIL))

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def _build(self, message: EmailMessageData) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self.from_address
        msg["To"] = ", ".join(message.to)
        if message.text:
            msg.attach(MIMEText(message.text, "plain", "utf-8"))
        msg.attach(MIMEText(message.html, "html", "utf-8"))
        return msg

    def _send_sync(self, message: EmailMessageData) -> None:
        context = ssl.create_default_context()
        if self.use_ssl:
            server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if not self.use_ssl and self.starttls:
                server.starttls(context=context)
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(self.from_address, message.to, self._build(message).as_string())
        finally:
            try:
                server.quit()
            except smtplib.SMTPException:
                server.close()

    async def send(
        self,
        to: Union[str, Sequence[str]],
        subject: str,
        html: str,
        text: Optional[str] = None,
    ) -> bool:
        """
        Отправляет письмо.

        Returns:
            True - письмо передано SMTP серверу, False - отправка отключена

        Raises:
            smtplib.SMTPException, OSError: ошибки соединения/отправки
        """
        recipients = [to] if isinstance(to, str) else [address for address in to if address]
        if not recipients:
            logger.warning(f"Email '{subject}' has no recipients, skipping")
            return False

        if not self.enabled:
            logger.info(f"SMTP is not configured, skipping email '{subject}' to {recipients}")
            return False

        await asyncio.to_thread(
            self._send_sync,
            EmailMessageData(to=recipients, subject=subject, html=html, text=text),
        )
        logger.info(f"Email '{subject}' sent to {recipients}")
        return True


mailer = SmtpMailer(default_settings)


def get_mailer() -> SmtpMailer:
    """Dependency для получения почтового транспорта (подменяется в тестах)"""
    return mailer
