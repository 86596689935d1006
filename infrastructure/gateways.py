"""Outbound gateways: in-app notifications and SMTP email"""
import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Dict, Any
from uuid import UUID

from domain.entities import EmailLogEntry, Notification
from domain.enums import EmailLogStatus, NotificationType
from domain.gateways import EmailGateway, NotificationGateway
from domain.repositories import EmailLogRepository, NotificationRepository
from infrastructure.config import Settings

logger = logging.getLogger(__name__)


class RepositoryNotificationGateway(NotificationGateway):
    """Stores notifications so the owning user can list them later"""

    def __init__(self, repository: NotificationRepository):
        self.repository = repository

    async def create_for_user(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            metadata=metadata or {},
        )
        await self.repository.save(notification)
        logger.debug("Notification %s stored for user %s", type.value, user_id)


class SmtpEmailGateway(EmailGateway):
    """Sends plain-text email over SMTP, or logs it when SMTP is not configured

    Every attempt is appended to the email log. Nothing is raised back to the
    caller.
    """

    def __init__(self, settings: Settings, log: EmailLogRepository):
        self.settings = settings
        self.log = log

    def _build_message(self, recipient: str, subject: str, text: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.settings.SMTP_FROM
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.attach(MIMEText(text or "", "plain"))
        return msg

    def _deliver(self, recipient: str, subject: str, text: str) -> None:
        msg = self._build_message(recipient, subject, text)
        with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT) as server:
            server.starttls()
            server.login(self.settings.SMTP_USER, self.settings.SMTP_PASS)
            server.sendmail(self.settings.SMTP_FROM, [recipient], msg.as_string())

    async def send_template(
        self,
        template: str,
        recipient_email: str,
        subject: str,
        text: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = payload or {}
        status = EmailLogStatus.SENT
        error = None

        if not self.settings.smtp_configured:
            logger.info("[EMAIL FALLBACK] to=%s subject=%s\n%s", recipient_email, subject, text)
            status = EmailLogStatus.FALLBACK_LOGGED
        else:
            try:
                # smtplib blocks; keep it off the event loop
                await asyncio.to_thread(self._deliver, recipient_email, subject, text)
                logger.info("Email '%s' sent to %s", template, recipient_email)
            except Exception as exc:
                logger.exception("Email '%s' to %s failed", template, recipient_email)
                status = EmailLogStatus.FAILED
                error = str(exc)

        try:
            await self.log.append(EmailLogEntry(
                recipient_email=recipient_email,
                template=template,
                payload=payload,
                status=status,
                error=error,
            ))
        except Exception:
            logger.exception("Could not record email log entry for '%s'", template)
