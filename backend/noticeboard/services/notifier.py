# backend/noticeboard/services/notifier.py
"""
Notice broadcast by e-mail.

Recipients are resolved while the request session is still open; sending runs
afterwards as a background task. Each recipient is attempted independently and
a failed send is logged, never raised, so notice creation cannot fail because
of mail delivery.
"""
import html
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional, Sequence

import aiosmtplib
from sqlalchemy.orm import Session

from .visibility import ALL_ROLES
from ..config import Settings, settings
from ..models.notice import Notice
from ..models.user import User, UserRole
from ..utils.logging import notify_logger


@dataclass(frozen=True)
class EmailConfig:
    enabled: bool
    host: str
    port: int
    username: Optional[str]
    password: Optional[str]
    sender: str
    use_tls: bool = True

    @classmethod
    def from_settings(cls, config: Settings) -> "EmailConfig":
        return cls(
            enabled=config.EMAIL_ENABLED,
            host=config.EMAIL_HOST,
            port=config.EMAIL_PORT,
            username=config.EMAIL_USER,
            password=config.EMAIL_PASSWORD,
            sender=config.EMAIL_FROM,
            use_tls=config.EMAIL_USE_TLS
        )


@dataclass(frozen=True)
class Recipient:
    email: str
    name: str


@dataclass(frozen=True)
class NoticeMessage:
    subject: str
    text: str
    html: str


def notice_reaches_students(notice: Notice) -> bool:
    audience = {str(getattr(entry, "value", entry)).lower() for entry in (notice.target_audience or [])}
    return UserRole.STUDENT.value in audience or ALL_ROLES in audience


def resolve_recipients(db: Session, notice: Notice) -> List[Recipient]:
    """Active students who should receive the notice, limited to its department when set"""
    if not notice_reaches_students(notice):
        return []

    query = db.query(User).filter(User.role == UserRole.STUDENT, User.is_active.is_(True))
    if notice.department:
        query = query.filter(User.department == notice.department)

    return [Recipient(email=user.email, name=user.name) for user in query.all() if user.email]


def build_notice_message(notice: Notice) -> NoticeMessage:
    posted_by = notice.owner.name if notice.owner else "Administration"
    category = notice.category.value if hasattr(notice.category, "value") else str(notice.category)
    expiry = f"\n\nExpiry Date: {notice.expiry_date:%Y-%m-%d}" if notice.expiry_date else ""
    attachment_count = len(notice.attachments or [])
    attachments = f"\n\nAttachments: {attachment_count} file(s) attached" if attachment_count else ""

    text = (
        f"New Notice: {notice.title}\n\n"
        f"Posted by: {posted_by}\n"
        f"Category: {category}\n\n"
        f"{notice.content}{expiry}{attachments}\n\n"
        "---\n"
        "This is an automated email from Document Management System.\n"
        "Please do not reply to this email."
    )
    body = (
        f"<h2>{html.escape(notice.title)}</h2>"
        f"<p><strong>Posted by:</strong> {html.escape(posted_by)}<br>"
        f"<strong>Category:</strong> {html.escape(category)}</p>"
        f"<div style=\"white-space: pre-wrap;\">{html.escape(notice.content)}</div>"
    )
    if notice.expiry_date:
        body += f"<p><strong>Expiry Date:</strong> {notice.expiry_date:%Y-%m-%d}</p>"
    if attachment_count:
        body += f"<p><strong>Attachments:</strong> {attachment_count} file(s) attached</p>"
    body += "<p><small>This is an automated email from Document Management System.</small></p>"

    return NoticeMessage(subject=f"New Notice: {notice.title}", text=text, html=body)


class NoticeNotifier:
    def __init__(self, config: EmailConfig):
        self.config = config

    async def _send(self, recipient: Recipient, message: NoticeMessage) -> None:
        mime = MIMEMultipart("alternative")
        mime["From"] = self.config.sender
        mime["To"] = recipient.email
        mime["Subject"] = message.subject
        mime.attach(MIMEText(message.text, "plain"))
        mime.attach(MIMEText(message.html, "html"))

        await aiosmtplib.send(
            mime,
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username,
            password=self.config.password,
            start_tls=self.config.use_tls
        )

    async def notify_notice_created(self, message: NoticeMessage, recipients: Sequence[Recipient]) -> int:
        """Send the notice to every recipient; returns how many sends succeeded"""
        if not self.config.enabled:
            notify_logger.info("E-mail disabled, skipping notice broadcast", extra={
                "recipient_count": len(recipients)
            })
            return 0
        if not recipients:
            notify_logger.info("No students found to send notice emails")
            return 0

        sent = 0
        for recipient in recipients:
            try:
                await self._send(recipient, message)
                sent += 1
            except Exception as e:
                notify_logger.error(f"Failed to send notice email to {recipient.email}", extra={
                    "error_type": type(e).__name__,
                    "error": str(e)
                })

        notify_logger.info(f"Notice emails sent to {sent} of {len(recipients)} student(s)", extra={
            "subject": message.subject
        })
        return sent


notifier = NoticeNotifier(EmailConfig.from_settings(settings))
