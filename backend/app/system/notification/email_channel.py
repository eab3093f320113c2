"""
邮件通知渠道

HTML 邮件同时附带纯文本版本；465 端口走 SMTP over SSL，其余端口用 STARTTLS。
"""
import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, Optional

from core.notification.channel import INotificationChannel

logger = logging.getLogger(__name__)

SSL_PORT = 465

_TAGS = re.compile(r"<[^>]+>")


def _plain_text(html: str) -> str:
    """去掉标签得到纯文本正文"""
    text = re.sub(r"</(h\d|p|div)>", "\n", html)
    return _TAGS.sub("", text).strip()


class EmailChannel(INotificationChannel):
    """SMTP 邮件渠道"""

    channel_type = "email"

    def __init__(self, smtp_host: Optional[str] = None, smtp_port: int = 587,
                 smtp_user: Optional[str] = None, smtp_password: Optional[str] = None,
                 sender_email: Optional[str] = None, timeout: float = 10.0):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.sender_email = sender_email or smtp_user
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    def build_message(self, recipient: str, subject: str, content: str,
                      content_type: str = "plain") -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.sender_email
        msg["To"] = recipient
        msg["Subject"] = subject
        if content_type == "html":
            msg.attach(MIMEText(_plain_text(content), "plain", "utf-8"))
            msg.attach(MIMEText(content, "html", "utf-8"))
        else:
            msg.attach(MIMEText(content, "plain", "utf-8"))
        return msg

    def _connect(self) -> smtplib.SMTP:
        if self.smtp_port == SSL_PORT:
            return smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.timeout)
        return smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout)

    def send(self, recipient: str, subject: str, content: str,
             extra: Optional[Dict] = None) -> bool:
        """发送邮件；extra["content_type"] 为 "html" 时按 HTML 发送"""
        if not self.enabled:
            logger.warning("Email notification skipped: SMTP is not configured")
            return False

        msg = self.build_message(recipient, subject, content, (extra or {}).get("content_type", "plain"))
        try:
            with self._connect() as server:
                if self.smtp_port != SSL_PORT:
                    server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {recipient}: {e}")
            return False

        logger.info(f"Email sent to {recipient}: {subject}")
        return True
