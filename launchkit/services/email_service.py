"""
Email Service

Sends transactional email (magic sign-in links) over SMTP.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from flask import current_app, render_template

logger = logging.getLogger(__name__)


class EmailService:
    """SMTP sender configured from the Flask app config."""

    def __init__(self, config):
        self.smtp_host = config.get("SMTP_HOST") or ""
        self.smtp_port = int(config.get("SMTP_PORT") or 587)
        self.smtp_user = config.get("SMTP_USER") or ""
        self.smtp_password = config.get("SMTP_PASSWORD") or ""
        self.smtp_use_tls = bool(config.get("SMTP_USE_TLS", True))
        self.mail_from = config.get("MAIL_FROM") or "no-reply@localhost"

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host)

    def send_email(self, to_email: str, subject: str, text_body: str, html_body: Optional[str] = None) -> bool:
        """
        Send an email using SMTP.

        Returns:
            bool: True if the message was handed to the SMTP server
        """
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.mail_from
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        if html_body:
            msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                if self.smtp_use_tls:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("[MAIL] send failed to=%s error=%s", to_email, e.__class__.__name__)
            return False
        return True


def send_magic_link_email(to_email: str, link: str) -> bool:
    """
    Email a sign-in link. Without SMTP configured (local dev) the link is logged instead.
    """
    service = EmailService(current_app.config)
    if not service.is_configured:
        logger.warning("[MAIL] SMTP not configured; magic link for %s: %s", to_email, link)
        return True

    project_name = current_app.config.get("PROJECT_NAME", "launchkit")
    text_body = render_template("email/magic_link.txt", link=link, project_name=project_name)
    html_body = render_template("email/magic_link.html", link=link, project_name=project_name)
    return service.send_email(to_email, f"Sign in to {project_name}", text_body, html_body)
