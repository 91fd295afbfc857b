"""Outbound email and "share article by email"."""

import html
import logging
import smtplib
import ssl
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Dict, Optional

from .normalizer import strip_html
from .observability import log as obs_log

logger = logging.getLogger(__name__)

SHARE_SUBJECT_PREFIX = "[RSS Share]"
SEND_FAILED = "Send failed"

SHARE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <style>
    body {{ font-family: -apple-system, 'Segoe UI', Helvetica, Arial, sans-serif;
           line-height: 1.6; color: #24292e; max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ border-bottom: 1px solid #e1e4e8; padding-bottom: 20px; margin-bottom: 20px; }}
    .title {{ font-size: 24px; font-weight: 600; margin: 0 0 10px 0; color: #0366d6; }}
    .meta {{ font-size: 14px; color: #586069; margin: 5px 0; }}
    .description {{ background: #f6f8fa; border-left: 4px solid #0366d6; padding: 15px;
                    margin: 20px 0; border-radius: 3px; }}
    .link-button {{ display: inline-block; padding: 10px 20px; background: #0366d6; color: white;
                    text-decoration: none; border-radius: 6px; margin-top: 20px; }}
    .footer {{ margin-top: 30px; padding-top: 20px; border-top: 1px solid #e1e4e8;
               font-size: 12px; color: #586069; text-align: center; }}
  </style>
</head>
<body>
  <div class="header">
    <h1 class="title">{title}</h1>
    {author}
    <div class="meta">Published: {published}</div>
  </div>
  {description}
  <div>
    <a href="{link}" class="link-button">Read original &rarr;</a>
  </div>
  <div class="footer">
    <p>Sent automatically by RSS Reader</p>
  </div>
</body>
</html>
"""


def _format_published(value: Any) -> str:
    if value in (None, ""):
        return "Unknown"
    if not isinstance(value, datetime):
        try:
            value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return str(value)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M UTC")


def render_share_email(article: Dict[str, Any]) -> str:
    """Render the HTML body for a shared article.

    All article fields are escaped; HTML in the description is stripped to
    text first.
    """
    author = article.get("author")
    description = article.get("description")
    if description:
        description = strip_html(description)

    return SHARE_TEMPLATE.format(
        title=html.escape(article.get("title") or "Untitled"),
        author=(
            f'<div class="meta">Author: {html.escape(author)}</div>' if author else ""
        ),
        published=html.escape(_format_published(article.get("pub_date"))),
        description=(
            f'<div class="description">{html.escape(description)}</div>'
            if description
            else ""
        ),
        link=html.escape(article.get("link") or "", quote=True),
    )


class Mailer:
    """Sends HTML email through the configured SMTP server."""

    def __init__(self, config):
        """
        Args:
            config: Config with the smtp_* settings
        """
        self.host = config.smtp_host
        self.port = config.smtp_port
        self.user = config.smtp_user
        self.password = config.smtp_password
        self.sender_name = config.smtp_sender_name
        self.use_ssl = config.smtp_use_ssl

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=30)

        smtp = smtplib.SMTP(self.host, self.port, timeout=30)
        try:
            smtp.starttls(context=context)
        except (smtplib.SMTPException, OSError):
            smtp.close()
            raise
        return smtp

    def send(self, to: str, subject: str, html_body: str) -> bool:
        """Send one HTML message.

        Returns:
            True if the server accepted the message, False on any failure
        """
        message = EmailMessage()
        message["From"] = formataddr((self.sender_name, self.user))
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html_body, subtype="html")

        try:
            with self._connect() as smtp:
                if self.user:
                    smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            obs_log("email.send.error", recipient=to, error=str(e))
            return False

        logger.info(f"Sent email to {to}: {subject}")
        obs_log("email.send.complete", recipient=to)
        return True


class ArticleSharer:
    """Shares an article by email and records the attempt in the email log."""

    def __init__(self, mailer: Mailer, stats):
        self.mailer = mailer
        self.stats = stats

    def share_article(
        self,
        to: str,
        article: Dict[str, Any],
        user_id: Optional[str] = None,
        article_id: Optional[str] = None,
    ) -> bool:
        """Email an article to ``to``.

        Args:
            to: Recipient address
            article: Dict with title, link and optionally author, pub_date
                and description
            user_id: When given, the attempt is written to the email log
            article_id: Stored article the share refers to, if any

        Returns:
            Whether the email was sent
        """
        title = article.get("title") or "Untitled"
        link = article.get("link") or ""

        success = self.mailer.send(
            to, f"{SHARE_SUBJECT_PREFIX} {title}", render_share_email(article)
        )

        if user_id:
            try:
                self.stats.log_email_sent(
                    user_id=user_id,
                    recipient_email=to,
                    article_title=title,
                    article_link=link,
                    success=success,
                    article_id=article_id,
                    error_message=None if success else SEND_FAILED,
                )
            except Exception as e:
                logger.error(f"Failed to record email log for user {user_id}: {e}")

        return success
