"""Send merge notifications by email and Slack webhook."""
from __future__ import annotations

import html
import re
import smtplib
from email.message import EmailMessage

import requests
from loguru import logger

from jira_merge.compose import RELEASE_ACTION
from jira_merge.errors import SlackWebhookError
from jira_merge.models import ChannelOutcome
from jira_merge.settings import Settings

HTTP_ERROR_THRESHOLD = 400
SLACK_TIMEOUT_SECONDS = 30
SMTP_TIMEOUT_SECONDS = 30
SMTP_SSL_PORT = 465
MAX_SLACK_CHARS = 39000
SLACK_BLOCK_TEXT_LIMIT = 3000
SLACK_MAX_BLOCKS = 50
CHANNEL_EMAIL = "email"
CHANNEL_SLACK = "slack"

SLACK_LINK_RE = re.compile(r"<([^|<>]+)\|([^<>]+)>")
BOLD_LINE_RE = re.compile(r"^\*(.+)\*$", re.MULTILINE)
MARKDOWN_HEADING_RE = re.compile(r"^#{1,3}\s+(.+)$", re.MULTILINE)


def build_subject(
    action: str,
    source: str,
    target: str,
    success: bool,
    repository: str | None = None,
) -> str:
    """Return the notification subject line."""
    if action == RELEASE_ACTION:
        outcome = "Release Deployed" if success else "Release Failed"
    else:
        outcome = "Merge Completed" if success else "Merge Failed"
    prefix = f"[{repository}] " if repository else ""
    return f"{prefix}{outcome}: {source} → {target}"


def escape_html_text(text: str) -> str:
    """Escape text for HTML, undoing any mrkdwn entity escaping first."""
    return html.escape(html.unescape(text), quote=False)


def mrkdwn_to_html(message: str) -> str:
    """Convert a Slack mrkdwn message into simple HTML for email.

    Only literal `<url|label>` links become anchors. Text that arrived
    entity-escaped stays escaped.
    """
    parts: list[str] = []
    position = 0
    for match in SLACK_LINK_RE.finditer(message):
        url, label = match.groups()
        parts.append(escape_html_text(message[position : match.start()]))
        parts.append(f'<a href="{html.escape(url)}">{escape_html_text(label)}</a>')
        position = match.end()
    parts.append(escape_html_text(message[position:]))
    text = "".join(parts)
    text = MARKDOWN_HEADING_RE.sub(r"<h2>\1</h2>", text)
    text = BOLD_LINE_RE.sub(r"<h2>\1</h2>", text)
    return text.replace("\n", "<br>\n")


def mrkdwn_to_text(message: str) -> str:
    """Strip Slack link markup for the plain-text email part."""
    text = SLACK_LINK_RE.sub(r"\2 (\1)", message)
    return html.unescape(text)


def trim_message(message: str) -> str:
    """Trim the message to fit Slack limits."""
    if len(message) <= MAX_SLACK_CHARS:
        return message
    return message[: MAX_SLACK_CHARS - 100] + "\n\n[truncated]"


def chunk_slack_text(message: str) -> list[str]:
    """Split message into Slack block-sized chunks on newline boundaries."""
    if not message:
        return [""]
    lines = message.split("\n")
    chunks: list[str] = []
    current: list[str] = []
    current_len = 0
    for line in lines:
        # +1 accounts for the newline joining character
        added = len(line) + (1 if current else 0)
        if current and current_len + added > SLACK_BLOCK_TEXT_LIMIT:
            chunks.append("\n".join(current))
            current = []
            current_len = 0
        current.append(line)
        current_len += added
    if current:
        chunks.append("\n".join(current))
    return chunks


def build_slack_payload(
    subject: str,
    message: str,
    success: bool,
    *,
    channel: str | None = None,
    repository: str | None = None,
) -> dict[str, object]:
    """Build the webhook payload: header, message sections and a status line."""
    status = "✅ Success" if success else "❌ Failed"
    context = f"Status: {status}"
    if repository:
        context = f"Repository: *{repository}* | {context}"
    header_blocks: list[dict[str, object]] = [
        {"type": "header", "text": {"type": "plain_text", "text": subject}},
    ]
    footer_blocks: list[dict[str, object]] = [
        {"type": "context", "elements": [{"type": "mrkdwn", "text": context}]},
    ]
    max_sections = SLACK_MAX_BLOCKS - len(header_blocks) - len(footer_blocks)
    chunks = [chunk for chunk in chunk_slack_text(message.strip()) if chunk.strip()]
    if len(chunks) > max_sections:
        chunks = chunks[: max_sections - 1]
        chunks.append("[truncated]")
    sections: list[dict[str, object]] = [
        {"type": "section", "text": {"type": "mrkdwn", "text": chunk}}
        for chunk in chunks
    ]
    payload: dict[str, object] = {
        "text": trim_message(f"{subject}\n{message.strip()}"),
        "blocks": header_blocks + sections + footer_blocks,
    }
    if channel:
        payload["channel"] = channel
    return payload


def post_to_slack(
    webhook_url: str,
    subject: str,
    message: str,
    success: bool,
    *,
    channel: str | None = None,
    repository: str | None = None,
) -> None:
    """Post a message to Slack via webhook."""
    payload = build_slack_payload(
        subject,
        message,
        success,
        channel=channel,
        repository=repository,
    )
    response = requests.post(webhook_url, json=payload, timeout=SLACK_TIMEOUT_SECONDS)
    if response.status_code >= HTTP_ERROR_THRESHOLD:
        raise SlackWebhookError(response.status_code, response.text)


def build_email(settings: Settings, subject: str, message: str) -> EmailMessage:
    """Build a multipart text/HTML notification email."""
    email = EmailMessage()
    email["Subject"] = subject
    email["From"] = settings.email_from
    email["To"] = ", ".join(settings.email_recipients)
    email.set_content(mrkdwn_to_text(message))
    email.add_alternative(mrkdwn_to_html(message), subtype="html")
    return email


def send_email_notification(settings: Settings, subject: str, message: str) -> None:
    """Deliver the notification email over SMTP."""
    email = build_email(settings, subject, message)
    if settings.smtp_port == SMTP_SSL_PORT:
        smtp: smtplib.SMTP = smtplib.SMTP_SSL(
            settings.smtp_host,
            settings.smtp_port,
            timeout=SMTP_TIMEOUT_SECONDS,
        )
    else:
        smtp = smtplib.SMTP(
            settings.smtp_host,
            settings.smtp_port,
            timeout=SMTP_TIMEOUT_SECONDS,
        )
    with smtp:
        if settings.smtp_port != SMTP_SSL_PORT:
            smtp.ehlo()
            if smtp.has_extn("starttls"):
                smtp.starttls()
                smtp.ehlo()
        if settings.smtp_user and settings.smtp_pass:
            smtp.login(settings.smtp_user, settings.smtp_pass)
        smtp.send_message(email)


def notify_email(settings: Settings, subject: str, message: str) -> ChannelOutcome:
    """Attempt email delivery once and report the outcome."""
    if not settings.email_enabled:
        return ChannelOutcome(channel=CHANNEL_EMAIL, skipped=True)
    try:
        send_email_notification(settings, subject, message)
    except (smtplib.SMTPException, OSError) as error:
        logger.error("Error sending email notification: {error}", error=str(error))
        return ChannelOutcome(channel=CHANNEL_EMAIL, error=str(error))
    logger.info("Email notification sent", recipients=len(settings.email_recipients))
    return ChannelOutcome(channel=CHANNEL_EMAIL, delivered=True)


def notify_slack(
    settings: Settings,
    subject: str,
    message: str,
    success: bool,
) -> ChannelOutcome:
    """Attempt Slack delivery once and report the outcome."""
    if not settings.slack_enabled:
        return ChannelOutcome(channel=CHANNEL_SLACK, skipped=True)
    if not settings.slack_webhook_url:
        logger.warning("Slack notifications enabled but SLACK_WEBHOOK_URL is not set")
        return ChannelOutcome(
            channel=CHANNEL_SLACK,
            error="Slack webhook URL is not configured",
        )
    try:
        post_to_slack(
            settings.slack_webhook_url,
            subject,
            message,
            success,
            channel=settings.slack_channel,
            repository=settings.repository_name,
        )
    except (requests.RequestException, SlackWebhookError) as error:
        logger.error("Error sending Slack notification: {error}", error=str(error))
        return ChannelOutcome(channel=CHANNEL_SLACK, error=str(error))
    logger.info("Slack notification sent", channel=settings.slack_channel)
    return ChannelOutcome(channel=CHANNEL_SLACK, delivered=True)


def dispatch_notifications(
    settings: Settings,
    subject: str,
    message: str,
    success: bool,
) -> list[ChannelOutcome]:
    """Notify every enabled channel independently, one attempt each."""
    return [
        notify_email(settings, subject, message),
        notify_slack(settings, subject, message, success),
    ]
