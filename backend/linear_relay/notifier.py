"""Slack notification sink.

Alerts are posted to Slack incoming webhooks as ``{"text": ...}``. Failures
are logged and reported as ``False``; nothing is retried.
"""

import asyncio
import logging
from typing import Optional

import aiohttp
from slack_sdk.webhook.async_client import AsyncWebhookClient

from .models import IssueData

logger = logging.getLogger(__name__)


def issue_link(issue: IssueData) -> str:
    """Slack mrkdwn link to an issue: ``<url|IDENT title>``."""
    return f"<{issue.link}|{issue.display_identifier} {issue.display_title}>"


def format_fireman_message(issue: IssueData, status_name: str) -> str:
    return (
        f"🚨 An `URGENT` ticket was transitioned / updated inside `{status_name}` "
        f"{issue_link(issue)}"
    )


def format_cycle_status_message(
    issue: IssueData, reason: str, cycle_name: str, flagged: bool
) -> str:
    if flagged:
        return f'🚩 Issue flagged in active cycle "{cycle_name}": {issue_link(issue)}'
    return (
        f'✅ Issue moved to "{reason}" in active cycle "{cycle_name}": '
        f"{issue_link(issue)}"
    )


class SlackNotifier:
    """Send alerts to Slack incoming webhooks."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def send(
        self, webhook_url: Optional[str], text: str, issue_id: Optional[str] = None
    ) -> bool:
        """Post a message to an incoming webhook.

        Args:
            webhook_url: Incoming webhook URL; empty means not configured
            text: Message text (Slack mrkdwn)
            issue_id: Issue the alert is about, for logging

        Returns:
            True if Slack accepted the message
        """
        if not webhook_url:
            logger.warning(
                f"Slack webhook URL not configured, skipping notification for {issue_id}"
            )
            return False

        client = AsyncWebhookClient(url=webhook_url, timeout=int(self.timeout))
        try:
            response = await client.send(text=text)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error sending Slack notification for {issue_id}: {e}")
            return False

        if not 200 <= response.status_code < 300:
            logger.error(
                f"Failed to send Slack notification for {issue_id}: "
                f"status={response.status_code} body={response.body}"
            )
            return False

        logger.info(f"Sent Slack notification for {issue_id}")
        return True
