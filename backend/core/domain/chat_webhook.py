"""
core.domain.chat_webhook — Outbound chat message for new cases.

Posts a Telegram-style ``sendMessage`` request announcing a newly created
case to the operations chat.  The client is only ever driven from the
post-commit fan-out task in ``cases.tasks``; callers treat it as
best-effort and never let its failures reach the request that created
the case.

Configuration (``settings.py``)::

    CHAT_WEBHOOK = {
        "BOT_TOKEN": "...",
        "CHAT_ID": "...",
        "API_URL": "https://api.telegram.org",
        "TIMEOUT_SECONDS": 5.0,
    }
    DASHBOARD_URL = "http://localhost:8000/admin/"

When ``BOT_TOKEN`` or ``CHAT_ID`` is empty the client logs and skips.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
from django.conf import settings
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaseSummary:
    """The fields of a new case that the chat announcement shows."""

    case_id: int
    kind: str
    title: str
    description: str
    requester_name: str
    handler_name: str
    created_at: datetime


class ChatWebhookClient:
    """
    Thin synchronous client around the chat bot ``sendMessage`` endpoint.

    Every request carries a bounded ``httpx.Timeout``; network errors and
    timeouts are retried a small number of times before giving up.
    """

    def __init__(
        self,
        *,
        bot_token: str = "",
        chat_id: str = "",
        api_url: str = "https://api.telegram.org",
        timeout_seconds: float = 5.0,
        dashboard_url: str = "",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_url = api_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout_seconds)
        self.dashboard_url = dashboard_url
        self._transport = transport

    @classmethod
    def from_settings(cls) -> ChatWebhookClient:
        conf: dict[str, Any] = getattr(settings, "CHAT_WEBHOOK", {})
        return cls(
            bot_token=conf.get("BOT_TOKEN", ""),
            chat_id=conf.get("CHAT_ID", ""),
            api_url=conf.get("API_URL", "https://api.telegram.org"),
            timeout_seconds=float(conf.get("TIMEOUT_SECONDS", 5.0)),
            dashboard_url=getattr(settings, "DASHBOARD_URL", ""),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    # ── Public API ──────────────────────────────────────────────────

    def send_case_created_message(self, summary: CaseSummary) -> bool:
        """
        Announce ``summary`` in the configured chat.

        Returns ``True`` when the message was delivered and ``False``
        when the webhook is not configured.

        Raises:
            httpx.HTTPError: When delivery failed after the retries.
                             The fan-out task logs and absorbs it.
        """
        if not self.is_configured:
            logger.info(
                "Chat webhook not configured; skipping announcement for case %s",
                summary.case_id,
            )
            return False

        self._post_message(self.format_case_created(summary))
        logger.info(
            "Chat announcement sent for %s case %s",
            summary.kind,
            summary.case_id,
        )
        return True

    def format_case_created(self, summary: CaseSummary) -> str:
        """Render the HTML body announcing ``summary``."""
        from cases.registry import get_kind_spec

        spec = get_kind_spec(summary.kind)
        esc = html.escape

        lines = [f"🚨 <b>{esc(spec.chat_title)}</b>", ""]
        # Receiving cases are raised on behalf of the warehouse; the
        # requester line is left out for them.
        if spec.announce_requester:
            lines.append(f"👤 <b>Requester:</b> {esc(summary.requester_name)}")
        lines.append(f"👨‍💼 <b>Handler:</b> {esc(summary.handler_name)}")
        lines.append("")
        lines.append(f"{spec.emoji} <b>Case type:</b> {esc(spec.label)}")
        lines.append(f"📋 <b>Title:</b> {esc(summary.title)}")
        lines.append(f"📝 <b>Description:</b> {esc(summary.description)}")
        lines.append("")
        lines.append(
            f"⏰ <b>Created at:</b> {summary.created_at:%d/%m/%Y %H:%M}"
        )
        if self.dashboard_url:
            lines.append("")
            lines.append(
                f'🔗 <b>Details:</b> <a href="{esc(self.dashboard_url)}">'
                f"Admin Dashboard</a>"
            )
        return "\n".join(lines)

    # ── Transport ───────────────────────────────────────────────────

    @retry(
        retry=retry_if_exception_type((httpx.NetworkError, httpx.TimeoutException)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    def _post_message(self, text: str) -> dict[str, Any]:
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(
                f"{self.api_url}/bot{self.bot_token}/sendMessage",
                json={
                    "chat_id": self.chat_id,
                    "text": text,
                    "parse_mode": "HTML",
                },
            )
            response.raise_for_status()
            return response.json()
