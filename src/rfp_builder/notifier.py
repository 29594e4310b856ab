"""Slack incoming-webhook notifications for new leads and requests."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Mapping, Optional

import httpx

logger = logging.getLogger(__name__)

KST = timezone(timedelta(hours=9))


class NotificationType(str, Enum):
    NEW_LEAD = "new_lead"
    RFP_COMPLETED = "rfp_completed"
    CONSULTATION_REQUEST = "consultation_request"
    CTA_LEAD = "cta_lead"


_HEADLINES = {
    NotificationType.NEW_LEAD: ":sparkles: *새로운 리드가 등록되었습니다!*",
    NotificationType.RFP_COMPLETED: ":tada: *RFP가 완성되었습니다!*",
    NotificationType.CONSULTATION_REQUEST: ":phone: *상담 신청이 접수되었습니다!*",
    NotificationType.CTA_LEAD: ":dart: *RFP 완료 후 상담 요청이 들어왔습니다!*",
}


def _field(value: object) -> str:
    text = str(value).strip() if value is not None else ""
    return text or "미입력"


def build_message(
    kind: NotificationType,
    lead: Mapping[str, object],
    *,
    summary: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Render the Slack text for ``kind``."""

    stamp = (now or datetime.now(timezone.utc)).astimezone(KST)
    lines = [
        _HEADLINES[kind],
        "",
        f"> :bust_in_silhouette: *이름:* {_field(lead.get('name'))}",
        f"> :email: *이메일:* {_field(lead.get('email'))}",
        f"> :telephone_receiver: *연락처:* {_field(lead.get('phone'))}",
        f"> :office: *회사명:* {_field(lead.get('company'))}",
    ]
    if summary:
        lines += ["", f"> :page_facing_up: *프로젝트:* {summary}"]
    if kind is NotificationType.CONSULTATION_REQUEST:
        lines += ["", ":rotating_light: *24시간 내 연락 필요합니다!*"]
    lines += ["", f":clock3: {stamp.strftime('%Y-%m-%d %H:%M')} (KST)"]
    return "\n".join(lines)


class SlackNotifier:
    """Posts messages to a Slack webhook without any delivery guarantee."""

    def __init__(self, webhook_url: Optional[str], *, timeout: float = 5.0) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def send(self, text: str) -> bool:
        if not self._webhook_url:
            logger.info("Slack webhook not configured; skipping notification.")
            logger.debug("Notification body: %s", text)
            return False
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._webhook_url, json={"text": text})
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Slack notification failed: %s", exc)
            return False
        return True

    async def notify(
        self,
        kind: NotificationType,
        lead: Mapping[str, object],
        *,
        summary: Optional[str] = None,
    ) -> bool:
        return await self.send(build_message(kind, lead, summary=summary))
