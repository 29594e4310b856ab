"""Delivers finished RFP documents by email through the Resend HTTP API."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

RESEND_ENDPOINT = "https://api.resend.com/emails"

GUEST_PREFIX = "guest@"


@dataclass(slots=True)
class DeliveryResult:
    """Outcome reported back to the client.

    ``method`` is ``"email"`` when the provider accepted the message and
    ``"stored"`` when delivery was skipped or failed.
    """

    method: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "method": self.method, "message": self.message}


STORED_PENDING = DeliveryResult(
    "stored", "RFP가 저장되었습니다. 이메일 발송은 추후 지원 예정입니다."
)
STORED = DeliveryResult("stored", "RFP가 저장되었습니다.")
SENT = DeliveryResult("email", "이메일로 RFP가 발송되었습니다.")


def is_guest_address(email: str) -> bool:
    return email.strip().lower().startswith(GUEST_PREFIX)


def build_subject(project_name: Optional[str]) -> str:
    if project_name:
        return f"[AI RFP] {project_name} - RFP 기획서가 완성되었습니다"
    return "[AI RFP] RFP 기획서가 완성되었습니다"


def _line_html(line: str) -> str:
    if line.startswith("# "):
        return f"<h1>{html.escape(line[2:])}</h1>"
    if line.startswith("## "):
        return f"<h2>{html.escape(line[3:])}</h2>"
    if line.startswith("### "):
        return f"<h3>{html.escape(line[4:])}</h3>"
    if line.startswith("- "):
        return f"<div class=\"item\">&bull; {html.escape(line[2:])}</div>"
    if len(line) > 4 and line.startswith("**") and line.endswith("**"):
        return f"<p><strong>{html.escape(line[2:-2])}</strong></p>"
    if line.strip():
        return f"<p>{html.escape(line)}</p>"
    return ""


def render_email_html(document: str, project_name: Optional[str] = None) -> str:
    """Render the Markdown document as a minimal HTML email body.

    Only headings, bullets and bold lines are converted; everything else
    becomes an escaped paragraph.
    """

    body: List[str] = [_line_html(line) for line in document.splitlines()]
    title = f"<p class=\"project\">{html.escape(project_name)}</p>" if project_name else ""
    return (
        "<!DOCTYPE html>\n<html>\n<head><meta charset=\"utf-8\"></head>\n<body>\n"
        f"<header><h1>RFP 기획서</h1>{title}</header>\n"
        f"<main>{''.join(part for part in body if part)}</main>\n"
        "<footer><p>AI RFP Builder로 생성된 문서입니다</p></footer>\n"
        "</body>\n</html>"
    )


class RfpMailer:
    """Sends RFP emails; without an API key every request is only stored."""

    def __init__(
        self,
        api_key: Optional[str],
        sender: str,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def send_document(
        self,
        email: str,
        document: str,
        *,
        project_name: Optional[str] = None,
    ) -> DeliveryResult:
        if not self._api_key:
            logger.info("Resend API key not configured; skipping RFP email.")
            return STORED_PENDING
        payload = {
            "from": self._sender,
            "to": [email],
            "subject": build_subject(project_name),
            "html": render_email_html(document, project_name),
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    RESEND_ENDPOINT,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("RFP email to %s failed: %s", email, exc)
            return STORED
        return SENT
