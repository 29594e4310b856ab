"""Slack notification formatting and delivery."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from rfp_builder.notifier import NotificationType, SlackNotifier, build_message

NOW = datetime(2025, 1, 15, 0, 30, tzinfo=timezone.utc)


def test_message_lists_lead_fields_in_kst():
    text = build_message(
        NotificationType.NEW_LEAD,
        {"name": "김대표", "email": "ceo@example.com"},
        now=NOW,
    )

    assert text.startswith(":sparkles: *새로운 리드가 등록되었습니다!*")
    assert "*이름:* 김대표" in text
    assert "*회사명:* 미입력" in text
    assert "2025-01-15 09:30 (KST)" in text
    assert "24시간" not in text


def test_consultation_message_is_flagged_urgent():
    text = build_message(
        NotificationType.CONSULTATION_REQUEST,
        {"name": "홍길동"},
        summary="중고 거래 플랫폼",
        now=NOW,
    )
    assert "*프로젝트:* 중고 거래 플랫폼" in text
    assert "24시간 내 연락 필요합니다!" in text


@pytest.fixture
def transport_factory(monkeypatch):
    """Route the notifier's httpx client through a mock transport."""

    real_client = httpx.AsyncClient
    captured = []

    def install(status_code):
        def handler(request):
            captured.append(request)
            return httpx.Response(status_code)

        def factory(*args, **kwargs):
            return real_client(*args, transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", factory)
        return captured

    return install


@pytest.mark.asyncio
async def test_send_posts_json_text(transport_factory):
    requests = transport_factory(200)
    notifier = SlackNotifier("https://hooks.slack.test/services/x")

    assert await notifier.send("hello")

    assert requests[0].method == "POST"
    assert json.loads(requests[0].content) == {"text": "hello"}


@pytest.mark.asyncio
async def test_http_errors_are_swallowed(transport_factory):
    transport_factory(500)
    notifier = SlackNotifier("https://hooks.slack.test/services/x")

    assert await notifier.send("hello") is False


@pytest.mark.asyncio
async def test_without_webhook_nothing_is_sent():
    notifier = SlackNotifier(None)

    assert not notifier.enabled
    assert await notifier.notify(NotificationType.CTA_LEAD, {"email": "a@b.co"}) is False
