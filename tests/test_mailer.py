"""RFP email rendering and delivery through the Resend API."""

import json

import httpx
import pytest

from rfp_builder.mailer import (
    RESEND_ENDPOINT,
    RfpMailer,
    build_subject,
    is_guest_address,
    render_email_html,
)

DOCUMENT = "# 중고 거래 플랫폼 RFP\n\n## 1. 요약\n- 로그인 <필수>\n**중요 사항**\n본문 & 설명"


def test_html_converts_headings_and_escapes_text():
    body = render_email_html(DOCUMENT, "중고 거래")

    assert "<h1>중고 거래 플랫폼 RFP</h1>" in body
    assert "<h2>1. 요약</h2>" in body
    assert "&bull; 로그인 &lt;필수&gt;" in body
    assert "<strong>중요 사항</strong>" in body
    assert "<p>본문 &amp; 설명</p>" in body
    assert '<p class="project">중고 거래</p>' in body


def test_subject_mentions_project():
    assert "중고 거래" in build_subject("중고 거래")
    assert build_subject(None).endswith("RFP 기획서가 완성되었습니다")


def test_guest_addresses():
    assert is_guest_address("guest@local")
    assert is_guest_address(" Guest@example.com")
    assert not is_guest_address("ceo@example.com")


@pytest.fixture
def resend(monkeypatch):
    """Route the mailer's httpx client through a mock transport."""

    real_client = httpx.AsyncClient
    captured = []

    def install(status_code):
        def handler(request):
            captured.append(request)
            return httpx.Response(status_code, json={"id": "email-1"})

        def factory(*args, **kwargs):
            return real_client(*args, transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", factory)
        return captured

    return install


@pytest.mark.asyncio
async def test_without_api_key_the_document_is_only_stored(resend):
    requests = resend(200)
    mailer = RfpMailer(None, "RFP <rfp@example.com>")

    result = await mailer.send_document("ceo@example.com", DOCUMENT)

    assert result.method == "stored"
    assert "추후 지원 예정" in result.message
    assert requests == []


@pytest.mark.asyncio
async def test_accepted_email(resend):
    requests = resend(200)
    mailer = RfpMailer("re_test", "RFP <rfp@example.com>")

    result = await mailer.send_document(
        "ceo@example.com", DOCUMENT, project_name="중고 거래"
    )

    assert result.to_dict() == {
        "success": True,
        "method": "email",
        "message": "이메일로 RFP가 발송되었습니다.",
    }
    request = requests[0]
    assert str(request.url) == RESEND_ENDPOINT
    assert request.headers["Authorization"] == "Bearer re_test"
    payload = json.loads(request.content)
    assert payload["to"] == ["ceo@example.com"]
    assert payload["from"] == "RFP <rfp@example.com>"
    assert "중고 거래" in payload["subject"]


@pytest.mark.asyncio
async def test_provider_errors_fall_back_to_stored(resend):
    resend(422)
    mailer = RfpMailer("re_test", "RFP <rfp@example.com>")

    result = await mailer.send_document("ceo@example.com", DOCUMENT)

    assert result.method == "stored"
    assert result.message == "RFP가 저장되었습니다."
