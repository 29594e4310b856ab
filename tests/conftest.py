"""Shared fixtures: fake model clients, sample answers, throwaway storage."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
from unittest.mock import MagicMock

import pytest
import redis

from rfp_builder.maf_client import ChatMessage
from rfp_builder.models import AnswerRecord, FeatureItem, Priority
from rfp_builder.store import LeadRepository

Scripted = Union[str, BaseException]


class FakeChatClient:
    """Returns scripted replies in order and records every call."""

    def __init__(self, responses: Sequence[Scripted] = (), *, delay: float = 0.0):
        self._responses: List[Scripted] = list(responses)
        self._delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def generate(
        self,
        system_prompt: Optional[str],
        messages: Sequence[ChatMessage],
        max_tokens: int,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": list(messages),
                "max_tokens": max_tokens,
            }
        )
        if self._delay:
            await asyncio.sleep(self._delay)
        if not self._responses:
            raise RuntimeError("no scripted response left")
        reply = self._responses.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class RecordingNotifier:
    """Collects notifications instead of posting them."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []

    @property
    def enabled(self) -> bool:
        return True

    async def notify(self, kind, lead, *, summary=None) -> bool:
        self.sent.append({"kind": kind, "lead": dict(lead), "summary": summary})
        return True


@pytest.fixture
def sample_features() -> List[FeatureItem]:
    return [
        FeatureItem(name="로그인", description="로그인", priority=Priority.P1),
        FeatureItem(name="결제", description="결제", priority=Priority.P1),
        FeatureItem(name="채팅", description="채팅", priority=Priority.P2),
    ]


@pytest.fixture
def sample_answers(sample_features: List[FeatureItem]) -> AnswerRecord:
    return AnswerRecord(
        overview="중고 거래 플랫폼",
        target_users="20대 대학생",
        core_features=sample_features,
        reference_services="당근마켓",
        tech_requirements="웹 + 앱 둘 다",
        budget_timeline="5,000만원, 3개월",
        additional_requirements="소스코드 귀속 필요",
    )


@pytest.fixture
def archive_path(tmp_path: Path) -> Path:
    return tmp_path / "records.jsonl"


@pytest.fixture
def repository(archive_path: Path) -> LeadRepository:
    """Repository backed only by the JSONL archive."""
    return LeadRepository(archive_path, None)


@pytest.fixture
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    client = MagicMock()
    client.get.return_value = None
    client.hget.return_value = None
    monkeypatch.setattr(redis, "from_url", lambda *args, **kwargs: client)
    return client


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
