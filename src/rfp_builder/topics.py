"""Static registry of the requirement-gathering topics."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .models import AnswerRecord


class TopicId(str, Enum):
    """Identifiers of the seven topics; values double as record field names."""

    OVERVIEW = "overview"
    TARGET_USERS = "targetUsers"
    CORE_FEATURES = "coreFeatures"
    REFERENCE_SERVICES = "referenceServices"
    TECH_REQUIREMENTS = "techRequirements"
    BUDGET_TIMELINE = "budgetTimeline"
    ADDITIONAL_REQUIREMENTS = "additionalRequirements"

    @classmethod
    def from_string(cls, value: str | None) -> Optional["TopicId"]:
        """Resolve a field name such as ``coreFeatures``; ``None`` if unknown."""
        if not value:
            return None
        normalized = value.strip()
        for candidate in cls:
            if candidate.value == normalized or candidate.name == normalized.upper():
                return candidate
        return None


@dataclass(frozen=True, slots=True)
class Topic:
    """Represents one interview topic."""

    id: TopicId
    label: str
    question: str
    required: bool
    order_index: int


TOPICS: List[Topic] = [
    Topic(
        id=TopicId.OVERVIEW,
        label="프로젝트 개요",
        question="어떤 서비스를 만들고 싶으신가요? 한 줄이면 충분합니다.",
        required=True,
        order_index=1,
    ),
    Topic(
        id=TopicId.TARGET_USERS,
        label="타겟 사용자",
        question="이 서비스를 누가 사용하나요?",
        required=False,
        order_index=2,
    ),
    Topic(
        id=TopicId.CORE_FEATURES,
        label="핵심 기능",
        question="가장 중요한 기능 3가지는 무엇인가요?",
        required=True,
        order_index=3,
    ),
    Topic(
        id=TopicId.REFERENCE_SERVICES,
        label="참고 서비스",
        question="비슷한 서비스나 벤치마크가 있나요?",
        required=False,
        order_index=4,
    ),
    Topic(
        id=TopicId.TECH_REQUIREMENTS,
        label="기술 요구사항",
        question="웹/앱/둘 다? 특별한 기술 요구사항이 있나요?",
        required=False,
        order_index=5,
    ),
    Topic(
        id=TopicId.BUDGET_TIMELINE,
        label="예산과 일정",
        question="예산 범위와 원하는 완료 시점은?",
        required=False,
        order_index=6,
    ),
    Topic(
        id=TopicId.ADDITIONAL_REQUIREMENTS,
        label="추가 요구사항",
        question="그 외 개발사에 전달할 사항이 있나요?",
        required=False,
        order_index=7,
    ),
]

TOPIC_COUNT = len(TOPICS)
FIRST_TOPIC_INDEX = 1
MIN_TOPICS_FOR_COMPLETION = 3

SKIP_TOKEN = "건너뛰기"
SKIP_TOKENS = frozenset({SKIP_TOKEN, "이대로 진행"})
FINALIZE_TOKENS = frozenset({"바로 RFP 생성하기", "바로 PRD 생성하기"})


def topic_at(index: int) -> Optional[Topic]:
    """Return the topic for a 1-based index, or ``None`` past the end."""
    if FIRST_TOPIC_INDEX <= index <= TOPIC_COUNT:
        return TOPICS[index - 1]
    return None


def topic_for(topic_id: TopicId) -> Topic:
    for topic in TOPICS:
        if topic.id is topic_id:
            return topic
    raise KeyError(topic_id)


def required_topics() -> List[Topic]:
    return [topic for topic in TOPICS if topic.required]


def topics_covered(answers: "AnswerRecord") -> List[TopicId]:
    """List the topics whose field holds a non-empty answer, in topic order."""
    return [topic.id for topic in TOPICS if answers.has_answer(topic.id)]


def is_ready_to_complete(answers: "AnswerRecord") -> bool:
    """At least three topics covered and every mandatory topic present."""
    covered = topics_covered(answers)
    if len(covered) < MIN_TOPICS_FOR_COMPLETION:
        return False
    return all(topic.id in covered for topic in required_topics())


def progress_percent(answers: "AnswerRecord") -> int:
    return round(len(topics_covered(answers)) / TOPIC_COUNT * 100)
