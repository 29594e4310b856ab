"""Data model shared by the conversation and document pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union, cast

from .topics import FIRST_TOPIC_INDEX, TopicId


class Priority(str, Enum):
    """Feature priority tiers."""

    P1 = "P1"
    P2 = "P2"
    P3 = "P3"

    @classmethod
    def from_string(
        cls,
        value: object,
        default: Optional["Priority"] = None,
    ) -> "Priority":
        normalized = str(value or "").strip().upper()
        for candidate in cls:
            if candidate.value == normalized:
                return candidate
        if default is not None:
            return default
        raise ValueError(f"Unsupported priority: {value}")


@dataclass(frozen=True, slots=True)
class FeatureItem:
    """A single prioritized feature requirement."""

    name: str
    description: str
    priority: Priority

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "description": self.description,
            "priority": self.priority.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Optional["FeatureItem"]:
        """Build an item from loosely shaped input; ``None`` without a name."""
        name = str(payload.get("name") or "").strip()
        if not name:
            return None
        description = str(
            payload.get("description") or payload.get("desc") or name
        ).strip()
        priority = Priority.from_string(payload.get("priority"), Priority.P3)
        return cls(name=name, description=description, priority=priority)


AnswerValue = Union[str, List[FeatureItem]]


def _empty_features() -> List[FeatureItem]:
    return []


@dataclass(slots=True)
class AnswerRecord:
    """The accumulating requirements record; every field starts empty."""

    overview: str = ""
    target_users: str = ""
    core_features: List[FeatureItem] = field(default_factory=_empty_features)
    reference_services: str = ""
    tech_requirements: str = ""
    budget_timeline: str = ""
    additional_requirements: str = ""

    def get_answer(self, topic_id: TopicId) -> AnswerValue:
        if topic_id is TopicId.OVERVIEW:
            return self.overview
        if topic_id is TopicId.TARGET_USERS:
            return self.target_users
        if topic_id is TopicId.CORE_FEATURES:
            return list(self.core_features)
        if topic_id is TopicId.REFERENCE_SERVICES:
            return self.reference_services
        if topic_id is TopicId.TECH_REQUIREMENTS:
            return self.tech_requirements
        if topic_id is TopicId.BUDGET_TIMELINE:
            return self.budget_timeline
        if topic_id is TopicId.ADDITIONAL_REQUIREMENTS:
            return self.additional_requirements
        raise KeyError(topic_id)

    def has_answer(self, topic_id: TopicId) -> bool:
        value = self.get_answer(topic_id)
        if isinstance(value, list):
            return len(value) > 0
        return bool(value.strip())

    def with_answer(self, topic_id: TopicId, value: AnswerValue) -> "AnswerRecord":
        """Return a copy with one field overwritten.

        ``coreFeatures`` is replaced as a whole list; text fields only accept
        strings.
        """
        if topic_id is TopicId.CORE_FEATURES:
            if not isinstance(value, list):
                raise TypeError("coreFeatures expects a list of FeatureItem")
            return replace(self, core_features=list(value))
        if not isinstance(value, str):
            raise TypeError(f"{topic_id.value} expects a string value")
        if topic_id is TopicId.OVERVIEW:
            return replace(self, overview=value)
        if topic_id is TopicId.TARGET_USERS:
            return replace(self, target_users=value)
        if topic_id is TopicId.REFERENCE_SERVICES:
            return replace(self, reference_services=value)
        if topic_id is TopicId.TECH_REQUIREMENTS:
            return replace(self, tech_requirements=value)
        if topic_id is TopicId.BUDGET_TIMELINE:
            return replace(self, budget_timeline=value)
        if topic_id is TopicId.ADDITIONAL_REQUIREMENTS:
            return replace(self, additional_requirements=value)
        raise KeyError(topic_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            TopicId.OVERVIEW.value: self.overview,
            TopicId.TARGET_USERS.value: self.target_users,
            TopicId.CORE_FEATURES.value: [
                item.to_dict() for item in self.core_features
            ],
            TopicId.REFERENCE_SERVICES.value: self.reference_services,
            TopicId.TECH_REQUIREMENTS.value: self.tech_requirements,
            TopicId.BUDGET_TIMELINE.value: self.budget_timeline,
            TopicId.ADDITIONAL_REQUIREMENTS.value: self.additional_requirements,
        }

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "AnswerRecord":
        if not payload:
            return cls()
        features: List[FeatureItem] = []
        raw_features = payload.get(TopicId.CORE_FEATURES.value)
        if isinstance(raw_features, list):
            for entry in cast(List[Any], raw_features):
                if isinstance(entry, Mapping):
                    item = FeatureItem.from_dict(cast(Mapping[str, Any], entry))
                    if item is not None:
                        features.append(item)

        def _text(topic_id: TopicId) -> str:
            value = payload.get(topic_id.value)
            return value.strip() if isinstance(value, str) else ""

        return cls(
            overview=_text(TopicId.OVERVIEW),
            target_users=_text(TopicId.TARGET_USERS),
            core_features=features,
            reference_services=_text(TopicId.REFERENCE_SERVICES),
            tech_requirements=_text(TopicId.TECH_REQUIREMENTS),
            budget_timeline=_text(TopicId.BUDGET_TIMELINE),
            additional_requirements=_text(TopicId.ADDITIONAL_REQUIREMENTS),
        )


@dataclass(slots=True)
class AnswerUpdate:
    """A single field write produced by a conversation turn."""

    field: TopicId
    value: AnswerValue

    def to_dict(self) -> Dict[str, Any]:
        value: Any = self.value
        if isinstance(self.value, list):
            value = [item.to_dict() for item in self.value]
        return {"field": self.field.value, "value": value}


@dataclass(slots=True)
class ChatTurn:
    """One message of the conversation history."""

    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def _empty_turns() -> List[ChatTurn]:
    return []


@dataclass(slots=True)
class ConversationSession:
    """Conversation state owned by one caller for its lifetime."""

    messages: List[ChatTurn] = field(default_factory=_empty_turns)
    current_topic_index: int = FIRST_TOPIC_INDEX
    answers: AnswerRecord = field(default_factory=AnswerRecord)
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messages": [turn.to_dict() for turn in self.messages],
            "currentTopicIndex": self.current_topic_index,
            "answers": self.answers.to_dict(),
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ConversationSession":
        return cls(
            messages=coerce_turns(payload.get("messages")),
            current_topic_index=coerce_topic_index(
                payload.get("currentTopicIndex")
            ),
            answers=AnswerRecord.from_dict(
                cast(Optional[Mapping[str, Any]], payload.get("answers"))
            ),
            completed=bool(payload.get("completed", False)),
        )


@dataclass(frozen=True, slots=True)
class GeneratedDocument:
    """Rendered requirements document plus its generation timestamp."""

    text: str
    generated_at: datetime
    source: str = "template"


def coerce_turns(value: object) -> List[ChatTurn]:
    turns: List[ChatTurn] = []
    if not isinstance(value, list):
        return turns
    for entry in cast(List[Any], value):
        if not isinstance(entry, Mapping):
            continue
        entry_map = cast(Mapping[str, Any], entry)
        role = str(entry_map.get("role", "")).strip().lower()
        if role not in {"user", "assistant"}:
            continue
        turns.append(ChatTurn(role=role, content=str(entry_map.get("content", ""))))
    return turns


def coerce_topic_index(value: object) -> int:
    try:
        index = int(cast(Any, value))
    except (TypeError, ValueError):
        return FIRST_TOPIC_INDEX
    return max(index, FIRST_TOPIC_INDEX)
