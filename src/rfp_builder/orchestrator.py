"""Conversation and document entry points with optional model enrichment.

Deterministic output is always computed first. A configured model may then
replace the feature list and the reply text, but never the topic decision;
any model failure or timeout falls back to the deterministic result.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, cast

from .advisor import AdvisorReply, compose_reply
from .answer_parser import parse_feature_selection
from .config import AppSettings
from .conversation import TurnOutcome, advance
from .document import assemble_document
from .maf_client import (
    ChatMessage,
    LanguageModelClient,
    MAFIntegrationError,
    build_chat_client,
)
from .models import (
    AnswerRecord,
    AnswerUpdate,
    ChatTurn,
    FeatureItem,
    GeneratedDocument,
    Priority,
)
from .prompts import (
    SYSTEM_PROMPT,
    build_analysis_prompt,
    build_conversation_prompt,
    build_document_prompt,
    build_feature_prompt,
    build_section_prompt,
)
from .topics import (
    TopicId,
    is_ready_to_complete,
    progress_percent,
    topics_covered,
)

logger = logging.getLogger(__name__)

FEATURE_MAX_TOKENS = 1500
MESSAGE_MAX_TOKENS = 1200
DOCUMENT_MAX_TOKENS = 8000
SECTION_MAX_TOKENS = 2000
ANALYSIS_MAX_TOKENS = 3000

MIN_ENRICHED_FEATURES = 3
MAX_ENRICHED_FEATURES = 15
ANALYSIS_SPLIT_RATIO = 0.6

MIN_DOCUMENT_LENGTH = 20
MAX_DOCUMENT_CHARS = 8000
FALLBACK_OVERVIEW_CHARS = 1000


def _empty_topics() -> List[TopicId]:
    return []


def _empty_replies() -> List[str]:
    return []


@dataclass(slots=True)
class ChatResult:
    """Reply to one conversation turn."""

    response_text: str
    next_topic_index: int
    completed: bool
    answers: AnswerRecord
    answer_update: Optional[AnswerUpdate] = None
    analysis_text: Optional[str] = None
    question_text: Optional[str] = None
    topics_covered: List[TopicId] = field(default_factory=_empty_topics)
    progress: int = 0
    can_complete: bool = False
    quick_replies: List[str] = field(default_factory=_empty_replies)
    source: str = "fallback"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "responseText": self.response_text,
            "nextTopicIndex": self.next_topic_index,
            "completed": self.completed,
            "topicsCovered": [topic.value for topic in self.topics_covered],
            "progress": self.progress,
            "canComplete": self.can_complete,
            "quickReplies": list(self.quick_replies),
            "source": self.source,
        }
        if self.analysis_text is not None:
            payload["analysisText"] = self.analysis_text
        if self.question_text is not None:
            payload["questionText"] = self.question_text
        if self.answer_update is not None:
            payload["answerUpdate"] = self.answer_update.to_dict()
        return payload


@dataclass(slots=True)
class DocumentAnalysis:
    answers: AnswerRecord
    summary: str
    source: str


def last_user_message(messages: Sequence[ChatTurn]) -> str:
    for turn in reversed(messages):
        if turn.role == "user":
            return turn.content
    return ""


def extract_json_object(raw: str) -> Optional[Dict[str, Any]]:
    text = raw.strip()
    if not text:
        return None
    candidate = text
    if not candidate.startswith("{"):
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            return None
        candidate = text[start:end + 1]
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return cast(Dict[str, Any], payload)


def extract_json_array(raw: str) -> Optional[List[Any]]:
    text = raw.strip()
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end == -1 or end <= start:
        return None
    try:
        payload = json.loads(text[start:end + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, list):
        return None
    return cast(List[Any], payload)


def parse_enriched_features(raw: str) -> Optional[List[FeatureItem]]:
    """Well-formed items of a model feature list; ``None`` if fewer than 3."""

    payload = extract_json_array(raw)
    if payload is None:
        return None
    items: List[FeatureItem] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        entry_dict = cast(Dict[str, Any], entry)
        name = entry_dict.get("name")
        description = entry_dict.get("description") or entry_dict.get("desc")
        if not isinstance(name, str) or not name.strip():
            continue
        if not isinstance(description, str) or not description.strip():
            continue
        try:
            priority = Priority.from_string(entry_dict.get("priority"))
        except ValueError:
            continue
        items.append(
            FeatureItem(
                name=name.strip(),
                description=description.strip(),
                priority=priority,
            )
        )
    if len(items) < MIN_ENRICHED_FEATURES:
        return None
    return items[:MAX_ENRICHED_FEATURES]


def split_reply(raw: str) -> Optional[Tuple[str, str]]:
    """Split free text into (analysis, question) at 60% of its lines."""

    text = raw.strip()
    if not text:
        return None
    lines = text.splitlines()
    if len(lines) < 2:
        return "", text
    cut = max(1, int(len(lines) * ANALYSIS_SPLIT_RATIO))
    analysis = "\n".join(lines[:cut]).strip()
    question = "\n".join(lines[cut:]).strip()
    return analysis, question


def _reply_part(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_two_part_reply(raw: str) -> Optional[Tuple[Optional[str], Optional[str]]]:
    """Read ``{"analysis", "question"}`` JSON, else split the text by lines.

    A part that is missing or blank in the JSON comes back as ``None`` so the
    caller can keep its own text for it.
    """

    payload = extract_json_object(raw)
    if payload is not None and ("analysis" in payload or "question" in payload):
        analysis = _reply_part(payload.get("analysis"))
        question = _reply_part(payload.get("question"))
        if analysis is None and question is None:
            return None
        return analysis, question
    return split_reply(raw)


class RequirementsOrchestrator:
    """Runs conversation turns and document generation for one service."""

    def __init__(
        self,
        chat_client: Optional[LanguageModelClient] = None,
        *,
        llm_timeout: float = 25.0,
        document_timeout: float = 55.0,
        history_window: int = 8,
    ) -> None:
        self._client = chat_client
        self._llm_timeout = llm_timeout
        self._document_timeout = document_timeout
        self._history_window = history_window

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "RequirementsOrchestrator":
        client: Optional[LanguageModelClient]
        try:
            client = build_chat_client(settings.model)
        except MAFIntegrationError:
            logger.exception(
                "Language model client unavailable; continuing with "
                "deterministic replies only."
            )
            client = None
        return cls(
            client,
            llm_timeout=settings.llm_timeout,
            document_timeout=settings.document_timeout,
            history_window=settings.history_window,
        )

    @property
    def model_enabled(self) -> bool:
        return self._client is not None

    async def _generate(
        self,
        prompt: str,
        *,
        max_tokens: int,
        timeout: float,
        history: Sequence[ChatMessage] = (),
    ) -> Optional[str]:
        """One model call; every failure is reported as ``None``."""

        if self._client is None:
            return None
        messages = list(history) + [ChatMessage(role="user", content=prompt)]
        try:
            text = await asyncio.wait_for(
                self._client.generate(SYSTEM_PROMPT, messages, max_tokens),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Model call timed out after %.0fs.", timeout)
            return None
        except Exception:  # noqa: BLE001 # pylint: disable=broad-except
            logger.exception("Model call failed; using deterministic output.")
            return None
        if not isinstance(text, str) or not text.strip():
            logger.warning("Model returned no text; using deterministic output.")
            return None
        return text

    async def enrich_features(
        self,
        overview: str,
        mentioned: Sequence[FeatureItem],
    ) -> Optional[List[FeatureItem]]:
        raw = await self._generate(
            build_feature_prompt(
                overview,
                ", ".join(item.name for item in mentioned),
            ),
            max_tokens=FEATURE_MAX_TOKENS,
            timeout=self._llm_timeout,
        )
        if raw is None:
            return None
        features = parse_enriched_features(raw)
        if features is None:
            logger.warning("Discarding malformed feature list from the model.")
        return features

    async def enrich_message(
        self,
        history: Sequence[ChatTurn],
        outcome: TurnOutcome,
        *,
        features_generated: bool,
    ) -> Optional[Tuple[Optional[str], Optional[str]]]:
        window = [
            ChatMessage(role=turn.role, content=turn.content)
            for turn in list(history)[-self._history_window:]
        ]
        prompt = build_conversation_prompt(
            current_topic=outcome.topic,
            next_topic=outcome.next_topic,
            answers=outcome.answers,
            features_generated=features_generated,
        )
        raw = await self._generate(
            prompt,
            max_tokens=MESSAGE_MAX_TOKENS,
            timeout=self._llm_timeout,
            history=window,
        )
        if raw is None:
            return None
        return parse_two_part_reply(raw)

    async def handle_turn(
        self,
        messages: Sequence[ChatTurn],
        current_topic_index: int,
        answers: AnswerRecord,
    ) -> ChatResult:
        """Conversation entry point: advance the interview by one message."""

        message = last_user_message(messages)
        outcome = advance(current_topic_index, message, answers)
        reply = compose_reply(outcome)

        features_generated = False
        if (
            self.model_enabled
            and outcome.answer_update is not None
            and outcome.answer_update.field is TopicId.CORE_FEATURES
            and parse_feature_selection(message) is None
        ):
            enriched = await self.enrich_features(
                outcome.answers.overview or message,
                outcome.answers.core_features,
            )
            if enriched is not None:
                features_generated = True
                outcome.answer_update = AnswerUpdate(
                    field=TopicId.CORE_FEATURES,
                    value=enriched,
                )
                outcome.answers = outcome.answers.with_answer(
                    TopicId.CORE_FEATURES,
                    enriched,
                )
                reply = compose_reply(outcome)

        result = self._result_from(outcome, reply)
        if self.model_enabled and self._should_enrich_message(outcome):
            enriched_reply = await self.enrich_message(
                messages,
                outcome,
                features_generated=features_generated,
            )
            if enriched_reply is not None:
                analysis, question = enriched_reply
                if analysis is None:
                    analysis = result.analysis_text or ""
                if question is None:
                    question = result.question_text or ""
                result.analysis_text = analysis
                result.question_text = question
                result.response_text = "\n\n".join(
                    part for part in (analysis, question) if part
                )
                result.source = "model"
        return result

    @staticmethod
    def _should_enrich_message(outcome: TurnOutcome) -> bool:
        return not (
            outcome.completed
            or outcome.finalize_requested
            or outcome.skip_rejected
        )

    @staticmethod
    def _result_from(outcome: TurnOutcome, reply: AdvisorReply) -> ChatResult:
        answers = outcome.answers
        return ChatResult(
            response_text=reply.text,
            next_topic_index=outcome.next_topic_index,
            completed=outcome.completed,
            answers=answers,
            answer_update=outcome.answer_update,
            analysis_text=reply.analysis or None,
            question_text=reply.question or None,
            topics_covered=topics_covered(answers),
            progress=100 if outcome.completed else progress_percent(answers),
            can_complete=outcome.completed or is_ready_to_complete(answers),
            quick_replies=list(reply.quick_replies),
        )

    async def generate_document(
        self,
        answers: AnswerRecord,
        *,
        generated_at: Optional[datetime] = None,
    ) -> GeneratedDocument:
        """Document entry point: model draft, else the deterministic engine."""

        stamp = generated_at or datetime.now()
        text = await self._generate(
            build_document_prompt(answers),
            max_tokens=DOCUMENT_MAX_TOKENS,
            timeout=self._document_timeout,
        )
        if text is not None:
            return GeneratedDocument(
                text=text.strip() + "\n",
                generated_at=stamp,
                source="model",
            )
        return assemble_document(answers, generated_at=stamp)

    async def regenerate_section(
        self,
        section_title: str,
        current_content: str,
        answers: AnswerRecord,
    ) -> Optional[str]:
        text = await self._generate(
            build_section_prompt(section_title, current_content, answers),
            max_tokens=SECTION_MAX_TOKENS,
            timeout=self._llm_timeout,
        )
        return text.strip() if text is not None else None

    async def analyze_document(self, document_text: str) -> DocumentAnalysis:
        """Extract an answer record from an existing planning document."""

        text = document_text.strip()
        if len(text) < MIN_DOCUMENT_LENGTH:
            raise ValueError("document text is too short to analyze")
        raw = await self._generate(
            build_analysis_prompt(text[:MAX_DOCUMENT_CHARS]),
            max_tokens=ANALYSIS_MAX_TOKENS,
            timeout=self._document_timeout,
        )
        payload = extract_json_object(raw) if raw is not None else None
        if payload is not None:
            answers = AnswerRecord.from_dict(payload)
            if answers.overview or answers.core_features:
                summary = payload.get("summary")
                return DocumentAnalysis(
                    answers=answers,
                    summary=summary.strip() if isinstance(summary, str) else "",
                    source="model",
                )
            logger.warning("Model analysis produced an empty record.")
        return DocumentAnalysis(
            answers=AnswerRecord(overview=text[:FALLBACK_OVERVIEW_CHARS].strip()),
            summary="",
            source="fallback",
        )
