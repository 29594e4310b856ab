"""Topic-sequencing state machine for the requirements interview."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .answer_parser import parse_answer
from .models import AnswerRecord, AnswerUpdate, ChatTurn, ConversationSession
from .topics import (
    FINALIZE_TOKENS,
    FIRST_TOPIC_INDEX,
    SKIP_TOKENS,
    TOPIC_COUNT,
    Topic,
    topic_at,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TurnOutcome:
    """Result of feeding one user message to the state machine."""

    topic: Optional[Topic]
    next_topic_index: int
    answers: AnswerRecord
    answer_update: Optional[AnswerUpdate] = None
    completed: bool = False
    skipped: bool = False
    skip_rejected: bool = False
    finalize_requested: bool = False

    @property
    def next_topic(self) -> Optional[Topic]:
        if self.completed:
            return None
        return topic_at(self.next_topic_index)


def is_finalize_command(message: str) -> bool:
    return message.strip() in FINALIZE_TOKENS


def is_skip_command(message: str) -> bool:
    return message.strip() in SKIP_TOKENS


def advance(
    current_topic_index: int,
    message: str,
    answers: AnswerRecord,
) -> TurnOutcome:
    """Map ``(topic index, user message)`` to the next state.

    The finalize command completes the interview immediately with whatever
    has been collected. Skipping an optional topic advances without writing;
    skipping a required topic is rejected and the index stays put so the
    caller asks the same question again. Any other text is parsed into the
    field of the current topic, overwriting a previous answer.
    """

    index = max(current_topic_index, FIRST_TOPIC_INDEX)
    text = message if isinstance(message, str) else ""

    if is_finalize_command(text):
        logger.debug("Finalize requested at topic %d", index)
        return TurnOutcome(
            topic=topic_at(index),
            next_topic_index=min(index, TOPIC_COUNT),
            answers=answers,
            completed=True,
            finalize_requested=True,
        )

    topic = topic_at(index)
    if topic is None:
        return TurnOutcome(
            topic=None,
            next_topic_index=TOPIC_COUNT,
            answers=answers,
            completed=True,
        )

    if is_skip_command(text):
        if topic.required:
            logger.debug("Skip rejected for required topic %s", topic.id.value)
            return TurnOutcome(
                topic=topic,
                next_topic_index=index,
                answers=answers,
                skip_rejected=True,
            )
        return _advanced(topic, index, answers, update=None, skipped=True)

    value = parse_answer(topic.id, text)
    update = AnswerUpdate(field=topic.id, value=value)
    return _advanced(
        topic,
        index,
        answers.with_answer(topic.id, value),
        update=update,
        skipped=False,
    )


def _advanced(
    topic: Topic,
    index: int,
    answers: AnswerRecord,
    *,
    update: Optional[AnswerUpdate],
    skipped: bool,
) -> TurnOutcome:
    next_index = index + 1
    return TurnOutcome(
        topic=topic,
        next_topic_index=min(next_index, TOPIC_COUNT),
        answers=answers,
        answer_update=update,
        completed=next_index > TOPIC_COUNT,
        skipped=skipped,
    )


def apply_turn(session: ConversationSession, message: str) -> TurnOutcome:
    """Run :func:`advance` and fold the outcome into ``session``."""

    session.messages.append(ChatTurn(role="user", content=message))
    outcome = advance(session.current_topic_index, message, session.answers)
    session.answers = outcome.answers
    session.current_topic_index = outcome.next_topic_index
    session.completed = session.completed or outcome.completed
    return outcome
