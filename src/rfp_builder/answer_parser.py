"""Deterministic parsing of free-text answers into record values."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, cast

from .models import AnswerValue, FeatureItem, Priority
from .topics import TopicId

logger = logging.getLogger(__name__)

MAX_PARSED_FEATURES = 5

_SEPARATOR_RE = re.compile(r"[\r\n,，·•\-]+")
_ENUMERATION_RE = re.compile(r"^(?:\d+[.)]|[①②③④⑤⑥⑦⑧⑨⑩])\s*")


def priority_for_position(index: int) -> Priority:
    """First two mentions are P1, the next two P2, anything later P3."""
    if index < 2:
        return Priority.P1
    if index < 4:
        return Priority.P2
    return Priority.P3


def split_feature_tokens(text: str) -> List[str]:
    tokens: List[str] = []
    for fragment in _SEPARATOR_RE.split(text):
        token = _ENUMERATION_RE.sub("", fragment.strip()).strip()
        if token:
            tokens.append(token)
    return tokens


def parse_features(text: object) -> List[FeatureItem]:
    """Extract up to five prioritized features from a free-text answer.

    The name and description of each item are the extracted token itself;
    order follows the source text so the first mention ranks highest.
    """

    if not isinstance(text, str):
        return []
    tokens = split_feature_tokens(text)[:MAX_PARSED_FEATURES]
    return [
        FeatureItem(
            name=token,
            description=token,
            priority=priority_for_position(index),
        )
        for index, token in enumerate(tokens)
    ]


def parse_feature_selection(text: str) -> Optional[List[FeatureItem]]:
    """Read a JSON array of selected features sent by the feature picker.

    Entries look like ``{"name": ..., "desc": ..., "category": "must"}``;
    ``must`` entries are P1, the rest are ranked by position. Returns
    ``None`` when the text is not such an array.
    """

    stripped = text.strip()
    if not stripped.startswith("["):
        return None
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, list) or not payload:
        return None
    items: List[FeatureItem] = []
    for index, entry in enumerate(cast(List[Any], payload)):
        if not isinstance(entry, dict):
            continue
        entry_dict = cast(Dict[str, Any], entry)
        name = str(entry_dict.get("name") or "").strip()
        if not name:
            continue
        description = str(
            entry_dict.get("desc") or entry_dict.get("description") or name
        ).strip()
        if entry_dict.get("category") == "must":
            priority = Priority.P1
        elif index < 4:
            priority = Priority.P2
        else:
            priority = Priority.P3
        items.append(
            FeatureItem(name=name, description=description, priority=priority)
        )
    if not items:
        return None
    logger.debug("Parsed %d features from a selection payload", len(items))
    return items


def parse_answer(topic_id: TopicId, text: str) -> AnswerValue:
    """Convert a raw answer into the value stored for ``topic_id``."""
    if topic_id is TopicId.CORE_FEATURES:
        selection = parse_feature_selection(text)
        if selection is not None:
            return selection
        return parse_features(text)
    return text.strip()
