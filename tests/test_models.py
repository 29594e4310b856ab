"""Tests for the topic registry and the record types."""

import pytest

from rfp_builder.models import (
    AnswerRecord,
    ConversationSession,
    FeatureItem,
    Priority,
    coerce_topic_index,
)
from rfp_builder.topics import (
    TOPICS,
    TopicId,
    is_ready_to_complete,
    progress_percent,
    required_topics,
    topic_at,
    topics_covered,
)


class TestTopicRegistry:
    def test_seven_topics_in_order(self):
        assert [topic.order_index for topic in TOPICS] == list(range(1, 8))
        assert topic_at(1).id is TopicId.OVERVIEW
        assert topic_at(7).id is TopicId.ADDITIONAL_REQUIREMENTS
        assert topic_at(0) is None
        assert topic_at(8) is None

    def test_required_topics(self):
        assert [topic.id for topic in required_topics()] == [
            TopicId.OVERVIEW,
            TopicId.CORE_FEATURES,
        ]

    def test_topic_id_from_string(self):
        assert TopicId.from_string("coreFeatures") is TopicId.CORE_FEATURES
        assert TopicId.from_string("core_features") is TopicId.CORE_FEATURES
        assert TopicId.from_string("unknown") is None
        assert TopicId.from_string(None) is None


class TestCompletionRules:
    def test_covered_topics_follow_topic_order(self, sample_answers):
        assert topics_covered(sample_answers) == [topic.id for topic in TOPICS]
        assert progress_percent(sample_answers) == 100

    def test_requires_three_topics(self, sample_features):
        answers = AnswerRecord(overview="앱", core_features=sample_features)
        assert not is_ready_to_complete(answers)
        assert progress_percent(answers) == 29

        answers = answers.with_answer(TopicId.TARGET_USERS, "직장인")
        assert is_ready_to_complete(answers)

    def test_requires_every_mandatory_topic(self):
        answers = AnswerRecord(
            overview="앱",
            target_users="직장인",
            reference_services="토스",
            tech_requirements="앱",
        )
        assert not is_ready_to_complete(answers)

    def test_whitespace_only_answers_do_not_count(self):
        answers = AnswerRecord(overview="   ", target_users="\n")
        assert topics_covered(answers) == []


class TestAnswerRecord:
    def test_with_answer_returns_a_copy(self):
        original = AnswerRecord()
        updated = original.with_answer(TopicId.OVERVIEW, "커머스")

        assert original.overview == ""
        assert updated.overview == "커머스"

    def test_with_answer_type_checks(self):
        with pytest.raises(TypeError):
            AnswerRecord().with_answer(TopicId.CORE_FEATURES, "로그인")
        with pytest.raises(TypeError):
            AnswerRecord().with_answer(TopicId.OVERVIEW, [])

    def test_dict_uses_camel_case_field_names(self, sample_answers):
        payload = sample_answers.to_dict()

        assert set(payload) == {topic.id.value for topic in TOPICS}
        assert payload["coreFeatures"][0] == {
            "name": "로그인",
            "description": "로그인",
            "priority": "P1",
        }
        assert AnswerRecord.from_dict(payload) == sample_answers

    def test_from_dict_tolerates_loose_input(self):
        record = AnswerRecord.from_dict(
            {
                "overview": "  앱  ",
                "targetUsers": 3,
                "coreFeatures": [
                    {"name": "채팅", "desc": "1:1"},
                    {"description": "no name"},
                    "junk",
                ],
            }
        )

        assert record.overview == "앱"
        assert record.target_users == ""
        assert record.core_features == [
            FeatureItem(name="채팅", description="1:1", priority=Priority.P3)
        ]
        assert AnswerRecord.from_dict(None) == AnswerRecord()


class TestConversationSession:
    def test_from_dict_drops_unknown_roles(self):
        session = ConversationSession.from_dict(
            {
                "messages": [
                    {"role": "system", "content": "ignored"},
                    {"role": "User", "content": "안녕하세요"},
                    {"role": "assistant", "content": "반갑습니다"},
                ],
                "currentTopicIndex": "3",
                "completed": True,
            }
        )

        assert [turn.role for turn in session.messages] == ["user", "assistant"]
        assert session.current_topic_index == 3
        assert session.completed is True

    def test_round_trip_keeps_answers(self, sample_answers):
        session = ConversationSession(current_topic_index=4, answers=sample_answers)
        restored = ConversationSession.from_dict(session.to_dict())
        assert restored.answers == sample_answers
        assert restored.current_topic_index == 4

    def test_topic_index_coercion(self):
        assert coerce_topic_index("abc") == 1
        assert coerce_topic_index(None) == 1
        assert coerce_topic_index(-2) == 1
        assert coerce_topic_index(5) == 5
