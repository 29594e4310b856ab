"""Orchestrator behaviour with and without a working model client."""

import asyncio
import json
from datetime import datetime

import pytest

from conftest import FakeChatClient
from rfp_builder.advisor import compose_reply
from rfp_builder.conversation import advance
from rfp_builder.models import AnswerRecord, ChatTurn
from rfp_builder.orchestrator import (
    RequirementsOrchestrator,
    extract_json_object,
    parse_enriched_features,
    parse_two_part_reply,
    split_reply,
)
from rfp_builder.topics import TopicId

ENRICHED = json.dumps(
    [
        {"name": "소셜 로그인", "description": "카카오/네이버", "priority": "P1"},
        {"name": "상품 등록", "description": "사진 업로드", "priority": "P1"},
        {"name": "1:1 채팅", "description": "구매자-판매자", "priority": "P2"},
        {"name": "위치 인증", "description": "동네 인증", "priority": "P3"},
    ],
    ensure_ascii=False,
)

TWO_PART = json.dumps({"analysis": "좋은 아이디어입니다.", "question": "누가 쓰나요?"}, ensure_ascii=False)


def _turns(*texts):
    return [ChatTurn(role="user", content=text) for text in texts]


class TestReplyParsing:
    def test_split_reply_cuts_at_sixty_percent(self):
        assert split_reply("1\n2\n3\n4\n5") == ("1\n2\n3", "4\n5")

    def test_split_reply_single_line_and_empty(self):
        assert split_reply("질문입니다") == ("", "질문입니다")
        assert split_reply("   ") is None

    def test_two_part_reply_prefers_json(self):
        assert parse_two_part_reply(f"```json\n{TWO_PART}\n```") == (
            "좋은 아이디어입니다.",
            "누가 쓰나요?",
        )

    def test_two_part_reply_leaves_blank_parts_unset(self):
        assert parse_two_part_reply('{"analysis": "only"}') == ("only", None)
        assert parse_two_part_reply('{"analysis": "좋아요", "question": ""}') == ("좋아요", None)
        assert parse_two_part_reply('{"analysis": " ", "question": "누가?"}') == (None, "누가?")
        assert parse_two_part_reply('{"analysis": "", "question": ""}') is None

    def test_other_json_is_split_as_text(self):
        raw = '참고: {"a": 1}\n질문입니다'
        assert parse_two_part_reply(raw) == ('참고: {"a": 1}', "질문입니다")

    def test_extract_json_object_inside_prose(self):
        assert extract_json_object('결과: {"a": 1} 입니다') == {"a": 1}
        assert extract_json_object("no json") is None
        assert extract_json_object("[1, 2]") is None


class TestEnrichedFeatures:
    def test_valid_list(self):
        items = parse_enriched_features(f"다음과 같습니다\n{ENRICHED}")
        assert [item.name for item in items][:2] == ["소셜 로그인", "상품 등록"]

    def test_malformed_entries_are_dropped(self):
        raw = json.dumps(
            [
                {"name": "a", "description": "x", "priority": "P1"},
                {"name": "b", "description": "x", "priority": "urgent"},
                {"name": "", "description": "x", "priority": "P1"},
                {"name": "c", "priority": "P2"},
                {"name": "d", "description": "x", "priority": "p2"},
            ]
        )
        assert parse_enriched_features(raw) is None

    def test_list_is_capped(self):
        raw = json.dumps(
            [{"name": f"f{i}", "description": "x", "priority": "P3"} for i in range(20)]
        )
        assert len(parse_enriched_features(raw)) == 15

    def test_not_json(self):
        assert parse_enriched_features("죄송합니다") is None


class TestHandleTurn:
    @pytest.mark.asyncio
    async def test_without_model_uses_deterministic_reply(self):
        orchestrator = RequirementsOrchestrator()
        answers = AnswerRecord()

        result = await orchestrator.handle_turn(_turns("중고 거래 플랫폼"), 1, answers)

        expected = compose_reply(advance(1, "중고 거래 플랫폼", answers))
        assert result.response_text == expected.text
        assert result.source == "fallback"
        assert result.next_topic_index == 2
        assert result.topics_covered == [TopicId.OVERVIEW]
        assert result.progress == 14
        assert not result.can_complete
        assert result.quick_replies == expected.quick_replies

    @pytest.mark.asyncio
    async def test_model_reply_replaces_text(self):
        client = FakeChatClient([TWO_PART])
        orchestrator = RequirementsOrchestrator(client)

        result = await orchestrator.handle_turn(_turns("중고 거래 플랫폼"), 1, AnswerRecord())

        assert result.source == "model"
        assert result.analysis_text == "좋은 아이디어입니다."
        assert result.question_text == "누가 쓰나요?"
        assert result.response_text == "좋은 아이디어입니다.\n\n누가 쓰나요?"
        assert result.answers.overview == "중고 거래 플랫폼"

    @pytest.mark.asyncio
    async def test_model_failure_falls_back(self):
        client = FakeChatClient([RuntimeError("network down")])
        orchestrator = RequirementsOrchestrator(client)

        result = await orchestrator.handle_turn(_turns("쇼핑몰"), 1, AnswerRecord())

        assert result.source == "fallback"
        assert "**이커머스** 프로젝트로 파악했습니다!" in result.response_text

    @pytest.mark.asyncio
    async def test_model_timeout_falls_back(self):
        client = FakeChatClient([TWO_PART], delay=0.5)
        orchestrator = RequirementsOrchestrator(client, llm_timeout=0.01)

        result = await orchestrator.handle_turn(_turns("쇼핑몰"), 1, AnswerRecord())

        assert result.source == "fallback"
        assert result.next_topic_index == 2

    @pytest.mark.asyncio
    async def test_unparseable_reply_is_split_by_lines(self):
        client = FakeChatClient(["a\nb\nc\nd\ne"])
        orchestrator = RequirementsOrchestrator(client)

        result = await orchestrator.handle_turn(_turns("앱"), 1, AnswerRecord())

        assert result.analysis_text == "a\nb\nc"
        assert result.question_text == "d\ne"

    @pytest.mark.asyncio
    async def test_feature_enrichment_replaces_parsed_features(self):
        client = FakeChatClient([ENRICHED, TWO_PART])
        orchestrator = RequirementsOrchestrator(client)
        answers = AnswerRecord(overview="중고 거래 플랫폼")

        result = await orchestrator.handle_turn(_turns("로그인, 채팅"), 3, answers)

        names = [item.name for item in result.answers.core_features]
        assert names == ["소셜 로그인", "상품 등록", "1:1 채팅", "위치 인증"]
        assert result.answer_update.field is TopicId.CORE_FEATURES
        assert [item.name for item in result.answer_update.value] == names
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_short_feature_list_keeps_parsed_features(self):
        too_short = json.dumps(
            [{"name": "a", "description": "x", "priority": "P1"}]
        )
        client = FakeChatClient([too_short, TWO_PART])
        orchestrator = RequirementsOrchestrator(client)

        result = await orchestrator.handle_turn(
            _turns("로그인, 채팅"), 3, AnswerRecord(overview="앱")
        )

        assert [item.name for item in result.answers.core_features] == ["로그인", "채팅"]
        assert result.source == "model"

    @pytest.mark.asyncio
    async def test_feature_model_error_keeps_every_parsed_feature(self):
        client = FakeChatClient([ConnectionError("down"), TWO_PART])
        orchestrator = RequirementsOrchestrator(client)

        result = await orchestrator.handle_turn(
            _turns("로그인, 결제, 채팅, 검색, 지도"), 3, AnswerRecord(overview="앱")
        )

        features = result.answers.core_features
        assert [item.name for item in features] == ["로그인", "결제", "채팅", "검색", "지도"]
        assert [item.priority.value for item in features] == ["P1", "P1", "P2", "P2", "P3"]
        assert result.answer_update.value == features
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_blank_model_question_keeps_the_deterministic_one(self):
        blank_question = json.dumps(
            {"analysis": "좋은 답변입니다.", "question": ""}, ensure_ascii=False
        )
        client = FakeChatClient([blank_question])
        orchestrator = RequirementsOrchestrator(client)

        result = await orchestrator.handle_turn(_turns("쇼핑몰"), 1, AnswerRecord())

        assert result.analysis_text == "좋은 답변입니다."
        assert result.question_text.startswith("**타겟 사용자** (2/7)")
        assert "{" not in result.response_text
        assert result.source == "model"

    @pytest.mark.asyncio
    async def test_feature_selection_is_not_enriched(self):
        client = FakeChatClient([TWO_PART])
        orchestrator = RequirementsOrchestrator(client)

        result = await orchestrator.handle_turn(
            _turns('[{"name": "채팅", "category": "must"}]'), 3, AnswerRecord(overview="앱")
        )

        assert len(client.calls) == 1
        assert result.answers.core_features[0].name == "채팅"

    @pytest.mark.asyncio
    async def test_finalize_and_rejected_skip_never_call_the_model(self):
        client = FakeChatClient()
        orchestrator = RequirementsOrchestrator(client)

        finalized = await orchestrator.handle_turn(
            _turns("바로 RFP 생성하기"), 2, AnswerRecord(overview="앱")
        )
        rejected = await orchestrator.handle_turn(_turns("건너뛰기"), 1, AnswerRecord())

        assert client.calls == []
        assert finalized.completed
        assert finalized.progress == 100
        assert finalized.can_complete
        assert rejected.next_topic_index == 1

    @pytest.mark.asyncio
    async def test_history_window_limits_context(self):
        client = FakeChatClient([TWO_PART])
        orchestrator = RequirementsOrchestrator(client, history_window=2)
        history = _turns("a", "b", "c", "d", "중고 거래 플랫폼")

        await orchestrator.handle_turn(history, 1, AnswerRecord())

        sent = client.calls[0]["messages"]
        assert len(sent) == 3
        assert sent[0].content == "d"
        assert client.calls[0]["system_prompt"]

    @pytest.mark.asyncio
    async def test_can_complete_after_three_topics(self, sample_features):
        orchestrator = RequirementsOrchestrator()
        answers = AnswerRecord(overview="앱", core_features=sample_features)

        result = await orchestrator.handle_turn(_turns("직장인"), 2, answers)

        assert result.can_complete
        assert result.progress == 43
        assert not result.completed


class TestDocuments:
    @pytest.mark.asyncio
    async def test_template_document_without_model(self, sample_answers):
        stamp = datetime(2025, 1, 15)
        document = await RequirementsOrchestrator().generate_document(
            sample_answers, generated_at=stamp
        )
        assert document.source == "template"
        assert document.text.startswith("# 중고 거래 플랫폼 RFP")

    @pytest.mark.asyncio
    async def test_model_document(self, sample_answers):
        client = FakeChatClient(["  # 모델 RFP\n본문  "])
        document = await RequirementsOrchestrator(client).generate_document(sample_answers)

        assert document.source == "model"
        assert document.text == "# 모델 RFP\n본문\n"

    @pytest.mark.asyncio
    async def test_model_document_failure_uses_template(self, sample_answers):
        client = FakeChatClient([asyncio.TimeoutError()])
        document = await RequirementsOrchestrator(client).generate_document(sample_answers)
        assert document.source == "template"

    @pytest.mark.asyncio
    async def test_regenerate_section(self, sample_answers):
        assert await RequirementsOrchestrator().regenerate_section(
            "참고 서비스", "", sample_answers
        ) is None

        client = FakeChatClient(["\n새 섹션\n"])
        content = await RequirementsOrchestrator(client).regenerate_section(
            "참고 서비스", "기존", sample_answers
        )
        assert content == "새 섹션"


class TestAnalyzeDocument:
    @pytest.mark.asyncio
    async def test_short_document_is_rejected(self):
        with pytest.raises(ValueError):
            await RequirementsOrchestrator().analyze_document("너무 짧음")

    @pytest.mark.asyncio
    async def test_fallback_uses_text_as_overview(self):
        text = "가" * 1500
        analysis = await RequirementsOrchestrator().analyze_document(text)

        assert analysis.source == "fallback"
        assert analysis.answers.overview == "가" * 1000

    @pytest.mark.asyncio
    async def test_model_analysis(self):
        payload = {
            "overview": "사내 근태 관리 시스템",
            "coreFeatures": [
                {"name": "출퇴근 기록", "description": "GPS", "priority": "P1"}
            ],
            "summary": "근태 관리",
        }
        client = FakeChatClient([json.dumps(payload, ensure_ascii=False)])

        analysis = await RequirementsOrchestrator(client).analyze_document(
            "근태 관리 시스템 기획서입니다. 출퇴근 기록과 휴가 신청이 필요합니다."
        )

        assert analysis.source == "model"
        assert analysis.summary == "근태 관리"
        assert analysis.answers.core_features[0].name == "출퇴근 기록"
        assert len(client.calls) == 1
