"""Deterministic document assembly: estimates, sections and purity."""

import re
from datetime import datetime

import pytest

from rfp_builder.document import (
    DurationEstimate,
    aggregate_duration,
    analyze_features,
    assemble_document,
    build_milestones,
    complexity_bucket,
    project_title,
    total_complexity,
)
from rfp_builder.models import AnswerRecord, FeatureItem, Priority
from rfp_builder.topics import TopicId

STAMP = datetime(2025, 1, 15, 10, 30)

SECTION_HEADINGS = [
    "## 1. 요약 (Executive Summary)",
    "## 2. 프로젝트 개요",
    "## 3. 타겟 사용자",
    "## 4. 기능 요구사항",
    "## 5. 참고 서비스",
    "## 6. 기술 요구사항",
    "## 7. 디자인 요구사항",
    "## 8. 일정 및 예산",
    "## 9. 추가 요구사항",
    "## 10. 단계별 로드맵",
    "## 11. 예산 최적화 팁",
    "## 12. 리스크 매트릭스",
    "## 13. 개발사 선정 가이드",
    "## 14. 계약 체크리스트",
]


class TestEstimates:
    def test_marketplace_scenario(self, sample_features):
        analyses = analyze_features(sample_features)

        assert total_complexity(analyses) == 10
        assert complexity_bucket(10) == "중간~높음"
        duration = aggregate_duration(analyses)
        assert (duration.low_weeks, duration.high_weeks) == (4, 7)
        assert duration.label == "4~7주"

    def test_unknown_feature_uses_generic_profile(self):
        analyses = analyze_features(
            [FeatureItem(name="사진 편집", description="사진 편집", priority=Priority.P1)]
        )

        assert not analyses[0].matched
        assert analyses[0].profile.complexity == 3
        assert analyses[0].profile.weeks == (2, 3)

    def test_duration_floors(self):
        duration = aggregate_duration([])
        assert (duration.low_weeks, duration.high_weeks) == (4, 6)

    def test_duration_scales_with_feature_count(self):
        features = [
            FeatureItem(name=name, description=name, priority=Priority.P2)
            for name in ("결제", "채팅", "관리자", "AI 추천", "지도")
        ]
        duration = aggregate_duration(analyze_features(features))
        # low: 2+2+2+2+1 = 9 -> ceil(5.4) = 6; high: 3+4+4+4+2 = 17 -> ceil(11.9) = 12
        assert (duration.low_weeks, duration.high_weeks) == (6, 12)

    @pytest.mark.parametrize(
        "total, label",
        [
            (0, "보통"),
            (3, "보통"),
            (4, "중간"),
            (7, "중간"),
            (8, "중간~높음"),
            (14, "중간~높음"),
            (15, "높음"),
        ],
    )
    def test_complexity_tiers(self, total, label):
        assert complexity_bucket(total) == label

    def test_milestones_follow_duration(self):
        milestones = build_milestones(DurationEstimate(low_weeks=4, high_weeks=7))

        assert [m.order for m in milestones] == [1, 2, 3, 4, 5, 6]
        assert milestones[2].weeks == "2~4주"
        assert milestones[3].weeks == "1~2주"


class TestProjectTitle:
    def test_first_line_of_overview(self):
        assert project_title("중고 거래 플랫폼\n대학생 대상") == "중고 거래 플랫폼"

    def test_long_overview_is_truncated(self):
        title = project_title("가" * 60)
        assert title == "가" * 40 + "…"

    def test_empty_overview(self):
        assert project_title("   ") == "신규 프로젝트"


class TestAssembleDocument:
    def test_all_sections_in_order(self, sample_answers):
        text = assemble_document(sample_answers, generated_at=STAMP).text

        positions = [text.index(heading) for heading in SECTION_HEADINGS]
        assert positions == sorted(positions)
        assert text.startswith("# 중고 거래 플랫폼 RFP (제안요청서)\n")
        assert "작성일: 2025-01-15" in text

    def test_summary_table(self, sample_answers):
        text = assemble_document(sample_answers, generated_at=STAMP).text

        assert "| 프로젝트 유형 | 플랫폼 |" in text
        assert "| 핵심 기능 | 3개 (P1 2개) |" in text
        assert "| 예상 개발 기간 | 4~7주 |" in text
        assert "| 기술 복잡도 | 중간~높음 (합계 10점) |" in text

    def test_priority_tiers_and_feature_details(self, sample_answers):
        text = assemble_document(sample_answers, generated_at=STAMP).text

        assert "### P1 필수 기능 (MVP)" in text
        assert "#### 로그인" in text
        assert "- 복잡도: ★★★★☆ (4/5)" in text
        p3_block = text.split("### P3 부가 기능")[1].split("## 5.")[0]
        assert "- 해당 없음" in p3_block
        assert "- 1단계 MVP: 로그인, 결제" in text

    def test_payment_feature_adds_compliance_section(self, sample_answers):
        text = assemble_document(sample_answers, generated_at=STAMP).text
        assert "### 결제 연동 및 컴플라이언스" in text

        without_payment = sample_answers.with_answer(
            TopicId.CORE_FEATURES,
            [item for item in sample_answers.core_features if item.name != "결제"],
        )
        text = assemble_document(without_payment, generated_at=STAMP).text
        assert "결제 연동 및 컴플라이언스" not in text

    def test_unmatched_feature_is_marked_as_estimate(self):
        answers = AnswerRecord(
            overview="사진 앱",
            core_features=[
                FeatureItem(name="사진 편집", description="필터 적용", priority=Priority.P1)
            ],
        )
        text = assemble_document(answers, generated_at=STAMP).text

        assert "- 설명: 필터 적용" in text
        assert "- 예상 기간: 2~3주(추정)" in text

    def test_pipes_in_user_text_are_escaped_in_tables(self):
        answers = AnswerRecord(
            overview="재고 관리 SaaS",
            core_features=[
                FeatureItem(name="입고|출고 관리", description="재고 흐름", priority=Priority.P1)
            ],
            budget_timeline="3,000만원 | 4개월",
        )
        text = assemble_document(answers, generated_at=STAMP).text

        row = next(line for line in text.splitlines() if line.startswith("| 입고"))
        assert row.startswith("| 입고\\|출고 관리 | P1 |")
        assert len(re.split(r"(?<!\\)\|", row)) == 6
        assert "| 예산 | 3,000만원 \\| 4개월 |" in text

    def test_empty_record_degrades_to_placeholders(self):
        text = assemble_document(AnswerRecord(), generated_at=STAMP).text

        assert text.startswith("# 신규 프로젝트 RFP (제안요청서)")
        for heading in SECTION_HEADINGS:
            assert heading in text
        assert "미입력" in text
        assert "이 유형에서 일반적으로 포함되는 기능:" in text
        assert "참고 서비스가 제시되지 않았습니다." in text
        assert "| 프로젝트 유형 | 웹 서비스 |" in text

    def test_design_section_follows_audience(self):
        answers = AnswerRecord(overview="건강 앱", target_users="70대 어르신")
        text = assemble_document(answers, generated_at=STAMP).text
        assert "최소 16px 폰트" in text

    def test_same_input_renders_same_text(self, sample_answers):
        first = assemble_document(sample_answers, generated_at=STAMP)
        second = assemble_document(sample_answers, generated_at=STAMP)

        assert first.text == second.text
        assert first.source == "template"
        assert first.generated_at == STAMP
