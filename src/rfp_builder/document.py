"""Deterministic requirements-document assembly.

``assemble_document`` is pure: the same ``AnswerRecord`` and timestamp
always render the same text. Empty answers degrade to placeholders.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from .knowledge import (
    GENERIC_FEATURE,
    UI_GUIDELINES,
    FeatureProfile,
    ProjectArchetype,
    classify_project,
    detect_audience,
    is_payment_feature,
    match_feature,
)
from .models import AnswerRecord, FeatureItem, GeneratedDocument, Priority

UNSPECIFIED = "미입력"
TITLE_LIMIT = 40

LOW_PARALLEL_FACTOR = 0.6
HIGH_PARALLEL_FACTOR = 0.7
MIN_LOW_WEEKS = 4
MIN_HIGH_WEEKS = 6

# Upper bound (inclusive) of each complexity tier; anything above is "높음".
COMPLEXITY_TIERS = ((3, "보통"), (7, "중간"), (14, "중간~높음"))
TOP_COMPLEXITY_TIER = "높음"

PRIORITY_TITLES = {
    Priority.P1: "P1 필수 기능 (MVP)",
    Priority.P2: "P2 중요 기능",
    Priority.P3: "P3 부가 기능",
}


@dataclass(frozen=True, slots=True)
class FeatureAnalysis:
    item: FeatureItem
    profile: FeatureProfile
    matched: bool


@dataclass(frozen=True, slots=True)
class DurationEstimate:
    low_weeks: int
    high_weeks: int

    @property
    def label(self) -> str:
        return f"{self.low_weeks}~{self.high_weeks}주"


@dataclass(frozen=True, slots=True)
class Milestone:
    order: int
    name: str
    weeks: str
    deliverables: str


def analyze_features(features: Sequence[FeatureItem]) -> List[FeatureAnalysis]:
    analyses: List[FeatureAnalysis] = []
    for item in features:
        profile = match_feature(item.name)
        analyses.append(
            FeatureAnalysis(
                item=item,
                profile=profile or GENERIC_FEATURE,
                matched=profile is not None,
            )
        )
    return analyses


def aggregate_duration(analyses: Sequence[FeatureAnalysis]) -> DurationEstimate:
    """Sum per-feature weeks and discount for parallel work.

    Lower bound ``ceil(sum * 0.6)`` floored at 4 weeks, upper bound
    ``ceil(sum * 0.7)`` floored at 6 weeks.
    """

    low_total = sum(analysis.profile.weeks[0] for analysis in analyses)
    high_total = sum(analysis.profile.weeks[1] for analysis in analyses)
    low = max(MIN_LOW_WEEKS, math.ceil(low_total * LOW_PARALLEL_FACTOR))
    high = max(MIN_HIGH_WEEKS, math.ceil(high_total * HIGH_PARALLEL_FACTOR))
    return DurationEstimate(low_weeks=low, high_weeks=max(low, high))


def total_complexity(analyses: Sequence[FeatureAnalysis]) -> int:
    return sum(analysis.profile.complexity for analysis in analyses)


def complexity_bucket(total: int) -> str:
    for upper, label in COMPLEXITY_TIERS:
        if total <= upper:
            return label
    return TOP_COMPLEXITY_TIER


def build_milestones(duration: DurationEstimate) -> List[Milestone]:
    """Six delivery milestones; the two build phases follow ``duration``."""

    core_low = max(2, math.ceil(duration.low_weeks * 0.5))
    core_high = max(core_low + 1, math.ceil(duration.high_weeks * 0.5))
    extra_low = max(1, duration.low_weeks - core_low - 1)
    extra_high = max(extra_low + 1, duration.high_weeks - core_high - 2)
    return [
        Milestone(1, "요구사항 정의 및 기획", "1~2주", "요구사항 정의서, 화면 목록, IA"),
        Milestone(2, "UI/UX 디자인", "2~3주", "와이어프레임, 디자인 시안, 디자인 시스템"),
        Milestone(
            3,
            "핵심 기능 개발 (P1)",
            f"{core_low}~{core_high}주",
            "P1 기능 구현, API 명세서, 중간 시연",
        ),
        Milestone(
            4,
            "확장 기능 개발 및 통합 (P2/P3)",
            f"{extra_low}~{extra_high}주",
            "P2/P3 기능 구현, 외부 서비스 연동",
        ),
        Milestone(5, "QA 및 테스트", "1~2주", "테스트 시나리오, 결함 리포트, 수정 완료"),
        Milestone(6, "배포 및 안정화", "1주", "운영 배포, 소스코드 및 산출물 인계"),
    ]


def project_title(overview: str) -> str:
    first_line = overview.strip().splitlines()[0].strip() if overview.strip() else ""
    if not first_line:
        return "신규 프로젝트"
    if len(first_line) > TITLE_LIMIT:
        return first_line[:TITLE_LIMIT].rstrip() + "…"
    return first_line


def _or_unspecified(value: str) -> str:
    stripped = value.strip()
    return stripped if stripped else UNSPECIFIED


def _bullets(lines: Sequence[str]) -> List[str]:
    return [f"- {line}" for line in lines]


def assemble_document(
    answers: AnswerRecord,
    *,
    generated_at: Optional[datetime] = None,
) -> GeneratedDocument:
    """Render the full RFP for ``answers`` without any model involvement."""

    stamp = generated_at or datetime.now()
    archetype = classify_project(answers.overview)
    analyses = analyze_features(answers.core_features)
    duration = aggregate_duration(analyses)
    complexity = total_complexity(analyses)

    lines: List[str] = [
        f"# {project_title(answers.overview)} RFP (제안요청서)",
        "",
        f"작성일: {stamp.strftime('%Y-%m-%d')}",
        "",
    ]
    lines += _executive_summary(answers, archetype, analyses, duration, complexity)
    lines += _overview_section(answers, archetype)
    lines += _target_section(answers)
    lines += _feature_section(analyses, archetype)
    lines += _reference_section(answers)
    lines += _tech_section(answers, archetype, analyses)
    lines += _design_section(answers)
    lines += _schedule_section(answers, archetype, duration)
    lines += _additional_section(answers)
    lines += _roadmap_section(analyses)
    lines += _budget_tips_section()
    lines += _risk_section(archetype, analyses)
    lines += _vendor_section(archetype)
    lines += _contract_section()
    text = "\n".join(lines).rstrip() + "\n"
    return GeneratedDocument(text=text, generated_at=stamp, source="template")


def _executive_summary(
    answers: AnswerRecord,
    archetype: ProjectArchetype,
    analyses: Sequence[FeatureAnalysis],
    duration: DurationEstimate,
    complexity: int,
) -> List[str]:
    p1_count = sum(1 for analysis in analyses if analysis.item.priority is Priority.P1)
    budget = answers.budget_timeline.strip() or f"{archetype.typical_budget} (유형 평균)"
    return [
        "## 1. 요약 (Executive Summary)",
        "",
        "| 항목 | 내용 |",
        "|---|---|",
        f"| 프로젝트 유형 | {archetype.name} |",
        f"| 핵심 기능 | {len(analyses)}개 (P1 {p1_count}개) |",
        f"| 예상 개발 기간 | {duration.label} |",
        f"| 예산 | {_cell(budget)} |",
        f"| 기술 복잡도 | {complexity_bucket(complexity)} (합계 {complexity}점) |",
        "",
    ]


def _single_line(value: str) -> str:
    return " ".join(value.split())


def _cell(value: str) -> str:
    """Flatten ``value`` for a Markdown table cell."""
    return _single_line(value).replace("|", "\\|")


def _overview_section(answers: AnswerRecord, archetype: ProjectArchetype) -> List[str]:
    return [
        "## 2. 프로젝트 개요",
        "",
        _or_unspecified(answers.overview),
        "",
        f"- 프로젝트 유형: {archetype.name}",
        f"- 유형 평균 예산: {archetype.typical_budget}",
        f"- 유형 평균 기간: {archetype.typical_duration}",
        f"- 시장 인사이트: {archetype.market_insight}",
        "",
    ]


def _target_section(answers: AnswerRecord) -> List[str]:
    return [
        "## 3. 타겟 사용자",
        "",
        _or_unspecified(answers.target_users),
        "",
    ]


def _feature_section(
    analyses: Sequence[FeatureAnalysis],
    archetype: ProjectArchetype,
) -> List[str]:
    lines = ["## 4. 기능 요구사항", ""]
    if not analyses:
        lines += [UNSPECIFIED, "", "이 유형에서 일반적으로 포함되는 기능:"]
        lines += _bullets(archetype.key_features)
        lines.append("")
        return lines

    lines += [
        "| 기능 | 우선순위 | 복잡도 | 예상 기간 |",
        "|---|---|---|---|",
    ]
    for analysis in analyses:
        profile = analysis.profile
        lines.append(
            f"| {_cell(analysis.item.name)} | {analysis.item.priority.value} | "
            f"{profile.stars} | {profile.weeks_label} |"
        )
    lines.append("")

    for priority in Priority:
        tier = [a for a in analyses if a.item.priority is priority]
        lines += [f"### {PRIORITY_TITLES[priority]}", ""]
        if not tier:
            lines += ["- 해당 없음", ""]
            continue
        for analysis in tier:
            lines += _feature_detail(analysis)
    return lines


def _feature_detail(analysis: FeatureAnalysis) -> List[str]:
    item = analysis.item
    profile = analysis.profile
    description = item.description if item.description != item.name else profile.summary
    estimate = profile.weeks_label if analysis.matched else f"{profile.weeks_label}(추정)"
    lines = [
        f"#### {item.name}",
        "",
        f"- 설명: {description}",
        f"- 복잡도: {profile.stars} ({profile.complexity}/5)",
        f"- 예상 기간: {estimate}",
        "- 세부 기능:",
    ]
    lines += [f"  - {sub}" for sub in profile.sub_features]
    lines += [
        f"- 구현 고려사항: {profile.considerations}",
        f"- 수락 기준: {profile.acceptance}",
        "",
    ]
    return lines


def _reference_section(answers: AnswerRecord) -> List[str]:
    lines = ["## 5. 참고 서비스", ""]
    reference = answers.reference_services.strip()
    if reference:
        lines += [
            reference,
            "",
            "벤치마킹 가이드:",
            "- 참고할 부분: 위 서비스에서 그대로 가져올 기능과 화면 흐름",
            "- 차별화할 부분: 우리 서비스만의 핵심 가치와 다르게 설계할 요소",
            "- 제외할 부분: MVP 범위에서 필요 없는 기능",
            "",
        ]
    else:
        lines += [
            "참고 서비스가 제시되지 않았습니다.",
            "",
            "- 개발사 미팅 전 경쟁 서비스 2~3개를 조사해 공유하면 견적 정확도가 높아집니다.",
            "- 개발사에 유사 프로젝트 포트폴리오를 요청해 기준으로 삼으세요.",
            "",
        ]
    return lines


def _tech_section(
    answers: AnswerRecord,
    archetype: ProjectArchetype,
    analyses: Sequence[FeatureAnalysis],
) -> List[str]:
    lines = [
        "## 6. 기술 요구사항",
        "",
        _or_unspecified(answers.tech_requirements),
        "",
        "권장 기술 조합:",
    ]
    lines += _bullets(archetype.tech_stack)
    lines += ["", f"전문가 팁: {archetype.tech_tip}", ""]
    if any(is_payment_feature(a.item.name) for a in analyses):
        lines += [
            "### 결제 연동 및 컴플라이언스",
            "",
            "- PG사(토스페이먼츠/이니시스 등) 가맹 심사 2~3주를 일정에 반영",
            "- 카드 정보는 저장하지 않고 PG 토큰/빌링키로만 처리",
            "- 전자상거래법에 따른 청약철회·환불 정책 고지",
            "- 결제·환불 내역 5년 보관 및 정산 대사 기능",
            "",
        ]
    return lines


def _design_section(answers: AnswerRecord) -> List[str]:
    audience = detect_audience(answers.target_users)
    lines = ["## 7. 디자인 요구사항", "", "UI 가이드라인:"]
    lines += _bullets(UI_GUIDELINES[audience])
    lines += [
        "- 디자인 시안 2종 이상 제시 후 선택",
        "- 디자인 시스템(컬러, 타이포그래피, 컴포넌트) 산출물 포함",
        "",
    ]
    return lines


def _schedule_section(
    answers: AnswerRecord,
    archetype: ProjectArchetype,
    duration: DurationEstimate,
) -> List[str]:
    lines = [
        "## 8. 일정 및 예산",
        "",
        f"- 희망 예산/일정: {_or_unspecified(answers.budget_timeline)}",
        f"- 유형 평균 예산: {archetype.typical_budget}",
        f"- 예상 개발 기간: {duration.label} (기능 병렬 개발 기준)",
        "",
        "| 단계 | 마일스톤 | 기간 | 산출물 |",
        "|---|---|---|---|",
    ]
    for milestone in build_milestones(duration):
        lines.append(
            f"| {milestone.order} | {milestone.name} | {milestone.weeks} | "
            f"{milestone.deliverables} |"
        )
    lines += [
        "",
        "대금 지급: 착수금 30% → 중간 검수 40% → 최종 완료 30%",
        "",
    ]
    return lines


def _additional_section(answers: AnswerRecord) -> List[str]:
    return [
        "## 9. 추가 요구사항",
        "",
        _or_unspecified(answers.additional_requirements),
        "",
    ]


def _roadmap_section(analyses: Sequence[FeatureAnalysis]) -> List[str]:
    def names(priority: Priority) -> str:
        tier = [a.item.name for a in analyses if a.item.priority is priority]
        return ", ".join(tier) if tier else "해당 없음"

    return [
        "## 10. 단계별 로드맵",
        "",
        f"- 1단계 MVP: {names(Priority.P1)}",
        f"- 2단계 고도화: {names(Priority.P2)}",
        f"- 3단계 확장: {names(Priority.P3)}",
        "",
        "MVP 출시 후 사용자 피드백을 반영해 다음 단계 범위를 확정합니다.",
        "",
    ]


def _budget_tips_section() -> List[str]:
    return [
        "## 11. 예산 최적화 팁",
        "",
        "- 예상 예산의 15~20%를 변경 요청 대비 여유분으로 확보",
        "- P1 기능만으로 먼저 출시하면 초기 비용을 40~60% 절감",
        "- 크로스플랫폼/오픈소스 활용으로 중복 개발 최소화",
        "- 출시 후 버그 수정/개선용으로 전체의 10~15% 예약",
        "",
    ]


def _risk_section(
    archetype: ProjectArchetype,
    analyses: Sequence[FeatureAnalysis],
) -> List[str]:
    lines = [
        "## 12. 리스크 매트릭스",
        "",
        "| 리스크 | 영향도 | 발생 가능성 | 대응 방안 |",
        "|---|---|---|---|",
    ]
    for risk in archetype.risks:
        lines.append(f"| {risk} | 높음 | 중간 | 착수 전 대응 전략 합의 |")
    seen: List[str] = []
    for analysis in analyses:
        profile = analysis.profile
        if not analysis.matched or profile.complexity < 4 or profile.key in seen:
            continue
        seen.append(profile.key)
        lines.append(
            f"| {_cell(analysis.item.name)}: {profile.considerations} | 중간 | 중간 | "
            "기술 검증(PoC) 선행 |"
        )
    lines += [
        "| 요구사항 변경(스코프 크리프) | 높음 | 높음 | 변경 요청 절차와 추가 단가 사전 합의 |",
        "",
    ]
    return lines


def _vendor_section(archetype: ProjectArchetype) -> List[str]:
    return [
        "## 13. 개발사 선정 가이드",
        "",
        f"- {archetype.name} 유사 프로젝트 포트폴리오 3건 이상 확인",
        "- 최소 3곳 이상 견적을 받아 마일스톤별 산출물 기준으로 비교",
        "- 최저가보다 커뮤니케이션 역량과 유지보수 체계를 우선 평가",
        "- PM 전담 여부와 주간 리포트 제공 여부 확인",
        "",
    ]


def _contract_section() -> List[str]:
    return [
        "## 14. 계약 체크리스트",
        "",
        "- [ ] 소스코드 및 산출물 소유권 발주사 귀속",
        "- [ ] 하자보수 기간 최소 3개월",
        "- [ ] 마일스톤별 산출물과 검수 기준 명시",
        "- [ ] 추가 개발 단가 사전 합의",
        "- [ ] 주 1회 이상 진행 리포트",
        "- [ ] 일정 지연 시 조치 조건",
        "",
    ]
