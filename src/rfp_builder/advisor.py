"""Deterministic consultant replies used when no model enrichment is available.

Every reply pairs feedback on the answer just given with the next topic's
question. The archetype is re-derived from the overview on each call.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .conversation import TurnOutcome
from .knowledge import (
    MATCHING_PLATFORM,
    MOBILE_APP,
    SAAS,
    UI_GUIDELINES,
    WEB_SERVICE,
    ProjectArchetype,
    classify_project,
    contains_keyword,
    detect_audience,
    match_feature,
)
from .models import AnswerRecord, FeatureItem
from .topics import SKIP_TOKEN, TOPIC_COUNT, Topic, TopicId, topic_at

MVP_FEATURE_LIMIT = 5

_MANWON_RE = re.compile(r"(\d[\d,]*)\s*만")
_CHEONMAN_RE = re.compile(r"(\d+(?:\.\d+)?)\s*천\s*만")
_EOK_RE = re.compile(r"(\d+(?:\.\d+)?)\s*억")


def _empty_replies() -> List[str]:
    return []


@dataclass(slots=True)
class AdvisorReply:
    """Deterministic reply split into feedback and the follow-up question."""

    analysis: str
    question: str
    quick_replies: List[str] = field(default_factory=_empty_replies)

    @property
    def text(self) -> str:
        if self.analysis and self.question:
            return f"{self.analysis}\n\n---\n\n{self.question}"
        return self.analysis or self.question


def bullet_list(lines: Sequence[str]) -> str:
    return "\n".join(f"▸ {line}" for line in lines)


def parse_budget_manwon(text: str) -> Optional[int]:
    """Read an amount such as ``3,000만원``, ``3천만원`` or ``1.5억`` in units of 만원."""
    eok = _EOK_RE.search(text)
    if eok:
        return int(float(eok.group(1)) * 10000)
    cheonman = _CHEONMAN_RE.search(text)
    if cheonman:
        return int(float(cheonman.group(1)) * 1000)
    manwon = _MANWON_RE.search(text)
    if manwon:
        digits = manwon.group(1).replace(",", "")
        return int(digits) if digits else None
    return None


def question_block(topic: Topic, answers: AnswerRecord) -> AdvisorReply:
    """Header plus archetype-aware wording for ``topic``."""
    archetype = classify_project(answers.overview)
    body, replies = _question_for(topic, archetype)
    header = f"**{topic.label}** ({topic.order_index}/{TOPIC_COUNT})"
    return AdvisorReply(analysis="", question=f"{header}\n{body}", quick_replies=replies)


def _question_for(
    topic: Topic,
    archetype: ProjectArchetype,
) -> Tuple[str, List[str]]:
    if topic.id is TopicId.OVERVIEW:
        return topic.question, []
    if topic.id is TopicId.TARGET_USERS:
        return archetype.target_question, list(archetype.target_quick_replies)
    if topic.id is TopicId.CORE_FEATURES:
        hint = ", ".join(archetype.key_features)
        return (
            f"가장 중요한 핵심 기능을 말씀해주세요. (3~5개 추천)\n"
            f"💡 이 유형에서 자주 포함되는 기능: {hint}",
            list(archetype.feature_quick_replies),
        )
    if topic.id is TopicId.REFERENCE_SERVICES:
        return (
            "비슷하게 만들고 싶은 서비스나 앱이 있나요?\n"
            "\"이 서비스의 이 부분처럼\" 식으로 말씀해주시면 개발사가 정확히 이해합니다.",
            [SKIP_TOKEN, "직접 입력할게요"],
        )
    if topic.id is TopicId.TECH_REQUIREMENTS:
        if archetype in (MOBILE_APP, MATCHING_PLATFORM):
            hint = "\n💡 이 프로젝트 유형에서는 모바일 앱이 일반적입니다."
        elif archetype in (WEB_SERVICE, SAAS):
            hint = "\n💡 이 프로젝트 유형에서는 웹 서비스가 가장 효율적입니다."
        else:
            hint = ""
        return (
            f"웹으로 만들까요, 앱으로 만들까요, 아니면 둘 다?{hint}",
            ["모바일 앱 (iOS/Android)", "웹 서비스", "웹 + 앱 둘 다", "아직 미정이에요"],
        )
    if topic.id is TopicId.BUDGET_TIMELINE:
        return (
            "예산 범위와 희망 완료 시점이 있으신가요? 대략적이어도 괜찮습니다.\n"
            f"💡 참고: {archetype.name} 프로젝트 평균 예산은 {archetype.typical_budget}, "
            f"기간은 {archetype.typical_duration}입니다.",
            ["1,000~3,000만원", "3,000~5,000만원", "5,000만원 이상", "아직 미정"],
        )
    return (
        "마지막으로, 개발사에 꼭 전달하고 싶은 사항이 있나요?\n"
        "(소스코드 소유권, 보안, 디자인 포함 여부, 유지보수 등)",
        ["소스코드 귀속 필요", "디자인 포함", "유지보수 계약 필요", SKIP_TOKEN],
    )


def feedback_for(topic: Topic, answers: AnswerRecord) -> AdvisorReply:
    """Consultant feedback on the stored answer for ``topic``."""
    archetype = classify_project(answers.overview)
    if topic.id is TopicId.OVERVIEW:
        return AdvisorReply(_overview_feedback(archetype), "")
    if topic.id is TopicId.TARGET_USERS:
        return AdvisorReply(_target_feedback(answers.target_users), "")
    if topic.id is TopicId.CORE_FEATURES:
        return _feature_feedback(answers.core_features, archetype)
    if topic.id is TopicId.REFERENCE_SERVICES:
        return AdvisorReply(_reference_feedback(answers.reference_services), "")
    if topic.id is TopicId.TECH_REQUIREMENTS:
        return AdvisorReply(_tech_feedback(answers.tech_requirements, archetype), "")
    if topic.id is TopicId.BUDGET_TIMELINE:
        return AdvisorReply(_budget_feedback(answers.budget_timeline, archetype), "")
    return AdvisorReply(_contract_checklist(), "")


def _overview_feedback(archetype: ProjectArchetype) -> str:
    return (
        f"**{archetype.name}** 프로젝트로 파악했습니다!\n\n"
        f"▸ **평균 예산**: {archetype.typical_budget}\n"
        f"▸ **평균 기간**: {archetype.typical_duration}\n"
        f"▸ **프로젝트 성공률**: {archetype.success_rate}\n"
        f"▸ **필수 기능**: {', '.join(archetype.must_have_features)}\n\n"
        "⚠️ **이 유형에서 가장 흔한 실수:**\n"
        f"{bullet_list(archetype.common_mistakes)}\n\n"
        f"💡 **전문가 팁:** {archetype.tech_tip}"
    )


def _target_feedback(target_users: str) -> str:
    audience = detect_audience(target_users)
    return (
        "타겟 사용자를 잘 파악하고 계시네요!\n\n"
        "📊 **타겟 맞춤 UI/UX 전략:**\n"
        f"{bullet_list(UI_GUIDELINES[audience])}\n\n"
        "💡 타겟 사용자의 기술 수준에 따라 개발 복잡도와 비용이 20~30% 차이날 수 있습니다."
    )


def missing_must_haves(
    features: Sequence[FeatureItem],
    archetype: ProjectArchetype,
) -> List[str]:
    """Must-have features of ``archetype`` that no submitted name resembles."""
    missing: List[str] = []
    for must in archetype.must_have_features:
        stem = must.split("(")[0].strip()
        covered = any(
            stem[:2] in item.name or item.name[:2] in stem for item in features
        )
        if not covered:
            missing.append(must)
    return missing


def _feature_feedback(
    features: Sequence[FeatureItem],
    archetype: ProjectArchetype,
) -> AdvisorReply:
    if not features:
        return AdvisorReply(
            "기능 목록을 읽지 못했어요. 쉼표나 줄바꿈으로 구분해 다시 알려주셔도 됩니다.",
            "",
        )
    lines: List[str] = []
    for item in features:
        profile = match_feature(item.name)
        line = f"▸ **[{item.priority.value}] {item.name}**"
        if profile is not None:
            line += (
                f"\n    서브기능: {', '.join(profile.sub_features[:3])}"
                f"\n    주의: {profile.considerations}"
            )
        lines.append(line)
    message = "핵심 기능을 분석했습니다!\n\n" + "\n".join(lines)
    if len(features) > MVP_FEATURE_LIMIT:
        message += (
            f"\n\n⚠️ **주의:** {len(features)}개 기능은 MVP로는 다소 많습니다. "
            "P1 기능만으로 먼저 출시하는 것을 추천합니다."
        )
    message += (
        "\n\n💡 **MVP 전략:** P1 기능만으로 먼저 출시 → 사용자 피드백 반영 → "
        "P2/P3 순차 추가"
    )
    missing = missing_must_haves(features, archetype)
    if missing:
        message += (
            "\n\n🔍 **누락 가능성 있는 기능:**\n"
            f"{bullet_list(missing)}\n"
            "필요하면 마지막 추가 요구사항에 적어주세요."
        )
    return AdvisorReply(message, "")


def _reference_feedback(reference: str) -> str:
    if len(reference.strip()) < 3:
        return (
            "참고 서비스가 없어도 충분합니다.\n\n"
            "💡 개발사 미팅 전에 경쟁 서비스 2~3개를 조사해 공유하면 소통 시간이 크게 줄어듭니다."
        )
    return (
        "좋은 벤치마크입니다!\n\n"
        "💡 참고 서비스를 개발사에 전달할 때 이렇게 구조화하면 견적 정확도가 올라갑니다:\n"
        "▸ **이 서비스처럼 할 부분**: 어떤 기능/디자인을 참고할 것인가\n"
        "▸ **우리는 다르게 할 부분**: 어떤 점을 차별화할 것인가\n"
        "▸ **빼도 되는 부분**: 필요 없는 기능"
    )


def _tech_feedback(tech: str, archetype: ProjectArchetype) -> str:
    is_app = any(
        contains_keyword(tech, keyword)
        for keyword in ("앱", "모바일", "ios", "안드로이드", "android")
    )
    is_web = any(contains_keyword(tech, keyword) for keyword in ("웹", "사이트"))
    is_both = (is_app and is_web) or any(
        contains_keyword(tech, keyword) for keyword in ("둘 다", "모두")
    )
    undecided = any(contains_keyword(tech, keyword) for keyword in ("미정", "모르"))

    if is_both:
        advice = (
            "웹+앱 동시 개발을 원하시는군요!\n\n"
            "▸ **방식 A (비용 최적화)**: React Native/Flutter로 하나의 코드베이스, 비용 30~40% 절감\n"
            "▸ **방식 B (품질 최적화)**: 반응형 웹 먼저 출시 → 시장 검증 후 네이티브 앱"
        )
    elif is_app:
        advice = (
            "모바일 앱 개발이군요!\n\n"
            "▸ **네이티브** (Swift/Kotlin): 최고 성능, 단 iOS/Android 각각 개발 → 비용 1.8~2배\n"
            "▸ **크로스플랫폼** (Flutter/React Native): 하나의 코드로 양쪽 → 비용 30~40% 절감"
        )
    elif is_web:
        advice = (
            "웹 서비스를 선택하셨군요!\n\n"
            "▸ **프레임워크**: Next.js가 현재 가장 검증된 선택입니다\n"
            "▸ **반응형 필수**: 모바일 트래픽이 70% 이상입니다\n\n"
            "💡 나중에 앱이 필요해지면 PWA로 저비용 전환이 가능합니다."
        )
    elif undecided:
        if archetype in (MOBILE_APP, MATCHING_PLATFORM):
            recommendation = "이 유형에서는 **모바일 앱(크로스플랫폼)**을 추천합니다."
        else:
            recommendation = "이 유형에서는 **반응형 웹 서비스**를 먼저 개발하는 것을 추천합니다."
        advice = f"아직 미정이시군요.\n\n💡 {recommendation}"
    else:
        advice = (
            "💡 특별한 기술 선호가 없다면 \"기술 스택은 개발사 추천에 따름\"으로 명시하면 "
            "더 다양한 견적을 받을 수 있습니다."
        )
    return f"기술 요구사항을 확인했습니다!\n\n{advice}"


def _budget_feedback(budget: str, archetype: ProjectArchetype) -> str:
    amount = parse_budget_manwon(budget)
    undecided = any(keyword in budget for keyword in ("미정", "모르", "아직"))
    # Any figure counts as a stated budget even when the amount is unreadable.
    if undecided or (amount is None and not re.search(r"\d", budget)):
        return (
            "예산이 아직 미정이시군요. 충분히 이해합니다!\n\n"
            "▸ 이 RFP로 최소 **3곳 이상** 견적을 비교하세요\n\n"
            f"📊 **{archetype.name} 프로젝트 참고 예산:**\n"
            f"▸ MVP(핵심만): {archetype.typical_budget}\n"
            "▸ 본격 서비스: 위 금액의 1.5~2배\n"
            f"▸ 기간: {archetype.typical_duration}"
        )
    message = (
        "예산과 일정을 확인했습니다!\n\n"
        "▸ 예상 예산의 **15~20% 여유분**을 반드시 확보하세요\n"
        "▸ 전체의 **10~15%**는 출시 후 버그 수정/개선에 예약\n"
        "▸ 결제는 **마일스톤별 분할** 추천: 착수금 30% → 중간 40% → 완료 30%"
    )
    if amount is not None and amount < archetype.budget_floor * 0.7:
        message += (
            f"\n\n⚠️ **주의:** 말씀하신 예산이 {archetype.name} 평균({archetype.typical_budget})보다 "
            "다소 낮습니다. MVP 범위를 최소화하거나 일부 기능을 2차 개발로 미루는 것을 권장합니다."
        )
    return message


def _contract_checklist() -> str:
    return (
        "모든 정보를 잘 정리했습니다!\n\n"
        "📋 **계약 전 필수 체크리스트:**\n"
        "▸ **소스코드 소유권**: 발주사 귀속 (계약서에 명시)\n"
        "▸ **하자보수**: 최소 3개월\n"
        "▸ **마일스톤 산출물**: 각 단계별 산출물 명확히\n"
        "▸ **추가 개발 단가**: 사전 합의\n"
        "▸ **중간 검수권**: 마일스톤별 검수 후 다음 단계 착수"
    )


COMPLETION_MESSAGE = (
    "모든 정보 수집이 완료되었습니다!\n\n"
    "지금까지의 답변으로 기능별 상세 분석, MVP 로드맵, 리스크 매트릭스, "
    "개발사 선정 가이드, 계약 체크리스트가 포함된 RFP 문서를 생성합니다."
)

FINALIZE_MESSAGE = (
    "지금까지 답변하신 내용으로 바로 RFP를 생성합니다. "
    "입력하지 않은 항목은 '미입력'으로 표시됩니다."
)


def compose_reply(outcome: TurnOutcome) -> AdvisorReply:
    """Deterministic reply for a state-machine outcome."""

    answers = outcome.answers
    if outcome.finalize_requested:
        return AdvisorReply(FINALIZE_MESSAGE, "")
    if outcome.skip_rejected and outcome.topic is not None:
        repeat = question_block(outcome.topic, answers)
        note = (
            f"**{outcome.topic.label}** 항목은 RFP에 꼭 필요해서 건너뛸 수 없어요. "
            "짧게라도 답변해주세요."
        )
        return AdvisorReply(note, repeat.question, repeat.quick_replies)

    if outcome.skipped:
        feedback = AdvisorReply("건너뛸게요!", "")
    elif outcome.topic is not None:
        feedback = feedback_for(outcome.topic, answers)
    else:
        feedback = AdvisorReply("", "")

    if outcome.completed:
        analysis = "\n\n".join(
            part for part in (feedback.analysis, COMPLETION_MESSAGE) if part
        )
        return AdvisorReply(analysis, "")

    next_topic = topic_at(outcome.next_topic_index)
    if next_topic is None:
        return feedback
    follow_up = question_block(next_topic, answers)
    return AdvisorReply(
        feedback.analysis,
        follow_up.question,
        follow_up.quick_replies,
    )


def opening_message() -> str:
    first = topic_at(1)
    assert first is not None
    return (
        "안녕하세요! 몇 가지 질문으로 개발사에 바로 전달할 수 있는 RFP를 함께 만들어볼게요.\n\n"
        f"{question_block(first, AnswerRecord()).question}"
    )
