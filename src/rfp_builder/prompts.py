"""Prompt templates for every language-model call made by the service."""

from __future__ import annotations

from string import Template
from typing import Optional

from .models import AnswerRecord
from .topics import TOPIC_COUNT, Topic

SYSTEM_PROMPT = (
    "당신은 13년 경력의 IT 외주 프로젝트 컨설턴트입니다. 발주사가 개발사에 바로 "
    "전달할 수 있는 RFP(제안요청서)를 작성하도록 돕습니다. 항상 한국어로, "
    "구체적인 수치와 실무 팁을 담아 간결하게 답변합니다."
)

FEATURE_PROMPT = Template(
    """
아래 프로젝트 개요를 분석해 필요한 기능 목록을 제안하세요.

프로젝트 개요:
<<<
$overview
>>>

사용자가 직접 언급한 기능: $mentioned

규칙:
- 8~15개 기능을 제안합니다.
- 사용자가 언급한 기능은 반드시 포함합니다.
- priority는 "P1"(MVP 필수), "P2"(중요), "P3"(부가) 중 하나입니다.
- description은 한 문장으로 구체적으로 작성합니다.

JSON 배열만 출력하세요. 다른 텍스트나 마크다운 코드 블록은 금지합니다.
[{"name": string, "description": string, "priority": "P1" | "P2" | "P3"}]
""".strip()
)

CONVERSATION_PROMPT = Template(
    """
지금까지의 대화를 바탕으로 사용자의 마지막 답변을 분석하고 다음 질문을 작성하세요.

현재 주제: $current_topic
다음 주제: $next_topic ($next_index/$topic_count)
$feature_note
지금까지 수집된 정보:
$collected

JSON 객체만 출력하세요. 다른 텍스트는 금지합니다.
{"analysis": "마지막 답변에 대한 전문가 분석 (2~4문장, 수치 포함)", "question": "다음 주제에 대한 질문 1개"}
""".strip()
)

FEATURE_NOTE = "방금 기능 목록을 생성했습니다. 분석에서 우선순위 구성을 짧게 평가하세요.\n"

DOCUMENT_PROMPT = Template(
    """
아래 수집 정보로 개발사에 바로 전달할 수 있는 전문 RFP 문서를 마크다운으로 작성하세요.

수집 정보:
$collected

반드시 다음 순서의 섹션을 포함합니다:
1. 요약 2. 프로젝트 개요 3. 타겟 사용자 4. 기능 요구사항(P1/P2/P3, 기능별 복잡도·기간·수락 기준)
5. 참고 서비스 6. 기술 요구사항 7. 디자인 요구사항 8. 일정 및 예산(6단계 마일스톤)
9. 추가 요구사항 10. 단계별 로드맵 11. 예산 최적화 팁 12. 리스크 매트릭스
13. 개발사 선정 가이드 14. 계약 체크리스트

입력되지 않은 항목은 "미입력"으로 표시하고 임의로 지어내지 마세요.
""".strip()
)

SECTION_PROMPT = Template(
    """
RFP 문서의 한 섹션을 더 전문적이고 구체적으로 다시 작성하세요.

섹션 제목: $section_title

현재 내용:
<<<
$current_content
>>>

프로젝트 정보:
$collected

섹션 본문만 마크다운으로 출력하세요. 제목은 반복하지 마세요.
""".strip()
)

ANALYSIS_PROMPT = Template(
    """
아래 기획 문서에서 RFP 항목을 추출하세요.

문서:
<<<
$document
>>>

JSON 객체만 출력하세요. 문서에 없는 항목은 빈 문자열 또는 빈 배열로 둡니다.
{
  "overview": string,
  "targetUsers": string,
  "coreFeatures": [{"name": string, "description": string, "priority": "P1" | "P2" | "P3"}],
  "referenceServices": string,
  "techRequirements": string,
  "budgetTimeline": string,
  "additionalRequirements": string,
  "summary": string
}
""".strip()
)


def describe_answers(answers: AnswerRecord) -> str:
    """Flatten the record into prompt-friendly bullet lines."""

    lines = [
        f"- 프로젝트 개요: {answers.overview or '미입력'}",
        f"- 타겟 사용자: {answers.target_users or '미입력'}",
    ]
    if answers.core_features:
        lines.append("- 핵심 기능:")
        lines.extend(
            f"  - [{item.priority.value}] {item.name}: {item.description}"
            for item in answers.core_features
        )
    else:
        lines.append("- 핵심 기능: 미입력")
    lines += [
        f"- 참고 서비스: {answers.reference_services or '미입력'}",
        f"- 기술 요구사항: {answers.tech_requirements or '미입력'}",
        f"- 예산/일정: {answers.budget_timeline or '미입력'}",
        f"- 추가 요구사항: {answers.additional_requirements or '미입력'}",
    ]
    return "\n".join(lines)


def build_feature_prompt(overview: str, mentioned: str) -> str:
    return FEATURE_PROMPT.substitute(
        overview=overview or "미입력",
        mentioned=mentioned or "없음",
    )


def build_conversation_prompt(
    *,
    current_topic: Optional[Topic],
    next_topic: Optional[Topic],
    answers: AnswerRecord,
    features_generated: bool,
) -> str:
    return CONVERSATION_PROMPT.substitute(
        current_topic=current_topic.label if current_topic else "없음",
        next_topic=next_topic.label if next_topic else "완료",
        next_index=next_topic.order_index if next_topic else TOPIC_COUNT,
        topic_count=TOPIC_COUNT,
        feature_note=FEATURE_NOTE if features_generated else "",
        collected=describe_answers(answers),
    )


def build_document_prompt(answers: AnswerRecord) -> str:
    return DOCUMENT_PROMPT.substitute(collected=describe_answers(answers))


def build_section_prompt(
    section_title: str,
    current_content: str,
    answers: AnswerRecord,
) -> str:
    return SECTION_PROMPT.substitute(
        section_title=section_title,
        current_content=current_content,
        collected=describe_answers(answers),
    )


def build_analysis_prompt(document: str) -> str:
    return ANALYSIS_PROMPT.substitute(document=document)
