"""FastAPI surface for the RFP builder.

Run with ``python -m rfp_builder.api`` or ``rfp-builder serve``.
"""

from __future__ import annotations

import argparse
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import uvicorn
from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .config import DEFAULT_EMAIL_SENDER, AppSettings
from .document import project_title
from .mailer import RfpMailer, is_guest_address
from .models import AnswerRecord, ChatTurn, ConversationSession, coerce_turns
from .notifier import NotificationType, SlackNotifier
from .orchestrator import RequirementsOrchestrator, last_user_message
from .store import LeadRepository, new_record_id

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

CTA_TYPES = frozenset({"consultation", "partner"})


class MessagePayload(BaseModel):
    role: str
    content: str = ""


class ChatRequest(BaseModel):
    messages: List[MessagePayload] = Field(default_factory=list)
    currentTopicIndex: int = 1
    answers: Optional[Dict[str, Any]] = None


class GenerateRequest(BaseModel):
    answers: Optional[Dict[str, Any]] = None
    sessionId: Optional[str] = None
    leadId: Optional[str] = None


class RegenerateRequest(BaseModel):
    sectionTitle: str
    currentContent: str = ""
    answers: Optional[Dict[str, Any]] = None


class AnalyzeRequest(BaseModel):
    documentText: str = ""


class LeadRequest(BaseModel):
    step: str
    email: str = ""
    leadId: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None


class ConsultationRequest(BaseModel):
    ctaType: str = "consultation"
    name: str = ""
    email: str = ""
    phone: str = ""
    company: Optional[str] = None
    preferredTime: Optional[str] = None
    budgetRange: Optional[str] = None
    rfpSummary: Optional[str] = None


class CtaLeadRequest(BaseModel):
    email: str = ""
    phone: Optional[str] = None
    projectName: Optional[str] = None
    projectType: Optional[str] = None
    featureCount: Optional[int] = None
    sessionId: Optional[str] = None


class SessionRequest(BaseModel):
    sessionId: Optional[str] = None
    leadId: Optional[str] = None
    messages: List[MessagePayload] = Field(default_factory=list)
    currentTopicIndex: int = 1
    answers: Optional[Dict[str, Any]] = None
    completed: bool = False


class ShareRequest(BaseModel):
    document: str
    projectName: str = ""
    answers: Optional[Dict[str, Any]] = None


class RfpEmailRequest(BaseModel):
    email: str = ""
    rfpDocument: str = ""
    projectName: Optional[str] = None


def _is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value.strip()))


def _turns(messages: Sequence[MessagePayload]) -> List[ChatTurn]:
    return coerce_turns([message.model_dump() for message in messages])


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    orchestrator: Optional[RequirementsOrchestrator] = None,
    repository: Optional[LeadRepository] = None,
    notifier: Optional[SlackNotifier] = None,
    mailer: Optional[RfpMailer] = None,
    allow_origins: Sequence[str] | None = None,
) -> FastAPI:
    """Create the FastAPI app; collaborators default to ``settings``."""

    if orchestrator is None or repository is None or notifier is None:
        settings = settings or AppSettings.load()
        orchestrator = orchestrator or RequirementsOrchestrator.from_settings(settings)
        repository = repository or LeadRepository(
            settings.archive_log,
            settings.redis_url,
        )
        notifier = notifier or SlackNotifier(settings.slack_webhook_url)
    if mailer is None:
        if settings is not None:
            mailer = RfpMailer(settings.resend_api_key, settings.email_sender)
        else:
            mailer = RfpMailer(None, DEFAULT_EMAIL_SENDER)

    app = FastAPI(title="RFP Builder")

    origins = list(allow_origins) if allow_origins else ["*"]
    allow_credentials = origins != ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def notify_completed(lead_id: str, summary: str) -> None:
        lead = await run_in_threadpool(repository.load_lead, lead_id)
        await notifier.notify(
            NotificationType.RFP_COMPLETED,
            lead or {"id": lead_id},
            summary=summary,
        )

    @app.post("/chat")
    async def chat(request: ChatRequest) -> Dict[str, Any]:
        turns = _turns(request.messages)
        if not last_user_message(turns).strip():
            raise HTTPException(status_code=400, detail="메시지가 필요합니다.")
        result = await orchestrator.handle_turn(
            turns,
            request.currentTopicIndex,
            AnswerRecord.from_dict(request.answers),
        )
        logger.debug(
            "Chat turn: topic %s -> %s (%s)",
            request.currentTopicIndex,
            result.next_topic_index,
            result.source,
        )
        return result.to_dict()

    @app.post("/generate-rfp")
    async def generate_rfp(
        request: GenerateRequest,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, Any]:
        answers = AnswerRecord.from_dict(request.answers)
        document = await orchestrator.generate_document(answers)
        if request.leadId:
            background_tasks.add_task(
                notify_completed,
                request.leadId,
                project_title(answers.overview),
            )
        return {
            "document": document.text,
            "generatedAt": document.generated_at.isoformat(),
            "source": document.source,
            "sessionId": request.sessionId,
        }

    @app.post("/regenerate-section")
    async def regenerate_section(request: RegenerateRequest) -> Dict[str, str]:
        if not request.sectionTitle.strip():
            raise HTTPException(status_code=400, detail="섹션 제목이 필요합니다.")
        content = await orchestrator.regenerate_section(
            request.sectionTitle,
            request.currentContent,
            AnswerRecord.from_dict(request.answers),
        )
        if content is None:
            raise HTTPException(
                status_code=503,
                detail="섹션을 다시 생성할 수 없습니다. 잠시 후 다시 시도해주세요.",
            )
        return {"content": content}

    @app.post("/analyze-document")
    async def analyze_document(request: AnalyzeRequest) -> Dict[str, Any]:
        try:
            analysis = await orchestrator.analyze_document(request.documentText)
        except ValueError as exc:
            raise HTTPException(
                status_code=400,
                detail="문서 내용이 너무 짧습니다.",
            ) from exc
        return {
            "answers": analysis.answers.to_dict(),
            "summary": analysis.summary,
            "source": analysis.source,
        }

    @app.post("/lead")
    async def lead(
        request: LeadRequest,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, Any]:
        if request.step == "email":
            if not _is_valid_email(request.email):
                raise HTTPException(
                    status_code=400,
                    detail="유효한 이메일을 입력해주세요.",
                )
            lead_id = await run_in_threadpool(repository.upsert_lead, request.email)
            session_id = new_record_id("sess")
            background_tasks.add_task(
                repository.save_session,
                ConversationSession(),
                session_id=session_id,
                lead_id=lead_id,
            )
            background_tasks.add_task(
                notifier.notify,
                NotificationType.NEW_LEAD,
                {"email": request.email},
            )
            return {"leadId": lead_id, "sessionId": session_id}

        if request.step == "contact":
            name = (request.name or "").strip()
            phone = (request.phone or "").strip()
            if not name or not phone:
                raise HTTPException(
                    status_code=400,
                    detail="이름과 연락처를 입력해주세요.",
                )
            lead_id = request.leadId
            if not lead_id:
                if not _is_valid_email(request.email):
                    raise HTTPException(
                        status_code=400,
                        detail="유효한 이메일을 입력해주세요.",
                    )
                lead_id = await run_in_threadpool(repository.upsert_lead, request.email)
            record = await run_in_threadpool(
                repository.update_lead,
                lead_id,
                {
                    "name": name,
                    "phone": phone,
                    "company": request.company,
                    "status": "contact_captured",
                },
            )
            background_tasks.add_task(
                notifier.notify,
                NotificationType.RFP_COMPLETED,
                record,
            )
            return {"success": True, "leadId": lead_id}

        raise HTTPException(status_code=400, detail="알 수 없는 단계입니다.")

    @app.post("/consultation")
    async def consultation(
        request: ConsultationRequest,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, Any]:
        if request.ctaType not in CTA_TYPES:
            raise HTTPException(status_code=400, detail="알 수 없는 요청 유형입니다.")
        if not (request.name.strip() and request.email.strip() and request.phone.strip()):
            raise HTTPException(status_code=400, detail="필수 정보를 입력해주세요.")
        if not _is_valid_email(request.email):
            raise HTTPException(
                status_code=400,
                detail="유효한 이메일을 입력해주세요.",
            )
        fields = request.model_dump()
        request_id = await run_in_threadpool(repository.save_consultation, fields)
        background_tasks.add_task(
            notifier.notify,
            NotificationType.CONSULTATION_REQUEST,
            fields,
            summary=request.rfpSummary,
        )
        message = (
            "파트너 등록 요청이 접수되었습니다."
            if request.ctaType == "partner"
            else "상담 신청이 접수되었습니다. 24시간 내 연락드리겠습니다."
        )
        return {"success": True, "message": message, "requestId": request_id}

    @app.post("/cta-lead")
    async def cta_lead(
        request: CtaLeadRequest,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, Any]:
        if not _is_valid_email(request.email):
            raise HTTPException(
                status_code=400,
                detail="유효한 이메일을 입력해주세요.",
            )
        fields = request.model_dump()
        background_tasks.add_task(repository.save_cta_lead, fields)
        summary = request.projectName or None
        if summary and request.featureCount is not None:
            summary = f"{summary} (기능 {request.featureCount}개)"
        background_tasks.add_task(
            notifier.notify,
            NotificationType.CTA_LEAD,
            fields,
            summary=summary,
        )
        return {"success": True}

    @app.post("/session")
    async def save_session(
        request: SessionRequest,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, Any]:
        session = ConversationSession(
            messages=_turns(request.messages),
            current_topic_index=request.currentTopicIndex,
            answers=AnswerRecord.from_dict(request.answers),
            completed=request.completed,
        )
        session_id = request.sessionId or new_record_id("sess")
        background_tasks.add_task(
            repository.save_session,
            session,
            session_id=session_id,
            lead_id=request.leadId,
        )
        return {"success": True, "sessionId": session_id}

    @app.get("/session")
    async def load_session(id: str) -> Dict[str, Any]:  # noqa: A002
        record = await run_in_threadpool(repository.load_session, id)
        if record is None:
            return {"found": False}
        return {"found": True, **record}

    @app.post("/send-rfp-email")
    async def send_rfp_email(
        request: RfpEmailRequest,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, Any]:
        if not request.email.strip() or not request.rfpDocument.strip():
            raise HTTPException(
                status_code=400,
                detail="이메일과 RFP 문서가 필요합니다.",
            )
        if is_guest_address(request.email):
            return {"success": False, "reason": "guest"}
        if not _is_valid_email(request.email):
            raise HTTPException(
                status_code=400,
                detail="유효한 이메일을 입력해주세요.",
            )
        result = await mailer.send_document(
            request.email.strip(),
            request.rfpDocument,
            project_name=request.projectName,
        )
        background_tasks.add_task(
            repository.save_rfp_delivery,
            request.email.strip(),
            request.rfpDocument,
            project_name=request.projectName,
            method=result.method,
        )
        return result.to_dict()

    @app.post("/share")
    async def share(request: ShareRequest) -> Dict[str, str]:
        if not request.document.strip():
            raise HTTPException(status_code=400, detail="공유할 문서가 없습니다.")
        share_id = await run_in_threadpool(
            repository.save_shared_document,
            request.document,
            project_name=request.projectName,
            answers=request.answers,
        )
        return {"shareId": share_id}

    @app.get("/share/{share_id}")
    async def shared_document(share_id: str) -> Dict[str, Any]:
        record = await run_in_threadpool(repository.load_shared_document, share_id)
        if record is None:
            raise HTTPException(status_code=404, detail="문서를 찾을 수 없습니다.")
        return record

    @app.get("/health")
    async def health() -> Dict[str, Any]:  # pragma: no cover - liveness check
        return {"status": "ok", "model": orchestrator.model_enabled}

    return app


def run_server(
    settings: AppSettings,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    allow_origins: Sequence[str] | None = None,
    log_level: str = "info",
) -> None:
    """Start the FastAPI server."""

    app = create_app(settings, allow_origins=allow_origins)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def build_parser(parser: Optional[argparse.ArgumentParser] = None) -> argparse.ArgumentParser:
    parser = parser or argparse.ArgumentParser(
        prog="python -m rfp_builder.api",
        description="Launch the RFP builder as a FastAPI service.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the server (default: 8000).",
    )
    parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help="Optional CORS origin(s) to allow. Defaults to '*' if not provided.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc

    from .observability import configure_tracing

    configure_tracing(settings)
    run_server(
        settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
