"""Session driver that owns one conversation for its lifetime."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .advisor import opening_message
from .config import AppSettings
from .models import ChatTurn, ConversationSession, GeneratedDocument
from .orchestrator import ChatResult, RequirementsOrchestrator
from .store import LeadRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RfpSession:
    """Encapsulates the interview state for a single requirements run."""

    orchestrator: RequirementsOrchestrator
    state: ConversationSession = field(default_factory=ConversationSession)
    repository: Optional[LeadRepository] = None
    output_dir: Optional[Path] = None
    session_id: Optional[str] = None
    document: Optional[GeneratedDocument] = None
    document_path: Optional[Path] = None
    last_result: Optional[ChatResult] = None

    @classmethod
    def create(
        cls,
        settings: AppSettings,
        *,
        repository: Optional[LeadRepository] = None,
    ) -> "RfpSession":
        return cls(
            orchestrator=RequirementsOrchestrator.from_settings(settings),
            repository=repository,
            output_dir=settings.output_dir,
        )

    @property
    def completed(self) -> bool:
        return self.state.completed

    def kickoff(self) -> str:
        """Start the interview and return the greeting with the first question."""

        message = opening_message()
        self.state.messages.append(ChatTurn(role="assistant", content=message))
        return message

    async def handle_user_message(self, user_text: str) -> List[str]:
        """Process a user response and return assistant utterances."""

        updates: List[str] = []
        normalized = user_text.strip()
        if not normalized or self.state.completed:
            return updates

        self.state.messages.append(ChatTurn(role="user", content=normalized))
        result = await self.orchestrator.handle_turn(
            self.state.messages,
            self.state.current_topic_index,
            self.state.answers,
        )
        self.last_result = result
        self.state.answers = result.answers
        self.state.current_topic_index = result.next_topic_index
        self.state.completed = result.completed
        self.state.messages.append(
            ChatTurn(role="assistant", content=result.response_text)
        )
        updates.append(result.response_text)
        self.autosave()

        if result.completed:
            document = await self.finalize()
            updates.append(document.text)
            if self.document_path is not None:
                updates.append(f"RFP saved to: {self.document_path}")
        return updates

    async def finalize(self) -> GeneratedDocument:
        """Generate (once) and export the document for the collected answers."""

        if self.document is not None:
            return self.document
        self.state.completed = True
        document = await self.orchestrator.generate_document(self.state.answers)
        self.document = document
        self.document_path = self.export_document(document)
        self.autosave()
        return document

    def export_document(self, document: GeneratedDocument) -> Optional[Path]:
        if self.output_dir is None:
            return None
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / default_document_name(document.generated_at)
        try:
            path.write_text(document.text, encoding="utf-8")
        except OSError:
            logger.exception("Unable to write RFP document to %s", path)
            return None
        return path

    def autosave(self) -> None:
        if self.repository is None:
            return
        self.session_id = self.repository.save_session(
            self.state,
            session_id=self.session_id,
        )


def default_document_name(now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"rfp-{stamp}.md"
