"""Language-model access through Microsoft Agent Framework chat clients.

The orchestrator depends only on :class:`LanguageModelClient`. Provider
packages are imported on first use, so a deployment without credentials
never loads them.
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from agent_framework import ChatMessage as FrameworkMessage, Role

from .config import ModelSettings


@dataclass(slots=True)
class ChatMessage:
    """Role/content pair exchanged with the model."""

    role: str
    content: str


class LanguageModelClient(Protocol):
    """What the orchestrator needs from a model client."""

    async def generate(
        self,
        system_prompt: Optional[str],
        messages: Sequence[ChatMessage],
        max_tokens: int,
    ) -> str:
        ...


class MAFIntegrationError(RuntimeError):
    """Raised when the configured provider client cannot be built."""


def _anthropic_kwargs(settings: ModelSettings) -> Dict[str, Any]:
    return {"api_key": settings.api_key, "model_id": settings.model}


def _azure_kwargs(settings: ModelSettings) -> Dict[str, Any]:
    return {
        "api_key": settings.api_key,
        "deployment_name": settings.model,
        "endpoint": settings.endpoint,
        "api_version": settings.api_version,
    }


def _openai_kwargs(settings: ModelSettings) -> Dict[str, Any]:
    return {
        "api_key": settings.api_key,
        "model_id": settings.model,
        "base_url": settings.endpoint,
    }


KwargsBuilder = Callable[[ModelSettings], Dict[str, Any]]

# provider -> (module, client class, constructor arguments)
_PROVIDERS: Dict[str, Tuple[str, str, KwargsBuilder]] = {
    "anthropic": ("agent_framework.anthropic", "AnthropicClient", _anthropic_kwargs),
    "azure-openai": ("agent_framework.azure", "AzureOpenAIChatClient", _azure_kwargs),
    "openai": ("agent_framework.openai", "OpenAIChatClient", _openai_kwargs),
}

_PROVIDER_ALIASES = {
    "claude": "anthropic",
    "azure": "azure-openai",
    "azure_openai": "azure-openai",
    "oai": "openai",
}


def resolve_provider(name: str) -> str:
    normalized = name.strip().lower()
    return _PROVIDER_ALIASES.get(normalized, normalized)


def merge_consecutive_roles(messages: Iterable[ChatMessage]) -> List[ChatMessage]:
    """Join adjacent same-role messages.

    Providers expect user and assistant turns to alternate, while a history
    window may start or end on either role.
    """

    merged: List[ChatMessage] = []
    for message in messages:
        if merged and merged[-1].role == message.role:
            last = merged[-1]
            last.content = f"{last.content}\n\n{message.content}".strip()
        else:
            merged.append(ChatMessage(role=message.role, content=message.content))
    return merged


def to_framework_messages(messages: Iterable[ChatMessage]) -> List[FrameworkMessage]:
    converted: List[FrameworkMessage] = []
    for message in merge_consecutive_roles(messages):
        try:
            role = Role(message.role)
        except ValueError as exc:
            raise ValueError(f"Unsupported chat role: {message.role}") from exc
        converted.append(FrameworkMessage(role=role, text=message.content))
    return converted


class MAFChatClient:
    """Sends chat completions through the provider's agent_framework client."""

    def __init__(self, settings: ModelSettings) -> None:
        self._settings = settings
        self._client = self._build_backend(settings)

    @property
    def model(self) -> str:
        return self._settings.model

    @staticmethod
    def _build_backend(settings: ModelSettings) -> Any:
        provider = resolve_provider(settings.provider)
        entry = _PROVIDERS.get(provider)
        if entry is None:
            raise MAFIntegrationError(f"Unsupported MAF provider '{settings.provider}'.")
        module_name, class_name, build_kwargs = entry
        try:
            module = import_module(module_name)
        except ModuleNotFoundError as exc:  # pragma: no cover - depends on extras
            raise MAFIntegrationError(
                f"Provider '{provider}' needs '{exc.name or module_name}'. "
                "Install the matching extra, e.g. `pip install -e .[anthropic]`."
            ) from exc
        client_cls = getattr(module, class_name)
        return client_cls(**build_kwargs(settings))

    async def complete(
        self,
        messages: Iterable[ChatMessage],
        *,
        max_tokens: Optional[int] = None,
    ) -> ChatMessage:
        options: Dict[str, Any] = {"messages": to_framework_messages(messages)}
        if max_tokens is not None:
            options["max_tokens"] = max_tokens
        response = await self._client.get_response(**options)
        return ChatMessage(role="assistant", content=response.text or "")

    async def generate(
        self,
        system_prompt: Optional[str],
        messages: Sequence[ChatMessage],
        max_tokens: int,
    ) -> str:
        conversation = list(messages)
        if system_prompt:
            conversation.insert(0, ChatMessage(role="system", content=system_prompt))
        reply = await self.complete(conversation, max_tokens=max_tokens)
        return reply.content


def build_chat_client(settings: Optional[ModelSettings]) -> Optional[MAFChatClient]:
    """Create the configured client, or ``None`` when no model is set up."""

    if settings is None:
        return None
    return MAFChatClient(settings)
