"""Thin wrappers around Microsoft Agent Framework chat completion clients.

All model traffic for the consultant goes through :class:`MAFChatClient`:
one-shot completions (reports, recommendations), streamed completions (chat
replies) and structured JSON generation (assessments). The framework is
imported lazily so the rest of the package, and its tests, can run against
any object exposing the same three coroutines.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from importlib import import_module
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Protocol, cast

from .config import ModelSettings

STRUCTURED_OUTPUT_INSTRUCTION = (
    "Respond ONLY with valid JSON matching the schema below. Do not wrap the "
    "JSON in markdown fences or include commentary.\n"
)


@dataclass(slots=True)
class ChatMessage:
    """Simple representation of a chat message compatible with this app."""

    role: str
    content: str


class MAFIntegrationError(RuntimeError):
    """Raised when the MAF client cannot be initialized."""


class StructuredOutputError(RuntimeError):
    """Raised when a structured generation response cannot be parsed."""


class ChatBackend(Protocol):
    """Surface the session layer expects from a model client."""

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        ...

    def stream(self, messages: Iterable[ChatMessage]) -> AsyncIterator[str]:
        ...

    async def generate_object(
        self,
        prompt: str,
        schema: Mapping[str, Any],
    ) -> Dict[str, Any]:
        ...


def _framework() -> Any:
    try:
        return import_module("agent_framework")
    except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
        raise MAFIntegrationError(
            "Microsoft Agent Framework is not installed. Reinstall the "
            "project dependencies (e.g. `pip install -e .`)."
        ) from exc


def _coerce_role(role: str) -> Any:
    role_cls = _framework().Role
    try:
        return role_cls(role)
    except ValueError as exc:
        raise ValueError(
            "Unsupported role for MAF chat message: {role}".format(role=role)
        ) from exc


def extract_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Pull the outermost JSON object out of a model response."""

    text = raw.strip()
    if not text:
        return None
    candidate = text
    if not candidate.lstrip().startswith("{"):
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            return None
        candidate = text[start:end + 1]
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return cast(Dict[str, Any], payload)


class MAFChatClient:
    """Wrapper that dispatches chat completion calls through MAF clients."""

    def __init__(self, settings: ModelSettings) -> None:
        self._settings = settings
        self._client = self._create_client(settings)

    @staticmethod
    def _create_client(settings: ModelSettings):
        provider = settings.provider.lower()
        try:
            if provider in {"azure-openai", "azure_openai", "azure"}:
                module = import_module("agent_framework.azure")
                client_cls = getattr(module, "AzureOpenAIChatClient")
                return client_cls(
                    api_key=settings.api_key,
                    deployment_name=settings.model,
                    endpoint=settings.endpoint,
                    api_version=settings.api_version,
                )
            if provider in {"openai", "oai"}:
                module = import_module("agent_framework.openai")
                client_cls = getattr(module, "OpenAIChatClient")
                return client_cls(
                    api_key=settings.api_key,
                    model_id=settings.model,
                    base_url=settings.endpoint,
                )
        except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
            missing = exc.name or "a required dependency"
            raise MAFIntegrationError(
                "Microsoft Agent Framework dependency '{missing}' is missing. "
                "Reinstall the project dependencies (e.g. `pip install -e .`)."
                .format(missing=missing)
            ) from exc
        raise MAFIntegrationError(
            f"Unsupported MAF provider '{settings.provider}'."
        )

    @staticmethod
    def _merge_consecutive_roles(
        messages: Iterable[ChatMessage],
    ) -> List[ChatMessage]:
        """Combine adjacent messages that share the same role.

        A consultation transcript can end with an apology appended right after
        a partial assistant reply. The chat templates expect user/assistant
        turns to alternate, so such neighbours are folded into one message.
        """

        merged: List[ChatMessage] = []
        for message in messages:
            if merged and merged[-1].role == message.role:
                previous = merged[-1]
                previous.content = (
                    f"{previous.content}\n\n{message.content}".strip()
                )
                continue
            merged.append(
                ChatMessage(role=message.role, content=message.content)
            )
        return merged

    def _payload(self, messages: Iterable[ChatMessage]) -> List[Any]:
        message_cls = _framework().ChatMessage
        return [
            message_cls(role=_coerce_role(msg.role), text=msg.content)
            for msg in self._merge_consecutive_roles(messages)
        ]

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        """Execute a chat completion call through the underlying MAF client."""

        response = await self._client.get_response(
            messages=self._payload(messages)
        )
        return ChatMessage(role="assistant", content=response.text or "")

    async def stream(
        self,
        messages: Iterable[ChatMessage],
    ) -> AsyncIterator[str]:
        """Yield reply text fragments in the order the service emits them."""

        payload = self._payload(messages)
        async for update in self._client.get_streaming_response(
            messages=payload
        ):
            text = update.text
            if text:
                yield text

    async def generate_object(
        self,
        prompt: str,
        schema: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Request a single JSON object shaped like ``schema``."""

        instruction = (
            STRUCTURED_OUTPUT_INSTRUCTION + json.dumps(schema, indent=2)
        )
        response = await self.complete(
            [
                ChatMessage(role="system", content=instruction),
                ChatMessage(role="user", content=prompt),
            ]
        )
        payload = extract_json_object(response.content)
        if payload is None:
            raise StructuredOutputError(
                "Model response did not contain a JSON object."
            )
        return payload
