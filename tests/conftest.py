from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pytest

from consultant_agent.config import AppSettings, ModelSettings
from consultant_agent.maf_client import ChatMessage


class FakeBackend:
    """In-memory stand-in for the model client."""

    def __init__(
        self,
        chunks: Optional[List[str]] = None,
        *,
        stream_error: Optional[Exception] = None,
        completion: str = "Generated narrative",
        completion_error: Optional[Exception] = None,
        payload: Optional[Dict[str, Any]] = None,
        object_error: Optional[Exception] = None,
    ) -> None:
        self.chunks = ["Great", " question", "!"] if chunks is None else chunks
        self.stream_error = stream_error
        self.completion = completion
        self.completion_error = completion_error
        self.payload = payload if payload is not None else {"assessments": []}
        self.object_error = object_error
        self.stream_calls: List[List[ChatMessage]] = []
        self.complete_calls: List[List[ChatMessage]] = []
        self.object_calls: List[str] = []

    async def complete(self, messages: Iterable[ChatMessage]) -> ChatMessage:
        self.complete_calls.append(list(messages))
        if self.completion_error is not None:
            raise self.completion_error
        return ChatMessage(role="assistant", content=self.completion)

    async def stream(self, messages: Iterable[ChatMessage]):
        self.stream_calls.append(list(messages))
        for chunk in self.chunks:
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error

    async def generate_object(
        self, prompt: str, schema: Mapping[str, Any]
    ) -> Dict[str, Any]:
        self.object_calls.append(prompt)
        if self.object_error is not None:
            raise self.object_error
        return self.payload


@pytest.fixture
def profile_data() -> Dict[str, str]:
    return {
        "fullName": "Dana Reyes",
        "companyName": "Blue Harbor Coffee",
        "companyEmail": "dana@blueharbor.example",
        "contactNumber": "+1 (555) 201-3344",
        "jobTitle": "Founder",
        "companySize": "11-50",
        "industry": "Food & Beverage",
        "businessDescription": "Specialty coffee roaster",
    }


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        model=ModelSettings(
            provider="openai",
            model="gpt-test",
            endpoint=None,
            api_key="test-key",
            api_version=None,
        ),
        output_dir=tmp_path,
        profile_log=tmp_path / "profiles.jsonl",
        redis_url=None,
        assessment_threshold=4,
    )


@pytest.fixture
def make_backend():
    return FakeBackend
