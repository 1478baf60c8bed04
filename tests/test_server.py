from __future__ import annotations

import asyncio
import json
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from consultant_agent.auth import AuthProviderError
from consultant_agent.profile import ProfileCollector
from consultant_agent.profile_store import ProfileRepository
from consultant_agent.prompts import APOLOGY_MESSAGE
from consultant_agent.server import SessionRegistry, content_disposition, create_app

USER = {"X-User-Id": "user-1", "X-User-Email": "dana@blueharbor.example"}


def _events(response):
    return [
        json.loads(line[len("data: "):])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]


@pytest.fixture
def backend(make_backend):
    return make_backend(
        ["Tell me ", "about your customers."],
        completion="Consultation report",
        payload={"assessments": [{"category": "Brand", "score": 55, "insights": []}]},
    )


@pytest.fixture
def client(settings, backend):
    repository = ProfileRepository(settings.profile_log, None)
    app = create_app(settings, backend=backend, repository=repository)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def onboarded(client, profile_data):
    response = client.post("/profile", json=profile_data, headers=USER)
    assert response.status_code == 200
    return client


def _chat(client, message):
    response = client.post("/chat", json={"message": message}, headers=USER)
    assert response.status_code == 200
    return _events(response)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_requires_identity(client):
    assert client.get("/session").status_code == 401


def test_new_session_has_no_profile(client):
    body = client.get("/session", headers=USER).json()

    assert body["user"]["id"] == "user-1"
    assert body["user"]["displayName"] == "dana@blueharbor.example"
    assert body["profile"] is None
    assert body["messages"] == []


def test_profile_validation_errors(client, profile_data):
    profile_data["companyEmail"] = "not-an-email"

    response = client.post("/profile", json=profile_data, headers=USER)

    assert response.status_code == 422
    assert response.json() == {
        "errors": {"company_email": "Please enter a valid email address"}
    }


def test_profile_submission_seeds_session(onboarded):
    body = onboarded.get("/session", headers=USER).json()

    assert body["profile"]["companyName"] == "Blue Harbor Coffee"
    assert body["context"]["industry"] == "Food & Beverage"
    assert body["companyName"] == "Blue Harbor Coffee"
    assert len(body["messages"]) == 1


def test_chat_before_profile_conflicts(client):
    response = client.post("/chat", json={"message": "hi"}, headers=USER)

    assert response.status_code == 409


def test_blank_chat_is_rejected(onboarded):
    response = onboarded.post("/chat", json={"message": "  "}, headers=USER)

    assert response.status_code == 400


def test_chat_streams_reply(onboarded):
    events = _chat(onboarded, "We need more customers")

    types = [event["type"] for event in events]
    assert types == ["user", "chunk", "chunk", "message", "done"]
    assert events[2]["content"] == "Tell me about your customers."
    assert events[3]["message"]["content"] == "Tell me about your customers."
    assert events[4]["progress"] == 16
    assert events[4]["canExport"] is True

    body = onboarded.get("/session", headers=USER).json()
    assert [m["role"] for m in body["messages"]] == ["assistant", "user", "assistant"]
    assert body["isGenerating"] is False


def test_chat_failure_streams_apology(onboarded, backend):
    backend.stream_error = RuntimeError("model unavailable")
    backend.chunks = []

    events = _chat(onboarded, "Hello?")

    assert events[-2]["message"]["content"] == APOLOGY_MESSAGE


def test_context_update(onboarded):
    response = onboarded.put(
        "/context",
        json={"goals": "Open a second cafe", "companyName": "Blue Harbor Roasters"},
        headers=USER,
    )

    body = response.json()
    assert body["context"]["goals"] == "Open a second cafe"
    assert body["context"]["industry"] == "Food & Beverage"
    assert body["companyName"] == "Blue Harbor Roasters"


def test_export_requires_conversation(onboarded):
    response = onboarded.post("/export/text", headers=USER)

    assert response.status_code == 409


def test_unknown_export_kind(onboarded):
    assert onboarded.post("/export/pdf", headers=USER).status_code == 404


def test_text_export_download(onboarded):
    _chat(onboarded, "We need more customers")

    response = onboarded.post("/export/text", headers=USER)

    assert response.status_code == 200
    assert response.text == "Consultation report"
    disposition = response.headers["content-disposition"]
    assert disposition.startswith("attachment; ")
    assert 'filename="Marketing-PR-Requirements-Report-Blue-Harbor-Coffee-' in disposition
    assert "filename*=UTF-8''Marketing-PR-Requirements-Report-Blue-Harbor-Coffee-" in disposition
    assert onboarded.get("/session", headers=USER).json()["progress"] == 100


def test_export_with_non_ascii_company_name(onboarded):
    _chat(onboarded, "We need more customers")
    onboarded.put(
        "/context", json={"companyName": '東京 "Coffee" / Tea'}, headers=USER
    )

    response = onboarded.post("/export/text", headers=USER)

    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert 'filename="Marketing-PR-Requirements-Report-Coffee-Tea-' in disposition
    assert (
        "filename*=UTF-8''Marketing-PR-Requirements-Report-"
        + quote("東京", safe="")
        + "-Coffee-Tea-"
    ) in disposition
    assert onboarded.get("/session", headers=USER).json()["progress"] == 100


def test_content_disposition_fallback():
    assert content_disposition("東京.txt") == (
        "attachment; filename=\".txt\"; filename*=UTF-8''%E6%9D%B1%E4%BA%AC.txt"
    )
    assert content_disposition("東京").startswith('attachment; filename="export";')



def test_docx_export_download(onboarded):
    _chat(onboarded, "We need more customers")

    response = onboarded.post("/export/docx", headers=USER)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.wordprocessingml"
    )
    assert response.content[:2] == b"PK"


def test_export_failure_is_bad_gateway(onboarded, backend):
    _chat(onboarded, "We need more customers")
    backend.completion_error = RuntimeError("quota")

    assert onboarded.post("/export/text", headers=USER).status_code == 502
    assert onboarded.get("/session", headers=USER).json()["progress"] < 100


def test_assessment_refresh(onboarded):
    _chat(onboarded, "We need more customers")

    body = onboarded.post("/assessments/refresh", headers=USER).json()

    assert body["updated"] is True
    assert body["assessments"][0] == {"category": "Brand", "score": 55, "insights": []}


def test_reset_restores_welcome(onboarded):
    _chat(onboarded, "We need more customers")

    body = onboarded.post("/session/reset", headers=USER).json()

    assert len(body["messages"]) == 1
    assert body["progress"] == 0


def test_logout_drops_session_but_keeps_profile(onboarded):
    _chat(onboarded, "We need more customers")

    assert onboarded.post("/auth/logout", headers=USER).json() == {
        "status": "signed_out"
    }
    body = onboarded.get("/session", headers=USER).json()
    assert body["profile"]["companyName"] == "Blue Harbor Coffee"
    assert len(body["messages"]) == 1


def test_auth_failure_puts_service_in_unavailable_mode(settings, make_backend):
    def broken_auth():
        raise AuthProviderError("identity service unreachable")

    app = create_app(settings, backend=make_backend(), auth_factory=broken_auth)
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        response = client.get("/session", headers=USER)

    assert response.status_code == 503
    assert response.json()["detail"] == "Service Temporarily Unavailable"


def test_registry_evicts_least_recently_used_idle_session(
    settings, make_backend, profile_data
):
    repository = ProfileRepository(settings.profile_log, None)
    collector = ProfileCollector(repository)
    collector.submit("user-1", profile_data)
    registry = SessionRegistry(settings, make_backend(), collector, max_sessions=2)

    async def scenario():
        first = await registry.get("user-1")
        first.submit("Still talking")
        await registry.get("user-2")
        await registry.get("user-3")
        await registry.get("user-4")
        return first

    busy = asyncio.run(scenario())

    assert len(registry) == 2
    assert "user-1" in registry
    assert "user-4" in registry
    assert busy.profile.company_name == "Blue Harbor Coffee"


def test_registry_reuses_sessions(settings, make_backend):
    collector = ProfileCollector(ProfileRepository(settings.profile_log, None))
    registry = SessionRegistry(settings, make_backend(), collector)

    async def scenario():
        return await registry.get("user-1"), await registry.get("user-1")

    first, second = asyncio.run(scenario())

    assert first is second
    assert len(registry) == 1
