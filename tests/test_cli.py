from __future__ import annotations

import asyncio

from consultant_agent import cli
from consultant_agent.prompts import APOLOGY_MESSAGE
from consultant_agent.profile import ProfileCollector
from consultant_agent.profile_store import ProfileRepository
from consultant_agent.sessions import ConsultationSession


def test_interactive_profile_reasks_invalid_fields(settings, capsys):
    answers = iter(
        [
            "Dana Reyes",
            "Blue Harbor Coffee",
            "dana-at-example",
            "5552013344",
            "Founder",
            "11-50",
            "Food & Beverage",
            "",
            "dana@blueharbor.example",
        ]
    )
    collector = ProfileCollector(ProfileRepository(settings.profile_log, None))

    profile = cli.collect_profile_interactively(
        collector, "user-1", read=lambda _prompt: next(answers)
    )

    assert profile.company_email == "dana@blueharbor.example"
    assert "Please enter a valid email address" in capsys.readouterr().out


def test_terminal_chat_exports(settings, profile_data, make_backend, monkeypatch):
    repository = ProfileRepository(settings.profile_log, None)
    ProfileCollector(repository).submit("user-1", profile_data)
    inputs = iter(["We roast coffee", "/export text", "/quit"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(inputs))

    asyncio.run(
        cli.run_chat(
            settings,
            "user-1",
            backend=make_backend(completion="Report text"),
            repository=repository,
        )
    )

    exports = list(settings.output_dir.glob("Marketing-PR-Requirements-Report-*.txt"))
    assert len(exports) == 1
    assert exports[0].read_text(encoding="utf-8") == "Report text"


def test_terminal_chat_prints_apology_after_partial_reply(
    settings, profile_data, make_backend, monkeypatch, capsys
):
    repository = ProfileRepository(settings.profile_log, None)
    ProfileCollector(repository).submit("user-1", profile_data)
    inputs = iter(["We roast coffee", "/quit"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(inputs))

    asyncio.run(
        cli.run_chat(
            settings,
            "user-1",
            backend=make_backend(["Partial"], stream_error=RuntimeError("boom")),
            repository=repository,
        )
    )

    out = capsys.readouterr().out
    assert "Consultant: Partial\n" in out
    assert f"Consultant: {APOLOGY_MESSAGE}" in out


def test_terminal_export_write_failure_leaves_progress(
    settings, profile_data, make_backend, capsys
):
    repository = ProfileRepository(settings.profile_log, None)
    collector = ProfileCollector(repository)
    collector.submit("user-1", profile_data)
    session = ConsultationSession.create(
        "user-1", make_backend(), settings, profile=collector.load("user-1")
    )
    session.submit("We roast coffee")
    asyncio.run(session.receive_reply())
    progress = session.conversation.progress
    not_a_directory = settings.output_dir / "exports"
    not_a_directory.write_text("occupied", encoding="utf-8")

    asyncio.run(cli._export(session, not_a_directory, "/export text"))

    assert session.conversation.progress == progress < 100
    assert "Could not save" in capsys.readouterr().out

    asyncio.run(cli._export(session, settings.output_dir, "/export text"))

    assert session.conversation.progress == 100
