"""Command line entry-point for the marketing and PR consultant."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

from .config import AppSettings, CompanySize
from .conversation import EmptyMessageError
from .maf_client import ChatBackend, MAFChatClient
from .profile import (
    PROFILE_FIELDS,
    BusinessProfile,
    ProfileCollector,
    ProfileValidationError,
)
from .profile_store import ProfileRepository
from .profiles_cli import run_profiles_cli
from .proposal import ExportKind, ProposalExportError
from .server import add_server_arguments, run_server
from .sessions import ConsultationSession, ExportNotReadyError

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"/quit", "/exit"}

_FIELD_PROMPTS = {
    "full_name": "Full name",
    "company_name": "Company name",
    "company_email": "Company email",
    "contact_number": "Contact number",
    "job_title": "Job title",
    "company_size": "Company size ("
    + ", ".join(size.value for size in CompanySize)
    + ")",
    "industry": "Industry",
    "business_description": "Business description (optional)",
}


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="consultant-agent",
        description="AI marketing and PR consultation service",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP API (default command).",
    )
    add_server_arguments(serve_parser)

    chat_parser = subparsers.add_parser(
        "chat",
        help="Hold a consultation in the terminal.",
    )
    chat_parser.add_argument(
        "--user-id",
        default="local-user",
        help="Identifier used to load and store the business profile.",
    )
    return parser.parse_args(argv)


def collect_profile_interactively(
    collector: ProfileCollector,
    user_id: str,
    read: Callable[[str], str] = input,
) -> BusinessProfile:
    """Prompt for every profile field until the collector accepts them."""

    answers: Dict[str, str] = {}
    pending = list(PROFILE_FIELDS)
    while True:
        for field_name in pending:
            answers[field_name] = read(f"{_FIELD_PROMPTS[field_name]}: ")
        try:
            return collector.submit(user_id, answers)
        except ProfileValidationError as exc:
            for message in exc.errors.values():
                print(f"  {message}")  # noqa: T201 - CLI output
            pending = [name for name in PROFILE_FIELDS if name in exc.errors]


async def run_chat(
    settings: AppSettings,
    user_id: str,
    *,
    backend: Optional[ChatBackend] = None,
    repository: Optional[ProfileRepository] = None,
) -> None:
    """Conduct a consultation via the terminal."""

    repository = repository or ProfileRepository(
        settings.profile_log, settings.redis_url
    )
    collector = ProfileCollector(repository)
    profile = collector.load(user_id)
    if profile is None:
        print("Let's start with your business profile.")  # noqa: T201
        profile = collect_profile_interactively(collector, user_id)

    session = ConsultationSession.create(
        user_id,
        backend or MAFChatClient(settings.model),
        settings,
        profile=profile,
    )
    for message in session.conversation.messages:
        print(f"\nConsultant: {message.content}")  # noqa: T201

    while True:
        text = input("\nYou: ")  # noqa: PLW1514 - intentional CLI input
        command = text.strip().lower()
        if command in EXIT_COMMANDS:
            break
        if command == "/reset":
            session.reset()
            print(f"\nConsultant: {session.conversation.messages[0].content}")  # noqa: T201
            continue
        if command.startswith("/export"):
            await _export(session, settings.output_dir, command)
            continue
        try:
            session.submit(text)
        except EmptyMessageError:
            continue
        await _stream_reply(session)
        print(f"\n[progress {session.conversation.progress}%]")  # noqa: T201

    await session.drain()


async def _stream_reply(session: ConsultationSession) -> None:
    streamed = ""

    async def on_chunk(accumulated: str) -> None:
        nonlocal streamed
        if not streamed:
            sys.stdout.write("\nConsultant: ")
        sys.stdout.write(accumulated[len(streamed):])
        sys.stdout.flush()
        streamed = accumulated

    reply = await session.receive_reply(on_chunk)
    # A failed turn ends with an apology that never went through on_chunk.
    if reply.content != streamed:
        if streamed:
            sys.stdout.write("\n")
        sys.stdout.write(f"\nConsultant: {reply.content}")
    sys.stdout.write("\n")


async def _export(
    session: ConsultationSession, output_dir: Path, command: str
) -> None:
    _, _, kind_name = command.partition(" ")
    try:
        kind = ExportKind.from_string(kind_name or "text")
    except ValueError as exc:
        print(str(exc))  # noqa: T201
        return
    try:
        artifact = await session.export(kind)
    except (ExportNotReadyError, ProposalExportError) as exc:
        print(str(exc))  # noqa: T201
        return
    path = output_dir / artifact.filename
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(artifact.content)
    except OSError as exc:
        logger.error("Failed to write %s: %s", path, exc)
        print(f"Could not save {kind.value} export to {path}")  # noqa: T201
        return
    session.mark_delivered()
    print(f"Saved {kind.value} export to {path}")  # noqa: T201


def run_cli(argv: Optional[list[str]] = None) -> None:
    """Entry-point invoked from ``python -m consultant_agent``."""

    logging.basicConfig(level=logging.INFO)
    arg_list = list(argv) if argv is not None else sys.argv[1:]
    if arg_list and arg_list[0] == "profiles":
        settings = _load_settings()
        run_profiles_cli(settings, arg_list[1:])
        return

    args = _parse_args(arg_list)
    settings = _load_settings()
    if args.command == "chat":
        asyncio.run(run_chat(settings, args.user_id))
        return

    run_server(
        settings,
        host=getattr(args, "host", "127.0.0.1"),
        port=getattr(args, "port", 8081),
        allow_origins=getattr(args, "allow_origin", None),
        reload=getattr(args, "reload", False),
        log_level=getattr(args, "log_level", "info"),
        tracing=getattr(args, "tracing", False),
    )


def _load_settings() -> AppSettings:
    try:
        return AppSettings.load()
    except RuntimeError as exc:
        logger.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
