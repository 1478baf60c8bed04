"""Command-line utilities for browsing archived business profiles."""

from __future__ import annotations

import argparse
from typing import Any, Callable, Dict, List, Optional

from .config import AppSettings, CompanySize
from .profile_store import ProfileRepository

CommandHandler = Callable[[ProfileRepository, argparse.Namespace], None]

_DISPLAY_FIELDS = (
    ("Full name", "fullName"),
    ("Company", "companyName"),
    ("Email", "companyEmail"),
    ("Phone", "contactNumber"),
    ("Job title", "jobTitle"),
    ("Industry", "industry"),
    ("Description", "businessDescription"),
)


def run_profiles_cli(
    settings: AppSettings,
    argv: Optional[List[str]] = None,
    *,
    repository: Optional[ProfileRepository] = None,
) -> None:
    """Entry point for profile-archive CLI commands."""

    repository = repository or ProfileRepository(
        settings.profile_log, settings.redis_url
    )
    parser = argparse.ArgumentParser(
        prog="consultant-agent profiles",
        description="List and inspect archived business profiles.",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    list_parser = subparsers.add_parser(
        "list",
        help="Show recently submitted profiles",
    )
    list_parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=10,
        help="Maximum number of profiles to display (default: 10)",
    )
    list_parser.set_defaults(func=_handle_list)

    show_parser = subparsers.add_parser(
        "show",
        help="Display the current profile of a user",
    )
    show_parser.add_argument("user_id", help="User identifier")
    show_parser.set_defaults(func=_handle_show)

    args = parser.parse_args(argv)
    handler: CommandHandler = args.func
    handler(repository, args)


def _handle_list(repository: ProfileRepository, args: argparse.Namespace) -> None:
    records = list(repository.iter_records())
    if not records:
        print("No profiles found.")
        return
    recent = list(reversed(records))[: max(args.limit, 0)]
    print(f"Showing {len(recent)} profiles:")
    for record in recent:
        print(
            f" - {record.get('id', '?')} | {record.get('userId', '?')} | "
            f"{record.get('companyName', '')} | {record.get('createdAt', '')}"
        )


def _handle_show(repository: ProfileRepository, args: argparse.Namespace) -> None:
    record = repository.get(args.user_id)
    if not record:
        print(f"Profile for '{args.user_id}' not found.")
        return
    _print_profile(args.user_id, record)


def _print_profile(user_id: str, record: Dict[str, Any]) -> None:
    print(f"User ID: {user_id}")
    for label, key in _DISPLAY_FIELDS:
        value = record.get(key)
        if value:
            print(f"{label}: {value}")
    size = record.get("companySize")
    if size:
        try:
            print(f"Company size: {CompanySize.from_string(size).label}")
        except ValueError:
            print(f"Company size: {size}")
    if record.get("createdAt"):
        print(f"Submitted: {record['createdAt']}")
