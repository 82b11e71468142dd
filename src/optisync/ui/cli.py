# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from optisync.app import running_engine
from optisync.config import ConfigurationError, configure_logging
from optisync.domain.conflicts import Resolution
from optisync.domain.errors import ConflictDetectedError, OptisyncError
from optisync.domain.model import UserDraft, UserPatch

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from optisync.domain.model import User
    from optisync.domain.orchestrator import MutationOrchestrator

log = logging.getLogger(__name__)


def _add_user_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--name", type=str, required=required, help="Display name")
    parser.add_argument("--email", type=str, required=required, help="Email address")
    parser.add_argument("--phone", type=str, required=required, help="Phone number")
    parser.add_argument("--role", type=str, required=required, help="Role, e.g. Admin or Viewer")
    parser.add_argument("--avatar", type=str, help="Avatar URL")
    parser.add_argument("--bio", type=str, help="Short biography")
    active = parser.add_mutually_exclusive_group()
    active.add_argument("--active", dest="active", action="store_true", default=None)
    active.add_argument("--inactive", dest="active", action="store_false", default=None)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage users with optimistic mutations")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Use an in-memory users service and mutation log",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List users")
    subparsers.add_parser("stats", help="Show user counts")
    subparsers.add_parser("replay", help="Replay mutations left over from a previous run")

    show = subparsers.add_parser("show", help="Show one user")
    show.add_argument("user_id", type=str)

    create = subparsers.add_parser("create", help="Create a user")
    _add_user_fields(create, required=True)

    update = subparsers.add_parser("update", help="Update a user")
    update.add_argument("user_id", type=str)
    _add_user_fields(update, required=False)
    update.add_argument(
        "--check-conflicts",
        action="store_true",
        help="Compare against the server copy before writing",
    )
    update.add_argument(
        "--overwrite",
        action="store_true",
        help="On conflict, overwrite the server copy instead of keeping it",
    )

    delete = subparsers.add_parser("delete", help="Delete a user")
    delete.add_argument("user_id", type=str)

    bulk = subparsers.add_parser("bulk-delete", help="Delete several users with an undo window")
    bulk.add_argument("user_ids", nargs="+", type=str)
    bulk.add_argument(
        "--undo-after",
        type=float,
        help="Undo the deletion after this many seconds (must be inside the undo window)",
    )

    return parser.parse_args(list(argv))


def _draft_from_args(args: argparse.Namespace) -> UserDraft:
    return UserDraft(
        name=args.name,
        email=args.email,
        phone_number=args.phone,
        role=args.role,
        active=True if args.active is None else args.active,
        avatar=args.avatar,
        bio=args.bio or "",
    )


def _patch_from_args(args: argparse.Namespace) -> UserPatch:
    patch = UserPatch(
        name=args.name,
        email=args.email,
        phone_number=args.phone,
        role=args.role,
        active=args.active,
        avatar=args.avatar,
        bio=args.bio,
    )
    if patch.is_empty():
        raise ValueError("Nothing to update; pass at least one field")
    return patch


def _validate(args: argparse.Namespace) -> None:
    if args.command == "update":
        _patch_from_args(args)
        if args.overwrite and not args.check_conflicts:
            raise ValueError("--overwrite requires --check-conflicts")
    if args.command == "bulk-delete" and args.undo_after is not None and args.undo_after < 0:
        raise ValueError("--undo-after must be non-negative")


def _format_user(user: User) -> str:
    status = "active" if user.active else "inactive"
    return f"{user.id}\t{user.name}\t{user.email}\t{user.role}\t{status}"


async def _update(orchestrator: MutationOrchestrator, args: argparse.Namespace) -> User:
    patch = _patch_from_args(args)
    if not args.check_conflicts:
        return await orchestrator.update_user(args.user_id, patch)
    try:
        return await orchestrator.update_user_checked(args.user_id, patch)
    except ConflictDetectedError as conflict:
        for name, (mine, theirs) in sorted(conflict.report.differences.items()):
            print(f"conflict {name}: cached={mine!r} server={theirs!r}")
        resolution = Resolution.OVERWRITE if args.overwrite else Resolution.KEEP_SERVER
        return await orchestrator.resolve_conflict(conflict.report, resolution, patch)


async def _bulk_delete(orchestrator: MutationOrchestrator, args: argparse.Namespace) -> None:
    await orchestrator.load_users()
    operation = await orchestrator.bulk_delete_with_undo(args.user_ids)
    if operation is None:
        return
    if args.undo_after is not None:
        await asyncio.sleep(args.undo_after)
        result = await orchestrator.undo(operation.id)
        print(f"restored={len(result.restored)} skipped={len(result.skipped)}")
    elif operation.task is not None:
        # Stay alive until the window closes so the deletion is committed.
        await operation.task


async def _run(args: argparse.Namespace) -> None:
    async with running_engine(demo=args.demo) as orchestrator:
        match args.command:
            case "list":
                for user in await orchestrator.load_users():
                    print(_format_user(user))
            case "show":
                print(_format_user(await orchestrator.load_user(args.user_id)))
            case "stats":
                stats = await orchestrator.user_stats()
                print(f"total={stats.total} active={stats.active} inactive={stats.inactive}")
                for role, count in sorted(stats.by_role.items()):
                    print(f"{role}\t{count}")
            case "create":
                print(_format_user(await orchestrator.create_user(_draft_from_args(args))))
            case "update":
                print(_format_user(await _update(orchestrator, args)))
            case "delete":
                await orchestrator.delete_user(args.user_id)
            case "bulk-delete":
                await _bulk_delete(orchestrator, args)
            case "replay":
                # running_engine already replayed on boot; report what is left.
                print(f"pending={len(orchestrator.context.log)}")
            case _:
                raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    try:
        asyncio.run(_run(parsed_args))
    except (OptisyncError, ConfigurationError) as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
