"""
Main entry point for VisReminder.
Handles CLI arguments, environment setup, and application lifecycle.
"""

import asyncio
import argparse
import signal
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

# Settings read the environment at import time
load_dotenv(Path.cwd() / ".env")

from dateutil import parser as date_parser  # noqa: E402

from config.logging_config import setup_logging, set_level  # noqa: E402
from config import settings  # noqa: E402
from config.settings import ReminderFilter  # noqa: E402
from src.core.coordinator import Coordinator  # noqa: E402
from src.reminder.errors import NotFoundError, ValidationError  # noqa: E402
from src.reminder.export import build_export, productivity_trend, recent, summary_counts  # noqa: E402
from src.reminder.models import to_local_naive  # noqa: E402
from src.reminder.store import ReminderStore  # noqa: E402

# Setup logging first
logger = setup_logging()


def parse_arguments(argv=None):
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog="visreminder",
        description="VisReminder - photo reminders with local notifications"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", default=None, help="SQLite database path")
    parser.add_argument("--no-sync", action="store_true",
                        help="Do not mirror changes into Apple Reminders")

    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Create a reminder")
    add.add_argument("title")
    add.add_argument("--due", required=True, help="Due time, e.g. '2026-10-20 09:30'")
    add.add_argument("--notes", default="")
    add.add_argument("--photo", type=Path, help="Image file to attach")

    list_cmd = commands.add_parser("list", help="List reminders")
    list_cmd.add_argument("--filter", default=ReminderFilter.ALL.value,
                          choices=[f.value for f in ReminderFilter])
    list_cmd.add_argument("--search", default=None)

    show = commands.add_parser("show", help="Show one reminder")
    show.add_argument("id")

    edit = commands.add_parser("edit", help="Edit a reminder")
    edit.add_argument("id")
    edit.add_argument("--title")
    edit.add_argument("--due")
    edit.add_argument("--notes")
    photo = edit.add_mutually_exclusive_group()
    photo.add_argument("--photo", type=Path, help="Replace the attached image")
    photo.add_argument("--no-photo", action="store_true", help="Remove the attached image")

    toggle = commands.add_parser("toggle", help="Toggle completion")
    toggle.add_argument("id")

    delete = commands.add_parser("delete", help="Delete a reminder")
    delete.add_argument("id")

    clear = commands.add_parser("clear", help="Delete all reminders")
    clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    export = commands.add_parser("export", help="Write an export bundle")
    export.add_argument("--output", type=Path, help="Output file (default: stdout)")

    commands.add_parser("stats", help="Show counts and recent activity")
    commands.add_parser("run", help="Deliver notifications until stopped")

    return parser.parse_args(argv)


def parse_due(text: str) -> datetime:
    """Parse a user supplied due time into naive local time."""
    try:
        due = date_parser.parse(text, default=datetime.now().replace(second=0, microsecond=0))
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Cannot understand due time '{text}'") from e
    return to_local_naive(due)


def read_photo(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise ValidationError(f"Cannot read photo {path}: {e}") from e


def resolve_id(store: ReminderStore, prefix: str) -> str:
    """Accept a full id or a unique prefix of one."""
    matches = [r.id for r in store.list() if r.id.lower().startswith(prefix.lower())]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ValidationError(f"Id prefix '{prefix}' is ambiguous")
    raise NotFoundError(prefix)


def print_record(record) -> None:
    print(f"{record.id[:8]}  {record}  ({record.time_until()})")


async def run_command(args, coordinator: Coordinator) -> int:
    """Execute a one-shot command against the store."""
    store = coordinator.store

    if args.command == "add":
        photo = read_photo(args.photo) if args.photo else None
        reminder_id = await store.add(args.title, args.notes, parse_due(args.due), photo)
        print(reminder_id)

    elif args.command == "list":
        records = store.list(args.filter, search=args.search)
        if not records:
            print("No reminders")
        for record in records:
            print_record(record)

    elif args.command == "show":
        record = store.get(resolve_id(store, args.id))
        print(record.share_text())
        print()
        print(f"Status: {'Completed' if record.completed else record.time_until()}")
        if record.external_task_id:
            print(f"Apple Reminder: {record.external_task_id}")

    elif args.command == "edit":
        record = store.get(resolve_id(store, args.id))
        if args.no_photo:
            photo = None
        elif args.photo:
            photo = read_photo(args.photo)
        else:
            photo = record.photo
        await store.update(
            record.id,
            args.title if args.title is not None else record.title,
            args.notes if args.notes is not None else record.notes,
            parse_due(args.due) if args.due else record.due_at,
            photo
        )

    elif args.command == "toggle":
        reminder_id = resolve_id(store, args.id)
        await store.toggle_completed(reminder_id)
        print_record(store.get(reminder_id))

    elif args.command == "delete":
        await store.delete(resolve_id(store, args.id))

    elif args.command == "clear":
        if not args.yes:
            answer = input("This will permanently delete all your reminders. Continue? [y/N] ")
            if answer.strip().lower() != "y":
                return 0
        await store.clear_all()

    elif args.command == "export":
        bundle = build_export(store.list())
        if args.output:
            args.output.write_text(bundle.to_json(indent=2))
            logger.info(f"Exported {bundle.total_count} reminders to {args.output}")
        else:
            print(bundle.to_json(indent=2))

    elif args.command == "stats":
        records = store.list()
        counts = summary_counts(records)
        print(" ".join(f"{name}={value}" for name, value in counts.items()))
        for day in productivity_trend(records):
            print(f"{day.day.strftime('%m/%d')}  {day.completed}/{day.total}")
        for record in recent(records):
            print_record(record)

    if store.is_dirty:
        logger.warning("Changes are kept in memory only; they could not be saved")

    return 0


async def serve(coordinator: Coordinator) -> int:
    """Run until SIGINT/SIGTERM, delivering notifications."""
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(shutdown_event.set))

    async def present(notification):
        print(f"\a{notification.title}: {notification.body}", flush=True)

    await coordinator.start(on_notification=present)
    logger.info(
        f"{settings.APP_NAME} running with {len(coordinator.store)} reminders, "
        "press Ctrl+C to stop"
    )
    await shutdown_event.wait()
    return 0


async def main(argv=None) -> int:
    """Main application entry point."""
    args = parse_arguments(argv)

    if args.debug:
        set_level("DEBUG")
        logger.debug("Debug logging enabled")

    coordinator = Coordinator(
        db_path=args.db,
        enable_notifications=args.command == "run",
        enable_sync=False if args.no_sync else None
    )

    if not await coordinator.initialize():
        logger.error("Failed to initialize application")
        return 1

    try:
        if args.command == "run":
            return await serve(coordinator)
        return await run_command(args, coordinator)

    except (ValidationError, NotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    finally:
        await coordinator.stop()


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))

    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
