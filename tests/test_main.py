import json
from datetime import datetime, timedelta, timezone

import pytest

from src.main import main
from src.reminder.repository import ReminderRepository


async def cli(db_path, *args) -> int:
    return await main(["--db", db_path, "--no-sync", *args])


@pytest.mark.asyncio
async def test_add_list_toggle_export(db_path, capsys) -> None:
    assert await cli(db_path, "add", "Keys", "--due", "2099-01-01 09:00", "--notes", "hook") == 0
    reminder_id = capsys.readouterr().out.strip()

    assert await cli(db_path, "list", "--filter", "Upcoming") == 0
    assert "Keys" in capsys.readouterr().out

    assert await cli(db_path, "toggle", reminder_id[:8]) == 0
    assert ReminderRepository(db_path=db_path).load()[0].completed is True
    capsys.readouterr()

    assert await cli(db_path, "export") == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["totalCount"] == 1
    assert payload["completedCount"] == 1
    assert payload["reminders"][0]["id"] == reminder_id


@pytest.mark.asyncio
async def test_show_and_edit(db_path, capsys) -> None:
    await cli(db_path, "add", "Keys", "--due", "2099-01-01 15:30")
    reminder_id = capsys.readouterr().out.strip()

    assert await cli(db_path, "edit", reminder_id, "--title", "Car keys") == 0
    assert await cli(db_path, "show", reminder_id) == 0

    out = capsys.readouterr().out
    assert "Visual Reminder: Car keys" in out
    assert "Reminder for: Jan 1, 2099 at 3:30 PM" in out


@pytest.mark.asyncio
async def test_user_errors_exit_non_zero(db_path, capsys) -> None:
    assert await cli(db_path, "add", "", "--due", "2099-01-01") == 1
    assert await cli(db_path, "add", "Keys", "--due", "not a date at all") == 1
    assert await cli(db_path, "delete", "missing") == 1

    err = capsys.readouterr().err
    assert "Title must not be empty" in err
    assert "Reminder not found: missing" in err
    assert ReminderRepository(db_path=db_path).load() == []


@pytest.mark.asyncio
async def test_clear_with_confirmation_flag(db_path, capsys) -> None:
    await cli(db_path, "add", "One", "--due", "2099-01-01")
    await cli(db_path, "add", "Two", "--due", "2099-01-02")

    assert await cli(db_path, "clear", "--yes") == 0
    assert ReminderRepository(db_path=db_path).load() == []


@pytest.mark.asyncio
async def test_due_with_offset_is_stored_as_local_time(db_path, capsys) -> None:
    assert await cli(db_path, "add", "Keys", "--due", "2099-01-01 09:30 +0200") == 0
    capsys.readouterr()

    record = ReminderRepository(db_path=db_path).load()[0]
    expected = datetime(2099, 1, 1, 9, 30, tzinfo=timezone(timedelta(hours=2)))
    assert record.due_at.tzinfo is None
    assert record.due_at == expected.astimezone().replace(tzinfo=None)

    assert await cli(db_path, "list", "--filter", "Overdue") == 0
    assert capsys.readouterr().out.strip() == "No reminders"

    assert await cli(db_path, "stats") == 0
    assert "total=1 active=1 completed=0 overdue=0" in capsys.readouterr().out

    assert await cli(db_path, "export") == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["activeCount"] == 1
    assert payload["overdueCount"] == 0
