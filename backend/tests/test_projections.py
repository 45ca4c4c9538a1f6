# tests/test_projections.py - kanban, calendar and gantt placement
from datetime import date

from projecthub.domain.enums import PROJECT_STATUSES
from projecthub.domain.projections import calendar_days, gantt_bars, kanban_columns
from tests.conftest import make_task, utc


def test_kanban_keeps_empty_columns_and_engine_order():
    tasks = [
        make_task("b", status="todo"),
        make_task("a", status="completed"),
        make_task("c", status="todo"),
    ]
    columns = kanban_columns(tasks, PROJECT_STATUSES)
    assert list(columns) == ["todo", "in-progress", "completed"]
    assert [t.title for t in columns["todo"]] == ["b", "c"]
    assert columns["in-progress"] == []


def test_kanban_appends_unexpected_statuses():
    columns = kanban_columns([make_task("x", status="on-hold")], PROJECT_STATUSES)
    assert list(columns)[-1] == "on-hold"


def test_calendar_buckets_by_utc_day():
    tasks = [
        make_task("late", due_date=utc(2024, 3, 2, 23, 30)),
        make_task("none"),
        make_task("early", due_date=utc(2024, 3, 1, 9)),
        make_task("same day", due_date=utc(2024, 3, 2, 8)),
    ]
    days = calendar_days(tasks)
    assert list(days) == [date(2024, 3, 1), date(2024, 3, 2)]
    assert [t.title for t in days[date(2024, 3, 2)]] == ["late", "same day"]


def test_calendar_by_start_date():
    days = calendar_days([make_task("kickoff", start_date=utc(2024, 5, 1))], "start_date")
    assert list(days) == [date(2024, 5, 1)]


def test_gantt_bars_fall_back_and_order_ends():
    tasks = [
        make_task("full", start_date=utc(2024, 1, 1), due_date=utc(2024, 1, 5)),
        make_task("due only", due_date=utc(2024, 2, 1)),
        make_task("nothing"),
        make_task("backwards", start_date=utc(2024, 3, 10), due_date=utc(2024, 3, 1)),
    ]
    bars = gantt_bars(tasks)
    assert [b.task.title for b in bars] == ["full", "due only", "backwards"]
    assert bars[1].start == bars[1].end == utc(2024, 2, 1)
    assert bars[2].start == utc(2024, 3, 1) and bars[2].end == utc(2024, 3, 10)


def test_calendar_window_is_inclusive():
    tasks = [
        make_task("before", due_date=utc(2024, 2, 29, 23, 59)),
        make_task("first day", due_date=utc(2024, 3, 1)),
        make_task("last day", due_date=utc(2024, 3, 31, 23, 59)),
        make_task("after", due_date=utc(2024, 4, 1)),
    ]
    days = calendar_days(tasks, start=date(2024, 3, 1), end=date(2024, 3, 31))
    assert list(days) == [date(2024, 3, 1), date(2024, 3, 31)]

    open_ended = calendar_days(tasks, start=date(2024, 3, 31))
    assert [t.title for day in open_ended.values() for t in day] == ["last day", "after"]
