"""
Tests for routine applicability and generation.
"""
from datetime import date

import pytest

from taskboard.errors import BusyError, DatastoreError
from taskboard.routines import generate_routine_tasks, routine_applies, weekday_index
from taskboard.task_list import TaskListView

MONDAY = date(2025, 11, 17)
WEDNESDAY = date(2025, 11, 19)
SATURDAY = date(2025, 11, 22)
SUNDAY = date(2025, 11, 23)


def test_weekday_index_starts_on_sunday():
    assert weekday_index(SUNDAY) == 0
    assert weekday_index(MONDAY) == 1
    assert weekday_index(WEDNESDAY) == 3
    assert weekday_index(SATURDAY) == 6


@pytest.mark.parametrize('routine,weekday,expected', [
    ({'is_active': True, 'frequency': 'daily'}, 0, True),
    ({'is_active': True, 'frequency': 'weekday'}, 1, True),
    ({'is_active': True, 'frequency': 'weekday'}, 5, True),
    ({'is_active': True, 'frequency': 'weekday'}, 6, False),
    ({'is_active': True, 'frequency': 'weekday'}, 0, False),
    ({'is_active': True, 'frequency': 'weekly', 'day_of_week': 3}, 3, True),
    ({'is_active': True, 'frequency': 'weekly', 'day_of_week': 3}, 2, False),
    ({'is_active': True, 'frequency': 'monthly'}, 1, False),
    ({'is_active': False, 'frequency': 'daily'}, 1, False),
])
def test_routine_applies(routine, weekday, expected):
    assert routine_applies(routine, weekday) is expected


def test_generate_inserts_one_task_per_applicable_routine(db):
    daily = db.add_routine(title='Stretch', frequency='daily', default_priority=3)
    weekly = db.add_routine(title='Review', frequency='weekly', day_of_week=3)
    db.add_routine(title='Paused', frequency='daily', is_active=False)

    inserted = generate_routine_tasks(db, WEDNESDAY)

    by_routine = {t['routine_id']: t for t in inserted}
    assert set(by_routine) == {daily['id'], weekly['id']}
    assert by_routine[daily['id']]['priority'] == 3
    assert by_routine[weekly['id']]['priority'] == 2
    for task in inserted:
        assert task['status'] == 'todo'
        assert task['due_date'] == '2025-11-19'


def test_weekly_routine_skipped_on_other_days(db):
    db.add_routine(title='Review', frequency='weekly', day_of_week=3)
    assert generate_routine_tasks(db, MONDAY) == []
    assert db.tables['tasks'] == []


def test_generate_is_idempotent_per_day(db):
    db.add_routine(title='Stretch', frequency='daily')
    db.add_routine(title='Standup', frequency='weekday')

    first = generate_routine_tasks(db, MONDAY)
    second = generate_routine_tasks(db, MONDAY)

    assert len(first) == 2
    assert second == []
    assert len(db.tables['tasks']) == 2


def test_generate_fills_only_missing_routines(db):
    stretch = db.add_routine(title='Stretch', frequency='daily')
    read = db.add_routine(title='Read', frequency='daily')
    db.add_task(title='Stretch', due_date='2025-11-17', routine_id=stretch['id'])

    inserted = generate_routine_tasks(db, MONDAY)
    assert [t['routine_id'] for t in inserted] == [read['id']]


def test_existing_task_on_another_day_does_not_block(db):
    stretch = db.add_routine(title='Stretch', frequency='daily')
    db.add_task(title='Stretch', due_date='2025-11-16', routine_id=stretch['id'])
    assert len(generate_routine_tasks(db, MONDAY)) == 1


def test_no_active_routines_is_noop(db):
    assert generate_routine_tasks(db, MONDAY) == []
    assert [c[:2] for c in db.calls] == [('routine_tasks', 'select')]


def test_generate_aborts_on_existing_check_failure(db):
    db.add_routine(title='Stretch', frequency='daily')
    db.fail_next('tasks', 'select')
    with pytest.raises(DatastoreError):
        generate_routine_tasks(db, MONDAY)
    assert db.tables['tasks'] == []


def test_view_prepends_generated_tasks(db):
    existing = db.add_task(title='manual')
    db.add_routine(title='Stretch', frequency='daily')
    view = TaskListView(db, clock=lambda: MONDAY)
    view.load()

    inserted = view.generate_routines()
    assert [t['id'] for t in view.tasks] == [inserted[0]['id'], existing['id']]
    assert view.generate_routines() == []
    assert len(view.tasks) == 2


def test_concurrent_generation_is_rejected(db):
    db.add_routine(title='Stretch', frequency='daily')
    view = TaskListView(db, clock=lambda: MONDAY)
    view.load()
    with view.inflight.guard('generate'):
        assert view.generating is True
        with pytest.raises(BusyError):
            view.generate_routines()
    assert view.generating is False
    assert db.tables['tasks'] == []
