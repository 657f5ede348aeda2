"""
Tests for the single-task detail view.
"""
import pytest

from taskboard.errors import DatastoreError
from taskboard.task_detail import LIST_PATH, TaskDetailView

TODAY = '2025-11-17'


def test_load_and_render_found_task(db):
    task = db.add_task(title='Write report', due_date='2025-11-20', priority=3)
    detail = TaskDetailView(db, task['id'])
    detail.load()

    payload = detail.render(TODAY)
    assert payload['found'] is True
    assert payload['task']['title'] == 'Write report'
    assert payload['task']['priority_label'] == 'high'
    assert payload['back'] == LIST_PATH


def test_missing_and_failed_fetch_render_the_same(db):
    missing = TaskDetailView(db, 'nope')
    missing.load()

    task = db.add_task(title='exists')
    db.fail_next('tasks', 'select')
    failed = TaskDetailView(db, task['id'])
    failed.load()

    assert missing.render(TODAY) == failed.render(TODAY)
    assert missing.render(TODAY)['found'] is False


def test_update_title_returns_full_record(db):
    task = db.add_task(title='old', due_date=TODAY)
    detail = TaskDetailView(db, task['id'])
    detail.load()

    updated = detail.update_title('  new  ')
    assert updated['title'] == 'new'
    assert updated['due_date'] == TODAY
    assert db.task(task['id'])['title'] == 'new'


def test_update_title_requires_text(db):
    task = db.add_task(title='old')
    detail = TaskDetailView(db, task['id'])
    detail.load()
    with pytest.raises(ValueError):
        detail.update_title('   ')
    assert db.task(task['id'])['title'] == 'old'


def test_update_failure_keeps_loaded_task(db):
    task = db.add_task(title='old')
    detail = TaskDetailView(db, task['id'])
    detail.load()
    db.fail_next('tasks', 'update')
    with pytest.raises(DatastoreError):
        detail.update_title('new')
    assert detail.task['title'] == 'old'


def test_delete_returns_list_path(db):
    task = db.add_task(title='bye')
    detail = TaskDetailView(db, task['id'])
    detail.load()
    assert detail.delete() == LIST_PATH
    assert db.task(task['id']) is None
    assert detail.found is False


def test_delete_without_task_raises(db):
    detail = TaskDetailView(db, 'nope')
    detail.load()
    with pytest.raises(LookupError):
        detail.delete()
