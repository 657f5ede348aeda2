"""Shared fixtures: a fake datastore, a fixed 'today' and a Flask test client."""

from datetime import date

import pytest

import server
from taskboard.config import default_config
from taskboard.task_list import TaskListView

from .fakes import FakeSupabase

# A Monday.
TODAY = date(2025, 11, 17)


@pytest.fixture()
def db():
    return FakeSupabase()


@pytest.fixture()
def view(db):
    return TaskListView(db, clock=lambda: TODAY)


@pytest.fixture()
def config(tmp_path):
    cfg = default_config()
    cfg.update({
        'supabase_key': 'anon-key',
        'openai_api_key': 'sk-test',
        'log_dir': str(tmp_path / 'logs'),
    })
    return cfg


@pytest.fixture()
def client(db, config):
    server.use_config(config)
    server.use_datastore(db, clock=lambda: TODAY)
    server.app.config['TESTING'] = True
    with server.app.test_client() as test_client:
        yield test_client
    server.use_config(None)
    server.use_datastore(None)
