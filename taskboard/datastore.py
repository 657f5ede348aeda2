"""
Supabase access for the `tasks` and `routine_tasks` tables.

Every query the application issues lives here, one function each. Failures
(PostgREST error responses and transport errors) are logged and re-raised as
DatastoreError so callers deal with a single exception type.
"""

import logging
import re
from datetime import date

import httpx
from postgrest.exceptions import APIError
from supabase import create_client

from .errors import ConfigError, DatastoreError

TASKS_TABLE = 'tasks'
ROUTINES_TABLE = 'routine_tasks'

STATUS_TODO = 'todo'
STATUS_DONE = 'done'
STATUS_OPTIONS = [STATUS_TODO, STATUS_DONE]

DEFAULT_PRIORITY = 2
PRIORITY_LABELS = {
    1: 'low',
    2: 'normal',
    3: 'high',
    4: 'urgent',
}

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

logger = logging.getLogger(__name__)


def is_date(value):
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def priority_label(priority):
    return PRIORITY_LABELS.get(priority, 'unset')


def create_datastore(config):
    url = config.get('supabase_url')
    key = config.get('supabase_key')
    if not url or not key:
        raise ConfigError('Supabase URL or anon key is missing')
    return create_client(url, key)


def _execute(query, action):
    try:
        response = query.execute()
    except APIError as exc:
        logger.error('%s failed: %s', action, exc.message or exc)
        raise DatastoreError(f'{action} failed: {exc.message or exc}', code=exc.code) from exc
    except httpx.HTTPError as exc:
        logger.error('%s failed: %s', action, exc)
        raise DatastoreError(f'{action} failed: {exc}') from exc
    return response.data or []


# ---------------------------------------------------------------------------
# tasks
# ---------------------------------------------------------------------------

def fetch_tasks(client):
    query = client.table(TASKS_TABLE).select('*').order('created_at', desc=True)
    return _execute(query, 'Fetching tasks')


def fetch_task(client, task_id):
    """Return the task row, or None when no row has this id."""
    query = client.table(TASKS_TABLE).select('*').eq('id', task_id).limit(1)
    rows = _execute(query, f'Fetching task {task_id}')
    return rows[0] if rows else None


def insert_tasks(client, payloads):
    if not payloads:
        return []
    query = client.table(TASKS_TABLE).insert(payloads)
    return _execute(query, 'Inserting tasks')


def insert_task(client, payload):
    rows = insert_tasks(client, [payload])
    if not rows:
        raise DatastoreError('Inserting task returned no row')
    return rows[0]


def update_task(client, task_id, changes):
    query = client.table(TASKS_TABLE).update(changes).eq('id', task_id)
    rows = _execute(query, f'Updating task {task_id}')
    if not rows:
        raise DatastoreError(f'Task {task_id} not found')
    return rows[0]


def delete_task(client, task_id):
    query = client.table(TASKS_TABLE).delete().eq('id', task_id)
    return _execute(query, f'Deleting task {task_id}')


def fetch_routine_refs(client, due_date, routine_ids):
    """Routine ids that already have a task due on `due_date`."""
    if not routine_ids:
        return set()
    query = (
        client.table(TASKS_TABLE)
        .select('routine_id')
        .eq('due_date', due_date)
        .in_('routine_id', list(routine_ids))
    )
    rows = _execute(query, 'Checking existing routine tasks')
    return {row['routine_id'] for row in rows if row.get('routine_id')}


def carry_over_tasks(client, source_date, target_date):
    """Move unfinished, carry-over-enabled tasks due on source_date to target_date."""
    query = (
        client.table(TASKS_TABLE)
        .update({'due_date': target_date})
        .eq('due_date', source_date)
        .eq('status', STATUS_TODO)
        .eq('auto_carry_over', True)
    )
    rows = _execute(query, 'Carrying over tasks')
    return [row['id'] for row in rows]


# ---------------------------------------------------------------------------
# routine_tasks
# ---------------------------------------------------------------------------

def fetch_active_routines(client):
    query = client.table(ROUTINES_TABLE).select('*').eq('is_active', True)
    return _execute(query, 'Fetching routines')
