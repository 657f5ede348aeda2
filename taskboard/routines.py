"""
Recurring-task ("routine") generation.

A routine is a template row in `routine_tasks`. Generating creates today's
task for every active routine that applies to today's weekday and has no task
due today yet, so repeated runs on the same day insert nothing new.
"""

import logging
from datetime import date

from . import datastore
from .datastore import DEFAULT_PRIORITY, STATUS_TODO

FREQUENCIES = {'daily', 'weekday', 'weekly'}

logger = logging.getLogger(__name__)


def weekday_index(day):
    """0 = Sunday .. 6 = Saturday."""
    return day.isoweekday() % 7


def routine_applies(routine, weekday):
    if not routine.get('is_active'):
        return False
    frequency = routine.get('frequency')
    if frequency == 'daily':
        return True
    if frequency == 'weekday':
        return 1 <= weekday <= 5
    if frequency == 'weekly':
        return routine.get('day_of_week') == weekday
    return False


def routine_task_payload(routine, today_str):
    priority = routine.get('default_priority')
    return {
        'title': routine['title'],
        'status': STATUS_TODO,
        'due_date': today_str,
        'priority': priority if priority is not None else DEFAULT_PRIORITY,
        'routine_id': routine['id'],
    }


def generate_routine_tasks(client, today=None):
    """Insert today's missing routine tasks and return the inserted rows."""
    today = today or date.today()
    today_str = today.isoformat()

    routines = datastore.fetch_active_routines(client)
    if not routines:
        logger.info('No active routines')
        return []

    weekday = weekday_index(today)
    applicable = [r for r in routines if routine_applies(r, weekday)]
    if not applicable:
        logger.info('No routines apply to %s (weekday %d)', today_str, weekday)
        return []

    existing = datastore.fetch_routine_refs(client, today_str, [r['id'] for r in applicable])
    missing = [r for r in applicable if r['id'] not in existing]
    if not missing:
        logger.info('Routine tasks for %s already generated', today_str)
        return []

    inserted = datastore.insert_tasks(
        client,
        [routine_task_payload(r, today_str) for r in missing],
    )
    logger.info('Generated %d routine task(s) for %s', len(inserted), today_str)
    return inserted
