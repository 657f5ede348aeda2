"""
Task list view state.

TaskListView owns everything the list screen needs between requests: the
loaded task rows, the per-section manual order overrides and the drag state.
Rendering is a pure function of that state and today's date.
"""

import logging
import math
import threading
from datetime import date

from . import datastore
from .config import normalize_bool
from .datastore import DEFAULT_PRIORITY, PRIORITY_LABELS, STATUS_DONE, STATUS_TODO, is_date, priority_label
from .errors import DatastoreError
from .inflight import InFlight
from .routines import generate_routine_tasks

SECTIONS = ('today', 'future', 'no_due')

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def task_key(task_id):
    return str(task_id)


def is_done(task):
    return task.get('status') == STATUS_DONE


def is_overdue(task, today):
    due = task.get('due_date')
    if not due or is_done(task):
        return False
    return due < today


def classify(tasks, today):
    """Split tasks by status and due date against `today` (YYYY-MM-DD)."""
    active = [t for t in tasks if not is_done(t)]
    return {
        'completed': [t for t in tasks if is_done(t)],
        'carry_over': [t for t in active if t.get('due_date') and t['due_date'] < today],
        'today': [t for t in active if t.get('due_date') == today],
        'future': [t for t in active if t.get('due_date') and t['due_date'] > today],
        'no_due': [t for t in active if not t.get('due_date')],
    }


def apply_order(tasks, ordered_ids):
    if ordered_ids is None:
        return list(tasks)
    by_id = {task_key(t['id']): t for t in tasks}
    ordered = [by_id[i] for i in ordered_ids if i in by_id]
    known = set(ordered_ids)
    rest = [t for t in tasks if task_key(t['id']) not in known]
    return ordered + rest


def reorder_ids(ids, from_id, to_id):
    new_ids = list(ids)
    if from_id not in new_ids or to_id not in new_ids:
        return new_ids
    from_index = new_ids.index(from_id)
    to_index = new_ids.index(to_id)
    moved = new_ids.pop(from_index)
    new_ids.insert(to_index, moved)
    return new_ids


def completion_stats(tasks):
    total = len(tasks)
    done = sum(1 for t in tasks if is_done(t))
    # Half-up, so 12.5 shows as 13.
    rate = 0 if total == 0 else int(math.floor(done / total * 100 + 0.5))
    return {'total': total, 'done': done, 'completion_rate': rate}


def decorate(task, today):
    item = dict(task)
    item['priority_label'] = priority_label(task.get('priority'))
    item['is_overdue'] = is_overdue(task, today)
    return item


def validate_title(title):
    title = title.strip() if isinstance(title, str) else ''
    if not title:
        raise ValueError('title is required')
    return title


def validate_priority(priority):
    if priority is None or priority == '':
        return DEFAULT_PRIORITY
    try:
        value = int(priority)
    except (TypeError, ValueError):
        raise ValueError(f'Invalid priority: {priority}') from None
    if value not in PRIORITY_LABELS:
        raise ValueError(f'Invalid priority: {priority}')
    return value


def validate_due_date(due_date):
    if due_date is None or due_date == '':
        return None
    due_date = due_date.strip() if isinstance(due_date, str) else due_date
    if not is_date(due_date):
        raise ValueError(f'Invalid due_date: {due_date} (expected a YYYY-MM-DD calendar date)')
    return due_date


# ---------------------------------------------------------------------------
# View state
# ---------------------------------------------------------------------------

class TaskListView:
    def __init__(self, client, clock=date.today):
        self.client = client
        self.clock = clock
        self.inflight = InFlight()
        self.tasks = []
        self.loaded = False
        self.load_error = None
        self.orders = {section: None for section in SECTIONS}
        self.dragging = (None, None)
        self._lock = threading.RLock()

    @property
    def today(self):
        return self.clock().isoformat()

    @property
    def generating(self):
        return 'generate' in self.inflight

    # -- loading ------------------------------------------------------------

    def load(self):
        """
        Fetch all tasks, newest first. Manual ordering does not survive a reload.
        A failed fetch leaves the view unloaded, so the next render retries.
        """
        try:
            rows = datastore.fetch_tasks(self.client)
            error = None
        except DatastoreError as exc:
            rows = []
            error = str(exc)
            logger.warning('Task list shown empty after load failure')
        with self._lock:
            self.tasks = list(rows)
            self.load_error = error
            self.loaded = error is None
            self.orders = {section: None for section in SECTIONS}
            self.dragging = (None, None)
        return self.tasks

    def ensure_loaded(self):
        if not self.loaded:
            self.load()

    def invalidate(self):
        with self._lock:
            self.loaded = False

    # -- reading ------------------------------------------------------------

    def find(self, task_id):
        key = task_key(task_id)
        with self._lock:
            for task in self.tasks:
                if task_key(task['id']) == key:
                    return task
        raise LookupError('Task not found')

    def sections(self, today=None):
        today = today or self.today
        with self._lock:
            groups = classify(self.tasks, today)
            for section in SECTIONS:
                groups[section] = apply_order(groups[section], self.orders[section])
        return groups

    def section_of(self, task_id, today=None):
        key = task_key(task_id)
        groups = self.sections(today)
        for section in SECTIONS:
            if any(task_key(t['id']) == key for t in groups[section]):
                return section
        return None

    def metrics(self):
        with self._lock:
            return completion_stats(self.tasks)

    def render(self):
        self.ensure_loaded()
        today = self.today
        groups = self.sections(today)
        payload = {
            'today': today,
            'sections': {
                section: [decorate(t, today) for t in groups[section]]
                for section in SECTIONS
            },
            'carry_over': [decorate(t, today) for t in groups['carry_over']],
            'completed': [decorate(t, today) for t in groups['completed']],
            'generating': self.generating,
            'load_error': self.load_error,
        }
        payload.update(self.metrics())
        return payload

    # -- mutations ----------------------------------------------------------

    def create_task(self, title, due_date=None, priority=None, description=None, auto_carry_over=True):
        payload = {
            'title': validate_title(title),
            'status': STATUS_TODO,
            'due_date': validate_due_date(due_date),
            'priority': validate_priority(priority),
            'auto_carry_over': normalize_bool(auto_carry_over, default=True),
        }
        if isinstance(description, str) and description.strip():
            payload['description'] = description.strip()

        with self.inflight.guard('create'):
            row = datastore.insert_task(self.client, payload)
        with self._lock:
            self.tasks.insert(0, row)
        return row

    def rename_task(self, task_id, title):
        title = validate_title(title)
        task = self.find(task_id)
        with self.inflight.guard(f'rename:{task_key(task_id)}'):
            row = datastore.update_task(self.client, task['id'], {'title': title})
        self._replace(row)
        return row

    def set_status(self, task_id, status):
        if status not in (STATUS_TODO, STATUS_DONE):
            raise ValueError(f'Invalid status: {status}')
        task = self.find(task_id)
        with self.inflight.guard(f'toggle:{task_key(task_id)}'):
            row = datastore.update_task(self.client, task['id'], {'status': status})
        self._replace(row)
        return row

    def toggle_status(self, task_id):
        task = self.find(task_id)
        new_status = STATUS_TODO if is_done(task) else STATUS_DONE
        return self.set_status(task_id, new_status)

    def delete_task(self, task_id):
        task = self.find(task_id)
        with self.inflight.guard(f'delete:{task_key(task_id)}'):
            datastore.delete_task(self.client, task['id'])
        key = task_key(task_id)
        with self._lock:
            self.tasks = [t for t in self.tasks if task_key(t['id']) != key]
        return task

    def generate_routines(self):
        """Create today's missing routine tasks; only one run at a time."""
        with self.inflight.guard('generate'):
            inserted = generate_routine_tasks(self.client, self.clock())
        if inserted:
            with self._lock:
                self.tasks = list(inserted) + self.tasks
        return inserted

    def _replace(self, row):
        key = task_key(row['id'])
        with self._lock:
            self.tasks = [row if task_key(t['id']) == key else t for t in self.tasks]

    # -- manual ordering ----------------------------------------------------

    def drag_start(self, section, task_id):
        if section not in SECTIONS:
            raise ValueError(f'Unknown section: {section}')
        with self._lock:
            self.dragging = (section, task_key(task_id))

    def drag_over(self, section, over_id):
        over_key = task_key(over_id)
        with self._lock:
            drag_section, drag_id = self.dragging
            if drag_id is None or drag_section != section:
                return False
            if drag_id == over_key:
                return False
            current = [task_key(t['id']) for t in self.sections()[section]]
            new_ids = reorder_ids(current, drag_id, over_key)
            if new_ids == current:
                return False
            self.orders[section] = new_ids
            return True

    def drop(self):
        with self._lock:
            self.dragging = (None, None)

    def move_task(self, task_id, over_id):
        """Drag `task_id` onto `over_id`. Moves across sections are ignored."""
        self.ensure_loaded()
        with self._lock:
            section = self.section_of(task_id)
            if section is None:
                return False
            self.drag_start(section, task_id)
            try:
                return self.drag_over(self.section_of(over_id), over_id)
            finally:
                self.drop()
