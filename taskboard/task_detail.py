import logging

from . import datastore
from .errors import DatastoreError
from .inflight import InFlight
from .task_list import decorate, validate_title

LIST_PATH = '/tasks'
NOT_FOUND_MESSAGE = 'Task not found'

logger = logging.getLogger(__name__)


class TaskDetailView:
    """Single-task screen: load, edit the title, delete."""

    def __init__(self, client, task_id, inflight=None):
        self.client = client
        self.task_id = task_id
        self.inflight = inflight or InFlight()
        self.task = None

    @property
    def found(self):
        return self.task is not None

    def load(self):
        # A missing row and a failed fetch look the same to the user.
        try:
            self.task = datastore.fetch_task(self.client, self.task_id)
        except DatastoreError:
            self.task = None
        if self.task is None:
            logger.info('Task %s not found', self.task_id)
        return self.task

    def render(self, today):
        if not self.found:
            return {'found': False, 'error': NOT_FOUND_MESSAGE, 'back': LIST_PATH}
        return {'found': True, 'task': decorate(self.task, today), 'back': LIST_PATH}

    def update_title(self, title):
        title = validate_title(title)
        if not self.found:
            raise LookupError(NOT_FOUND_MESSAGE)
        with self.inflight.guard(f'save:{self.task_id}'):
            self.task = datastore.update_task(self.client, self.task['id'], {'title': title})
        return self.task

    def delete(self):
        """Delete the task and return the path to navigate back to."""
        if not self.found:
            raise LookupError(NOT_FOUND_MESSAGE)
        with self.inflight.guard(f'delete:{self.task_id}'):
            datastore.delete_task(self.client, self.task['id'])
        self.task = None
        return LIST_PATH
