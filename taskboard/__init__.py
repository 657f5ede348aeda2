"""Taskboard: personal task list, routine generator and chat relay."""

__version__ = '1.0.0'
