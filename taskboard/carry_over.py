import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from . import datastore
from .config import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)


def carry_over_dates(timezone=DEFAULT_TIMEZONE, now=None):
    """Return (yesterday, today) as YYYY-MM-DD strings in `timezone`."""
    tz = ZoneInfo(timezone)
    local_now = now.astimezone(tz) if now else datetime.now(tz)
    today = local_now.date()
    yesterday = today - timedelta(days=1)
    return yesterday.isoformat(), today.isoformat()


def run_carry_over(client, timezone=DEFAULT_TIMEZONE, now=None):
    """
    Move yesterday's unfinished tasks that opted into carry-over to today.

    Rerunning on the same day is a no-op: no eligible row is still due
    yesterday after the first run.
    """
    source, target = carry_over_dates(timezone, now)
    moved = datastore.carry_over_tasks(client, source, target)
    logger.info('Carried over %d task(s) from %s to %s', len(moved), source, target)
    return {
        'ok': True,
        'moved_count': len(moved),
        'from': source,
        'to': target,
    }
