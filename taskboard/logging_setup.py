import logging
import os
import sys


class _ConsoleNoiseFilter(logging.Filter):
    """Keep app logs on the console; third-party libraries only at ERROR+."""

    def filter(self, record):
        name = record.name
        if name.startswith('taskboard') or name in {'server', '__main__'}:
            return True
        return record.levelno >= logging.ERROR


def setup_logging(log_dir, console_level='INFO', file_level=logging.DEBUG):
    """
    Configure the root logger with a filtered console handler and a file
    handler that records everything. Call once, before the first log line.
    """
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, 'taskboard.log')

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    fmt = logging.Formatter(
        fmt='%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
