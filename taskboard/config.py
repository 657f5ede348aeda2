"""
Settings for the Taskboard server.

Values are resolved in order: built-in defaults, then an optional JSON config
file, then environment variables. The result is a plain dict.
"""

import json
import logging
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CONFIG_FILE = os.path.join(BASE_DIR, 'taskboard_config.json')
DEFAULT_LOG_DIR = os.path.join(BASE_DIR, 'logs')

# Local Supabase stack (`supabase start`) listens here.
DEFAULT_SUPABASE_URL = 'http://127.0.0.1:54321'
DEFAULT_CHAT_MODEL = 'gpt-4o-mini'
DEFAULT_TIMEZONE = 'Asia/Tokyo'
LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}

# config key -> environment variable
ENV_VARS = {
    'supabase_url': 'SUPABASE_URL',
    'supabase_key': 'SUPABASE_ANON_KEY',
    'openai_api_key': 'OPENAI_API_KEY',
    'chat_model': 'TASKBOARD_CHAT_MODEL',
    'timezone': 'TASKBOARD_TIMEZONE',
    'cron_secret': 'CRON_SECRET',
    'log_level': 'TASKBOARD_LOG_LEVEL',
    'log_dir': 'TASKBOARD_LOG_DIR',
    'web_port': 'TASKBOARD_WEB_PORT',
    'mcp_port': 'TASKBOARD_MCP_PORT',
}

logger = logging.getLogger(__name__)


def normalize_str(value, default=''):
    if not isinstance(value, str):
        return default
    trimmed = value.strip()
    return trimmed or default


def normalize_bool(value, default=True):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {'true', '1', 'yes', 'on'}:
            return True
        if lowered in {'false', '0', 'no', 'off'}:
            return False
    return default


def normalize_int(value, default, minimum=None, maximum=None):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        parsed = default
    if minimum is not None:
        parsed = max(minimum, parsed)
    if maximum is not None:
        parsed = min(maximum, parsed)
    return parsed


def normalize_timezone(value):
    name = normalize_str(value, DEFAULT_TIMEZONE)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning('Unknown timezone %r, using %s', name, DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE
    return name


def normalize_log_level(value):
    level = normalize_str(value, 'INFO').upper()
    return level if level in LOG_LEVELS else 'INFO'


def default_config():
    return {
        'supabase_url': DEFAULT_SUPABASE_URL,
        'supabase_key': '',
        'openai_api_key': '',
        'chat_model': DEFAULT_CHAT_MODEL,
        'timezone': DEFAULT_TIMEZONE,
        'cron_secret': '',
        'log_level': 'INFO',
        'log_dir': DEFAULT_LOG_DIR,
        'web_port': 5050,
        'mcp_port': 5051,
    }


def normalized_config(data):
    defaults = default_config()
    return {
        'supabase_url': normalize_str(data.get('supabase_url'), defaults['supabase_url']).rstrip('/'),
        'supabase_key': normalize_str(data.get('supabase_key')),
        'openai_api_key': normalize_str(data.get('openai_api_key')),
        'chat_model': normalize_str(data.get('chat_model'), defaults['chat_model']),
        'timezone': normalize_timezone(data.get('timezone')),
        'cron_secret': normalize_str(data.get('cron_secret')),
        'log_level': normalize_log_level(data.get('log_level')),
        'log_dir': os.path.abspath(os.path.expanduser(
            normalize_str(data.get('log_dir'), defaults['log_dir'])
        )),
        'web_port': normalize_int(data.get('web_port'), defaults['web_port'], minimum=1, maximum=65535),
        'mcp_port': normalize_int(data.get('mcp_port'), defaults['mcp_port'], minimum=1, maximum=65535),
    }


def read_config_file(config_file):
    if not config_file or not os.path.exists(config_file):
        return {}
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning('Ignoring unreadable config file %s: %s', config_file, exc)
        return {}
    if not isinstance(raw, dict):
        logger.warning('Ignoring config file %s: expected a JSON object', config_file)
        return {}
    return raw


def load_config(config_file=None, environ=None):
    environ = os.environ if environ is None else environ
    config_file = config_file or environ.get('TASKBOARD_CONFIG') or DEFAULT_CONFIG_FILE

    merged = default_config()
    merged.update({k: v for k, v in read_config_file(config_file).items() if k in merged})
    for key, env_name in ENV_VARS.items():
        value = environ.get(env_name)
        if value is not None and value.strip():
            merged[key] = value
    return normalized_config(merged)
