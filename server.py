#!/usr/bin/env python3
"""
Taskboard - Flask API Server
Personal task list backed by Supabase, with routine generation, a daily
carry-over job and a single-turn chat assistant.
MCP tools are served via FastMCP on port 5051 (streamable-HTTP transport).
"""

from flask import Flask, jsonify, request
from datetime import datetime
from functools import wraps
import hmac
import json
import logging
import os
import threading

from mcp.server.fastmcp import FastMCP

from taskboard import __version__
from taskboard.carry_over import run_carry_over
from taskboard.chat import relay_chat
from taskboard.config import load_config
from taskboard.datastore import create_datastore
from taskboard.errors import BusyError, ChatConfigError, ChatUpstreamError, ConfigError, DatastoreError
from taskboard.inflight import InFlight
from taskboard.logging_setup import setup_logging
from taskboard.task_detail import TaskDetailView
from taskboard.task_list import SECTIONS, TaskListView

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
STARTUP_LOG_FILE = os.path.join(BASE_DIR, 'server.log')
MCP_SERVER_NAME = 'taskboard-mcp'
MCP_SERVER_VERSION = __version__
MCP_PORT = 5051

logger = logging.getLogger('server')

# FastMCP instance: serves MCP streamable-HTTP transport on MCP_PORT
mcp = FastMCP(
    MCP_SERVER_NAME,
    host='127.0.0.1',
    port=MCP_PORT,
)

# Process-wide state: one datastore handle, one list view, one detail guard.
_state_lock = threading.Lock()
_config = None
_datastore = None
_task_list = None
_detail_inflight = InFlight()


# ---------------------------------------------------------------------------
# State helpers
# ---------------------------------------------------------------------------

def get_config():
    global _config
    with _state_lock:
        if _config is None:
            _config = load_config()
        return _config


def use_config(config):
    global _config
    with _state_lock:
        _config = config


def get_datastore():
    global _datastore
    config = get_config()
    with _state_lock:
        if _datastore is None:
            _datastore = create_datastore(config)
        return _datastore


def use_datastore(client, clock=None):
    """Install a datastore client and start a fresh list view on it."""
    global _datastore, _task_list
    with _state_lock:
        _datastore = client
        if client is None:
            _task_list = None
        elif clock is None:
            _task_list = TaskListView(client)
        else:
            _task_list = TaskListView(client, clock)


def get_task_list():
    global _task_list
    client = get_datastore()
    with _state_lock:
        if _task_list is None:
            _task_list = TaskListView(client)
        return _task_list


def mcp_server_config(web_url='http://localhost:5050'):
    mcp_url = f'http://localhost:{mcp.settings.port}/mcp'
    return {
        'mcpServers': {
            MCP_SERVER_NAME: {
                'url': mcp_url,
                'type': 'http',
            }
        }
    }


def write_startup_log(web_url, config):
    timestamp = datetime.now().isoformat(timespec='seconds')
    mcp_config = mcp_server_config(web_url)
    lines = [
        f"[{timestamp}] Taskboard {MCP_SERVER_VERSION} running at {web_url}",
        f"Supabase: {config['supabase_url']}",
        f"Chat model: {config['chat_model']}",
        f"Carry-over timezone: {config['timezone']}",
        f"MCP server: http://localhost:{mcp.settings.port}/mcp",
        f"MCP server config: {json.dumps(mcp_config, ensure_ascii=True)}",
        ""
    ]
    try:
        with open(STARTUP_LOG_FILE, 'a', encoding='utf-8') as f:
            f.write('\n'.join(lines))
    except OSError as exc:
        logger.warning('Could not write startup log: %s', exc)


def task_error_response(exc):
    if isinstance(exc, ValueError):
        return jsonify({'error': str(exc)}), 400
    if isinstance(exc, LookupError):
        return jsonify({'error': str(exc)}), 404
    if isinstance(exc, BusyError):
        return jsonify({'error': str(exc)}), 409
    if isinstance(exc, ConfigError):
        return jsonify({'error': str(exc)}), 500
    return jsonify({'error': str(exc)}), 502


TASK_ERRORS = (ValueError, LookupError, BusyError, ConfigError, DatastoreError)


# ---------------------------------------------------------------------------
# MCP tools (FastMCP)
# ---------------------------------------------------------------------------

@mcp.tool()
def list_tasks(section: str | None = None) -> dict:
    """List tasks as shown on the task list.

    Args:
        section: Optional bucket: today, future, no_due, carry_over, completed.
            Omit to get the full list view including completion stats.
    """
    view = get_task_list().render()
    if not section:
        return view
    section = section.strip().lower()
    if section in SECTIONS:
        tasks = view['sections'][section]
    elif section in {'carry_over', 'completed'}:
        tasks = view[section]
    else:
        raise ValueError(f'Invalid section: {section}')
    return {'today': view['today'], 'tasks': tasks, 'count': len(tasks)}


@mcp.tool()
def create_task(
    title: str,
    due_date: str | None = None,
    priority: int = 2,
    description: str | None = None,
) -> dict:
    """Create a new task.

    Args:
        title: Task title.
        due_date: Optional due date in YYYY-MM-DD format.
        priority: 1 low, 2 normal, 3 high, 4 urgent. Default: 2.
        description: Optional longer description.
    """
    view = get_task_list()
    view.ensure_loaded()
    task = view.create_task(title, due_date=due_date, priority=priority, description=description)
    return {'task': task}


@mcp.tool()
def set_task_status(task_id: str, status: str) -> dict:
    """Mark a task as todo or done.

    Args:
        task_id: Task ID.
        status: New status: todo, done.
    """
    view = get_task_list()
    view.ensure_loaded()
    task = view.set_status(task_id, status.strip().lower())
    return {'task': task}


@mcp.tool()
def generate_routine_tasks() -> dict:
    """Create today's tasks from active routines. Safe to call repeatedly."""
    view = get_task_list()
    view.ensure_loaded()
    inserted = view.generate_routines()
    return {'tasks': inserted, 'count': len(inserted)}


@mcp.tool()
def carry_over_now() -> dict:
    """Move yesterday's unfinished carry-over tasks to today."""
    config = get_config()
    result = run_carry_over(get_datastore(), config['timezone'])
    get_task_list().invalidate()
    return result


# ---------------------------------------------------------------------------
# Flask routes
# ---------------------------------------------------------------------------

def current_web_url():
    return request.host_url.rstrip('/')


def request_data():
    return request.get_json(silent=True) or {}


def require_cron_secret(f):
    """Reject carry-over calls without the configured bearer secret."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = get_config()['cron_secret']
        if not secret:
            return f(*args, **kwargs)
        provided = request.headers.get('Authorization', '')
        if not hmac.compare_digest(provided, f'Bearer {secret}'):
            return jsonify({'ok': False, 'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated


@app.route('/health')
def health():
    return jsonify({'status': 'ok', 'version': MCP_SERVER_VERSION})


@app.route('/api/mcp-config', methods=['GET'])
def get_mcp_config():
    return jsonify(mcp_server_config(current_web_url()))


@app.route('/api/tasks', methods=['GET'])
def get_tasks():
    try:
        return jsonify(get_task_list().render())
    except ConfigError as exc:
        return task_error_response(exc)


@app.route('/api/tasks/refresh', methods=['POST'])
def refresh_tasks():
    try:
        view = get_task_list()
    except ConfigError as exc:
        return task_error_response(exc)
    view.load()
    return jsonify(view.render())


@app.route('/api/tasks', methods=['POST'])
def create_task_api():
    data = request_data()
    try:
        view = get_task_list()
        view.ensure_loaded()
        task = view.create_task(
            data.get('title'),
            due_date=data.get('due_date'),
            priority=data.get('priority'),
            description=data.get('description'),
            auto_carry_over=data.get('auto_carry_over', True),
        )
    except TASK_ERRORS as exc:
        return task_error_response(exc)
    return jsonify(task), 201


@app.route('/api/tasks/reorder', methods=['POST'])
def reorder_tasks():
    data = request_data()
    task_id = data.get('task_id')
    over_id = data.get('over_id')
    if task_id is None or over_id is None:
        return jsonify({'error': 'task_id and over_id are required'}), 400
    try:
        view = get_task_list()
    except ConfigError as exc:
        return task_error_response(exc)
    moved = view.move_task(task_id, over_id)
    payload = view.render()
    payload['moved'] = moved
    return jsonify(payload)


@app.route('/api/tasks/<task_id>', methods=['PATCH'])
def rename_task(task_id):
    data = request_data()
    try:
        view = get_task_list()
        view.ensure_loaded()
        task = view.rename_task(task_id, data.get('title'))
    except TASK_ERRORS as exc:
        return task_error_response(exc)
    return jsonify(task)


@app.route('/api/tasks/<task_id>', methods=['DELETE'])
def delete_task(task_id):
    try:
        view = get_task_list()
        view.ensure_loaded()
        task = view.delete_task(task_id)
    except TASK_ERRORS as exc:
        return task_error_response(exc)
    return jsonify({'success': True, 'id': task['id']})


@app.route('/api/tasks/<task_id>/toggle', methods=['POST'])
def toggle_task(task_id):
    try:
        view = get_task_list()
        view.ensure_loaded()
        task = view.toggle_status(task_id)
    except TASK_ERRORS as exc:
        return task_error_response(exc)
    return jsonify(task)


@app.route('/api/tasks/<task_id>/detail', methods=['GET', 'PUT', 'DELETE'])
def task_detail(task_id):
    try:
        client = get_datastore()
    except ConfigError as exc:
        return task_error_response(exc)

    detail = TaskDetailView(client, task_id, inflight=_detail_inflight)
    detail.load()
    today = get_task_list().today
    if not detail.found:
        return jsonify(detail.render(today)), 404

    if request.method == 'GET':
        return jsonify(detail.render(today))

    try:
        if request.method == 'PUT':
            detail.update_title(request_data().get('title'))
            get_task_list().invalidate()
            return jsonify(detail.render(today))
        redirect_to = detail.delete()
    except TASK_ERRORS as exc:
        return task_error_response(exc)
    get_task_list().invalidate()
    return jsonify({'success': True, 'id': task_id, 'redirect': redirect_to})


@app.route('/api/routines/generate', methods=['POST'])
def generate_routines():
    try:
        view = get_task_list()
        view.ensure_loaded()
        inserted = view.generate_routines()
    except TASK_ERRORS as exc:
        return task_error_response(exc)
    return jsonify({'tasks': inserted, 'count': len(inserted)})


@app.route('/api/cron/carry-over', methods=['GET'])
@require_cron_secret
def cron_carry_over():
    try:
        config = get_config()
        result = run_carry_over(get_datastore(), config['timezone'])
        status = 200
    except (ConfigError, DatastoreError) as exc:
        result, status = {'ok': False, 'error': str(exc)}, 500
    except Exception as exc:
        logger.exception('Unexpected carry-over failure')
        result, status = {'ok': False, 'error': str(exc) or 'unknown error'}, 500
    else:
        if _task_list is not None:
            _task_list.invalidate()

    response = jsonify(result)
    response.status_code = status
    response.headers['Cache-Control'] = 'no-store, max-age=0'
    return response


@app.route('/api/chat', methods=['POST'])
def chat():
    message = request_data().get('message')
    if not isinstance(message, str) or not message.strip():
        return jsonify({'error': 'message is required'}), 400

    config = get_config()
    try:
        answer = relay_chat(message, config['openai_api_key'], model=config['chat_model'])
    except ChatConfigError as exc:
        return jsonify({'error': str(exc)}), 500
    except ChatUpstreamError as exc:
        return jsonify({'error': str(exc), 'detail': exc.detail}), 500
    return jsonify({'answer': answer})


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == '__main__':
    config = get_config()
    setup_logging(config['log_dir'], console_level=config['log_level'])
    web_url = f"http://localhost:{config['web_port']}"
    mcp.settings.port = config['mcp_port']

    print(f"Taskboard web API:    {web_url}")
    print(f"MCP server:           http://localhost:{mcp.settings.port}/mcp")
    print(f"Supabase:             {config['supabase_url']}")
    print(f"Logs:                 {config['log_dir']}")
    write_startup_log(web_url, config)

    # Run FastMCP (streamable-HTTP) in a background daemon thread
    mcp_thread = threading.Thread(
        target=lambda: mcp.run(transport='streamable-http'),
        daemon=True,
        name='mcp-server',
    )
    mcp_thread.start()

    app.run(host='127.0.0.1', port=config['web_port'], debug=False, use_reloader=False)
