"""Structured event logging.

Every mutation, undo and poll outcome is recorded as one JSON object per line
in ~/.rewind/logs.jsonl (configurable with `log_file`, "" disables it).
Events also fan out to in-process sinks registered with add_sink() and to
CloudWatch when `cloudwatch_log_group` is configured.

Sinks are observers: a failing sink is ignored and never changes the outcome
of the operation that emitted the event.
"""

import json
import threading
import uuid
from datetime import datetime
from pathlib import Path

from rewind import cloudwatch
from rewind.config import load_config

LOGS_FILE = Path.home() / ".rewind" / "logs.jsonl"

RUN_ID = uuid.uuid4().hex[:8]

_lock = threading.Lock()
_sinks = []
_log_file = LOGS_FILE
_configured = False


def configure(config=None):
    """Apply logging settings from config (loaded from disk when not given)."""
    global _log_file, _configured
    if config is None:
        config = load_config()
    log_file = config.get("log_file", str(LOGS_FILE))
    _log_file = Path(log_file).expanduser() if log_file else None

    cloudwatch.init(config.get("cloudwatch_log_group", ""), RUN_ID)
    _configured = True


def log_file():
    """Path of the JSONL event log, or None when disabled."""
    if not _configured:
        try:
            configure()
        except ValueError:
            # unreadable .rewindconfig disables the file log
            configure({"log_file": ""})
    return _log_file


def add_sink(sink):
    """Register a callable receiving every event dict."""
    with _lock:
        _sinks.append(sink)


def remove_sink(sink):
    with _lock:
        if sink in _sinks:
            _sinks.remove(sink)


def write_log(entry):
    """Append an event entry to the JSONL log."""
    path = log_file()
    if path is None:
        return
    with _lock:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a") as f:
            f.write(json.dumps(entry, default=str) + "\n")


def emit(event, **fields):
    """Record a structured event. Never raises."""
    entry = {"event": event, "run_id": RUN_ID, **fields}
    entry["timestamp"] = datetime.now().isoformat()

    try:
        write_log(entry)
    except OSError:
        pass

    with _lock:
        sinks = list(_sinks)
    for sink in sinks:
        try:
            sink(entry)
        except Exception:
            pass

    cloudwatch.forward(entry)
    return entry


def read_logs(path=None):
    """Return all parseable entries of the JSONL log, oldest first."""
    path = Path(path) if path else log_file()
    if path is None or not path.exists():
        return []
    entries = []
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entries.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return entries
