"""Forward rewind events to CloudWatch Logs.

Each process writes to its own stream, `rewind/<host>/<YYYY/MM/DD>/<run id>`,
inside the group named by `cloudwatch_log_group`, so the staging, undo and
poll history of one CI job can be pulled up on its own:

    fields @timestamp, event, op, status | filter run_id = "abc12345"

Needs boto3 (`pip install -e ".[aws]"`). Without it, or without a group,
forward() does nothing.
"""

import json
import socket
import threading
import time
from datetime import datetime

_client = None
_group = None
_stream = None
_lock = threading.Lock()


def stream_name(run_id):
    day = datetime.now().strftime("%Y/%m/%d")
    return f"rewind/{socket.gethostname()}/{day}/{run_id}"


def init(log_group, run_id):
    """Point forwarding at log_group for this run. An empty group turns it off."""
    global _client, _group, _stream
    with _lock:
        _client = None
        if not log_group:
            return
        try:
            import boto3
            client = boto3.client("logs")
        except Exception:
            return
        _group = log_group
        _stream = stream_name(run_id)
        _create_destination(client)
        _client = client


def forward(entry):
    """Ship one event entry. Delivery problems are dropped, never raised."""
    with _lock:
        if _client is None:
            return
        try:
            _client.put_log_events(
                logGroupName=_group,
                logStreamName=_stream,
                logEvents=[{
                    "timestamp": int(time.time() * 1000),
                    "message": json.dumps(entry, default=str),
                }],
            )
        except Exception:
            pass


def _create_destination(client):
    # Both calls fail harmlessly when the group or stream is already there.
    try:
        client.create_log_group(logGroupName=_group)
    except Exception:
        pass
    try:
        client.create_log_stream(logGroupName=_group, logStreamName=_stream)
    except Exception:
        pass
