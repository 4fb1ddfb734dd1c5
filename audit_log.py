# audit_log.py
"""
Append-only audit log shared by the HTTP layer and the session lifecycle.
HTTP traffic is written as multi-line records closed by '---'; lifecycle
events are single lines like 'READY session=default'.
"""
import os
import sys
import json
import threading
from datetime import datetime, timezone

import config

# Flask serves requests on several threads and engine events arrive on another.
_WRITE_LOCK = threading.Lock()


def append_log(entry):
    """Appends one record to the log file. A failed write is reported, never raised."""
    try:
        with _WRITE_LOCK:
            os.makedirs(os.path.dirname(config.LOG_FILE), exist_ok=True)
            with open(config.LOG_FILE, "a", encoding="utf-8") as f:
                f.write(entry + "\n")
    except OSError as e:
        print(f"❌ Log write error: {e}", file=sys.stderr)


def format_request_entry(ip, method, path, status, duration_ms, headers, body):
    return "\n".join([
        f"TIME: {datetime.now(timezone.utc).isoformat()}",
        f"IP: {ip}",
        f"METHOD: {method}",
        f"PATH: {path}",
        f"STATUS: {status}",
        f"DURATION_MS: {duration_ms}",
        f"HEADERS: {json.dumps(headers)}",
        f"BODY: {body}",
        "---",
    ])


def tail_log(lines=config.LOG_TAIL_DEFAULT_LINES):
    """
    Returns the last `lines` non-empty lines of the log, or '' if there is no log yet.
    lines=0 returns the whole log.
    """
    if not os.path.exists(config.LOG_FILE):
        return ""
    with open(config.LOG_FILE, "r", encoding="utf-8", errors="replace") as f:
        content = [line for line in f.read().split("\n") if line]
    return "\n".join(content[-lines:])
