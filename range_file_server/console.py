"""Thread-tagged console logging."""

import sys
import datetime
import threading


def _stamp():
    return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def log(message):
    thread = threading.current_thread().name
    print(f"[{thread}] [{_stamp()}] {message}", flush=True)


def log_error(message):
    thread = threading.current_thread().name
    print(f"[{thread}] [{_stamp()}] ERROR {message}", file=sys.stderr, flush=True)
