import os
import threading
import multiprocessing
import config

_run_id = None

LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}
_COLORS = {"DEBUG": "\x1b[90m", "WARN": "\x1b[33m", "ERROR": "\x1b[31m"}


def set_run(run_id):
    """Tag subsequent lines with a generation run id (None clears it)."""
    global _run_id
    _run_id = run_id


def enabled(level):
    threshold = LEVELS.get(str(getattr(config, "LOG_LEVEL", "INFO")).upper(), 20)
    return LEVELS.get(level, 20) >= threshold


def log(scope, msg, level="INFO"):
    if not enabled(level):
        return
    pid = os.getpid()
    proc = multiprocessing.current_process().name
    thread = threading.current_thread().name
    run_tag = f" run{_run_id}" if _run_id is not None else ""
    text = f"[{level}{run_tag} pid{pid} proc{proc} thr{thread} {scope}] {msg}"
    use_color = getattr(config, "LOG_COLOR", True) and os.getenv("NO_COLOR") is None
    if use_color:
        color = _COLORS.get(level)
        if color is None and thread != "MainThread":
            # Generation driven from a worker thread.
            color = "\x1b[32m"
        if color is not None:
            text = f"{color}{text}\x1b[0m"
    print(text)
