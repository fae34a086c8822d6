"""
debug_trace.py

Debug instrumentation for following hierarchy mutations.
Enable with ``[debug] trace = true`` in settings.toml, or call
:func:`enable_trace` directly.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Optional

log = logging.getLogger("layoutsketch.trace")

_enabled: Optional[bool] = None
_file_handler: Optional[logging.FileHandler] = None


def enable_trace(enabled: bool = True, log_file: str = "") -> None:
    """Turn tracing on or off, optionally teeing records to *log_file*."""
    global _enabled, _file_handler
    _enabled = enabled
    if _file_handler is not None:
        log.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
    if enabled and log_file:
        _file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        _file_handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s"))
        log.addHandler(_file_handler)
    if enabled:
        log.setLevel(logging.DEBUG)


def is_enabled() -> bool:
    """Whether tracing is on; first call reads the debug settings."""
    global _enabled
    if _enabled is None:
        from settings import get_settings
        debug = get_settings().settings.debug
        enable_trace(debug.trace, debug.log_file)
    return bool(_enabled)


def trace(msg: str, category: str = "INFO"):
    """Emit a trace message tagged with *category*."""
    if not is_enabled():
        return
    log.debug("[%s] %s", category, msg)


def trace_call(category: str = "CALL"):
    """Decorator to trace function calls."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not is_enabled():
                return func(*args, **kwargs)
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
            trace(f"<<< {func_name}", category)
            return result
        return wrapper
    return decorator


def close_log():
    """Detach and close the trace log file, if any."""
    global _file_handler
    if _file_handler is not None:
        log.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
