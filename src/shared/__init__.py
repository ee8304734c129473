"""Shared utilities and helpers."""
from shared.diagnostics import log_memory_usage
from shared.progress import (
    CancelledError,
    CancelToken,
    ConsoleProgress,
    ConsoleSink,
    EventCancelToken,
    LoggingSink,
    ProgressSink,
)

__all__ = [
    'CancelToken',
    'CancelledError',
    'ConsoleProgress',
    'ConsoleSink',
    'EventCancelToken',
    'LoggingSink',
    'ProgressSink',
    'log_memory_usage',
]
