"""Trace context for correlating log entries of one fetch operation."""

import contextvars
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

_trace_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "trace_id", default=None
)


def get_current_trace() -> Optional[str]:
    """Return the current trace ID, or None outside a traced operation."""
    return _trace_id_context.get()


@contextmanager
def traced() -> Iterator[str]:
    """
    Run a block under a fresh trace ID, restoring the previous one afterwards.

    Scheduler jobs run on worker threads that reuse their context, so the
    previous value is restored rather than cleared.

    Yields:
        The new trace ID (UUID4 format)
    """
    token = _trace_id_context.set(str(uuid.uuid4()))
    try:
        yield _trace_id_context.get()
    finally:
        _trace_id_context.reset(token)
