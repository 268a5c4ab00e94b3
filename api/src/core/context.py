"""Per-request identifiers carried in contextvars.

Everything bound here is merged into each structlog event by
``core.logging``, so services never pass ids around just for logging.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


_request_id: ContextVar[str] = ContextVar("request_id", default="")
_user_id: ContextVar[str | None] = ContextVar("user_id", default=None)
_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_course_id: ContextVar[str | None] = ContextVar("course_id", default=None)

_ALL = (_request_id, _user_id, _trace_id, _course_id)


def _text(value: str | UUID | None) -> str | None:
    return None if value is None else str(value)


def set_request_id(request_id: str | None = None) -> str:
    """Bind the incoming id, or a fresh uuid4 when the client sent none."""
    rid = request_id or str(uuid4())
    _request_id.set(rid)
    return rid


def get_request_id() -> str:
    return _request_id.get()


def set_user_id(user_id: str | UUID | None) -> None:
    _user_id.set(_text(user_id))


def set_trace_id(trace_id: str | None) -> None:
    _trace_id.set(trace_id)


def set_course_id(course_id: str | UUID | None) -> None:
    _course_id.set(_text(course_id))


def get_context() -> dict[str, Any]:
    """Bound ids only; unset ones are left out of log events."""
    values = {var.name: var.get() for var in _ALL}
    return {name: value for name, value in values.items() if value}


def clear_context() -> None:
    _request_id.set("")
    for var in _ALL[1:]:
        var.set(None)
