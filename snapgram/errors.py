"""
Error type raised by the data-access operations.

Every platform failure is rethrown as a ``SnapgramError`` whose message is a
JSON rendering of the original error.
"""

from __future__ import annotations

import functools
import json
from typing import Any, Callable, Optional, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

_PLATFORM_FIELDS = ("code", "type", "response")


class SnapgramError(Exception):
    """Generic failure surfaced to callers of the data-access layer."""

    def __init__(self, message: str, *, code: Optional[int] = None):
        self.message = message
        self.code = code
        super().__init__(message)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "SnapgramError":
        code = getattr(exc, "code", None)
        return cls(serialize_error(exc), code=code if isinstance(code, int) else None)

    @classmethod
    def from_message(
        cls, name: str, message: str, *, code: Optional[int] = None
    ) -> "SnapgramError":
        return cls(json.dumps({"name": name, "message": message}), code=code)

    @property
    def http_status(self) -> int:
        if self.code is not None and 400 <= self.code < 600:
            return self.code
        return 502


def serialize_error(exc: BaseException) -> str:
    payload: dict[str, Any] = {"name": type(exc).__name__, "message": str(exc)}
    for attr in _PLATFORM_FIELDS:
        value = getattr(exc, attr, None)
        if value not in (None, ""):
            payload[attr] = value
    return json.dumps(payload, default=str)


def require(value: Any, what: str, *, code: Optional[int] = None) -> Any:
    """Raise when a platform call produced no result."""
    if not value:
        raise SnapgramError.from_message(
            "EmptyResult", f"{what} returned no result", code=code
        )
    return value


def platform_call(func: F) -> F:
    """Rethrow any failure inside ``func`` as a ``SnapgramError``."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SnapgramError:
            raise
        except Exception as exc:
            raise SnapgramError.from_exception(exc) from exc

    return wrapper  # type: ignore[return-value]
