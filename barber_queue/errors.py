"""Typed rejections and the shared error envelope.

The pure-logic modules raise `QueueError` subclasses; the service layer turns
them into `ErrorResponse` values so every surface (kiosk, staff console) gets
a stable `code` it can render.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    def to_message(self, *, corr_id: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if corr_id is not None:
            msg["corr_id"] = corr_id
        return msg


class QueueError(Exception):
    """Base class for every rejection a command can produce."""

    code = "queue_error"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.code
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(self.code, self.message)


class InvalidInput(QueueError):
    code = "invalid_input"


class NotFound(QueueError):
    code = "not_found"

    def __init__(self, entry_id: str, message: str = "") -> None:
        self.entry_id = entry_id
        super().__init__(message or f"Entry '{entry_id}' not found")


class EmptyQueue(QueueError):
    code = "empty_queue"

    def __init__(self, message: str = "Nobody is waiting") -> None:
        super().__init__(message)


class NoActiveCall(QueueError):
    code = "no_active_call"

    def __init__(self, message: str = "No one currently called") -> None:
        super().__init__(message)


class AlreadyTerminal(QueueError):
    code = "already_terminal"

    def __init__(self, entry_id: str, status: str) -> None:
        self.entry_id = entry_id
        self.status = status
        super().__init__(f"Entry '{entry_id}' is already {status}")


class InvalidState(QueueError):
    code = "invalid_state"

    def __init__(self, entry_id: str, status: str, operation: str, reason: str = "") -> None:
        self.entry_id = entry_id
        self.status = status
        self.operation = operation
        msg = f"Cannot {operation} entry '{entry_id}' in state '{status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class VersionConflict(QueueError):
    code = "version_conflict"

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Snapshot version {expected} is stale (now {actual})")


class Unauthorized(QueueError):
    code = "unauthorized"

    def __init__(self, message: str = "Staff login required") -> None:
        super().__init__(message)


class TransientFailure(QueueError):
    code = "transient"

    def __init__(self, message: str = "Queue changed while saving, try again") -> None:
        super().__init__(message)
