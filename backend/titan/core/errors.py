"""
Error taxonomy for the metric engine.

Request-level failures (transcription, inference, interpretation) are recoverable:
the in-flight request ends in ``failed`` and the metric store is untouched.
``ActionContractViolation`` is the only fatal condition and signals an interpreter bug.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    TRANSCRIPTION_FAILED = "transcription_failed"
    INFERENCE_FAILED = "inference_failed"
    MALFORMED_ACTION = "malformed_action"
    UNKNOWN_ACTION_KIND = "unknown_action_kind"
    INVALID_ACTION_PAYLOAD = "invalid_action_payload"


class TitanError(Exception):
    """Base class for recoverable request errors. Branch on ``kind``, not on the message."""

    kind: ErrorKind

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class TranscriptionFailed(TitanError):
    kind = ErrorKind.TRANSCRIPTION_FAILED


class InferenceFailed(TitanError):
    kind = ErrorKind.INFERENCE_FAILED


class MalformedAction(TitanError):
    kind = ErrorKind.MALFORMED_ACTION


class UnknownActionKind(TitanError):
    kind = ErrorKind.UNKNOWN_ACTION_KIND


class InvalidActionPayload(TitanError):
    kind = ErrorKind.INVALID_ACTION_PAYLOAD


class MetricValueError(ValueError):
    """A direct write carried a value the metric cannot hold."""


class StorageWriteError(RuntimeError):
    """Durable storage refused a write; the in-memory value was left unchanged."""


class ActionContractViolation(RuntimeError):
    """The applier received something that is not a valid Action."""
