"""Structured error taxonomy for the digest pipeline.

Every failure carries the same fields so callers can log it uniformly instead
of probing exception attributes ad hoc.
"""

from __future__ import annotations

import logging
from typing import Any, Optional


class PipelineError(Exception):
    """Base error with ``kind``, ``message``, ``cause`` and ``service_status``."""

    kind = "pipeline_error"

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        service_status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.service_status = service_status

    def log_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.service_status is not None:
            fields["service_status"] = self.service_status
        if self.cause is not None:
            fields["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return fields


class InvalidSelector(PipelineError):
    """User-supplied hours/count selector is malformed."""

    kind = "invalid_selector"

    def __init__(self, message: str, *, hint: str = "") -> None:
        super().__init__(message)
        self.hint = hint


class GenerationFailure(PipelineError):
    """The generation service errored or could not be reached."""

    kind = "generation_failure"


class EmptyResult(PipelineError):
    """The generation service returned no usable text."""

    kind = "empty_result"


class TransportFailure(PipelineError):
    """Delivery to the chat failed.

    ``reason`` is ``"rejected"`` when the platform answered with an error and
    ``"unreachable"`` when no answer was received.
    """

    kind = "transport_failure"

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        body: str = "",
        cause: Optional[BaseException] = None,
        service_status: Optional[int] = None,
    ) -> None:
        super().__init__(message, cause=cause, service_status=service_status)
        self.reason = reason
        self.body = body

    def log_fields(self) -> dict[str, Any]:
        fields = super().log_fields()
        fields["reason"] = self.reason
        if self.body:
            fields["body"] = self.body
        return fields


def log_failure(logger: logging.Logger, error: BaseException, **context: Any) -> None:
    """Log any failure with its structured fields and the caller's context."""

    if isinstance(error, PipelineError):
        fields = error.log_fields()
    else:
        fields = {"kind": "unexpected", "message": f"{type(error).__name__}: {error}"}
    fields.update(context)
    rendered = " ".join(f"{key}={value!r}" for key, value in fields.items())
    logger.error("Pipeline failure: %s", rendered, exc_info=error)
