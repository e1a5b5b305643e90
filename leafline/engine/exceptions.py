"""Engine-specific exception hierarchy.

All exceptions raised by the engine are subclasses of ``EngineError``.
This lets callers catch any engine error with a single except clause while
still being able to discriminate between specific error types.

Error taxonomy:

Construction-time (abort application startup, never reach a request):
    InvalidArgumentError — bad input to ``define`` / ``to_dispatcher`` /
                           ``with_error_continuation``
    InvalidHandlerError  — a pipeline step is not callable

Runtime (per request; never escape the dispatcher):
    HandlerError          — a step raised or called ``next(err)``
    UnclaimedRequestError — the chain exhausted without any step producing
                            a terminal signal
    StepTimeoutError      — a step did not settle within ``step_timeout_s``

The two construction-time errors also subclass ``TypeError`` so code that
guards pipeline assembly with ``except TypeError`` keeps working.
"""
from __future__ import annotations

from typing import Any


class EngineError(Exception):
    """Base class for all engine exceptions."""


# ---------------------------------------------------------------------------
# Construction-time errors
# ---------------------------------------------------------------------------

class InvalidArgumentError(EngineError, TypeError):
    """Pipeline builder received arguments of the wrong shape."""


class InvalidHandlerError(EngineError, TypeError):
    """A pipeline step is not callable.

    Attributes:
        handler: The offending object.
        index:   Position of the step in the pipeline, or ``None`` when the
                 handler was adapted on its own.
    """

    def __init__(self, handler: Any, index: int | None = None) -> None:
        self.handler = handler
        self.index = index
        where = f" at step {index}" if index is not None else ""
        super().__init__(
            f"Cannot adapt non-callable {type(handler).__name__!s}{where}. "
            f"Pipeline steps must be functions taking (request, response, next)."
        )


# ---------------------------------------------------------------------------
# Runtime errors
# ---------------------------------------------------------------------------

class HandlerError(EngineError):
    """A step failed while handling a request.

    Steps may fail with any value (``next("boom")`` is legal), so the raw
    payload is kept alongside the message.

    Attributes:
        payload: The value the step failed with (``None`` for synthetic errors).
        step:    Name of the step that failed, if known.
    """

    def __init__(self, message: str, payload: Any = None, step: str = "") -> None:
        self.payload = payload
        self.step = step
        detail = f" (step '{step}')" if step else ""
        super().__init__(f"Handler error{detail}: {message}")
        if isinstance(payload, BaseException):
            self.__cause__ = payload


class UnclaimedRequestError(HandlerError):
    """Every step completed and none of them produced a terminal signal."""

    def __init__(self, pipeline: str = "") -> None:
        self.pipeline = pipeline
        name = f" '{pipeline}'" if pipeline else ""
        super().__init__(f"request was not claimed by any step of pipeline{name}")


class StepTimeoutError(HandlerError):
    """A step did not settle within its configured timeout.

    Attributes:
        timeout_s: The timeout that elapsed, in seconds.
    """

    def __init__(self, step: str, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(f"step did not settle within {timeout_s:g}s", step=step)
