"""Outcome model for step execution results.

Every adapted step resolves to an ``Outcome`` and so does a whole reduction.
The reducer uses the kind to decide whether to keep going; the dispatcher
uses ``signal`` to feed its single recovery branch.

Design notes:
- Frozen dataclass; ``Outcome.cont()`` is a shared singleton.
- There is no "success" kind for a whole run.  A produced value and a
  failure both end the run and both arrive at the dispatcher as the signal;
  a failure whose error is ``None`` means nobody claimed the request.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from leafline.engine.exceptions import HandlerError, UnclaimedRequestError


class OutcomeKind(str, Enum):
    """Tag of an ``Outcome``."""

    CONTINUE = "continue"   # no value produced, proceed to the next step
    VALUE = "value"         # a step produced a definitive result
    FAILURE = "failure"     # a step failed, or the chain went unclaimed


@dataclass(frozen=True)
class Outcome:
    """Immutable result of one step or of one whole reduction.

    Attributes:
        kind:  See ``OutcomeKind``.
        value: The produced value (``VALUE`` only).
        error: The failure payload (``FAILURE`` only).  Any object may be a
               payload; ``None`` marks an unclaimed request.
    """

    kind: OutcomeKind
    value: Any = None
    error: Any = None

    @classmethod
    def cont(cls) -> "Outcome":
        return _CONTINUE

    @classmethod
    def of(cls, value: Any) -> "Outcome":
        """``VALUE(value)``, or ``CONTINUE`` when *value* is ``None``."""
        if value is None:
            return _CONTINUE
        return cls(OutcomeKind.VALUE, value=value)

    @classmethod
    def failed(cls, error: Any) -> "Outcome":
        return cls(OutcomeKind.FAILURE, error=error)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not OutcomeKind.CONTINUE

    @property
    def unclaimed(self) -> bool:
        return self.kind is OutcomeKind.FAILURE and self.error is None

    @property
    def signal(self) -> Any:
        """The value carried into the dispatcher's recovery branch."""
        if self.kind is OutcomeKind.VALUE:
            return self.value
        if self.kind is OutcomeKind.FAILURE:
            return self.error
        return None

    def unwrap(self, step: str = "") -> Any:
        """Return the produced value or raise the failure.

        Raises:
            UnclaimedRequestError: For the unclaimed signal.
            HandlerError:          For non-exception failure payloads.
            Exception:             Exception payloads are re-raised as-is.
        """
        if self.kind is OutcomeKind.FAILURE:
            if self.error is None:
                raise UnclaimedRequestError()
            if isinstance(self.error, BaseException):
                raise self.error
            raise HandlerError(repr(self.error), payload=self.error, step=step)
        return self.value


_CONTINUE = Outcome(OutcomeKind.CONTINUE)
