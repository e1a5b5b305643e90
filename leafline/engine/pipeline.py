"""PipelineDefinition — an ordered, named list of steps.

A definition is built once at application startup and shared read-only by
every in-flight request.  ``steps`` is a tuple; transformations such as
``map()`` return a new definition that shares the name and continuation.

The only mutation allowed is the one-time builder call
``with_error_continuation()``, which must happen before the definition is
handed to ``to_dispatcher()``::

    pipeline = define("api", [authenticate, load_user, render])
    pipeline.with_error_continuation(lambda err, request: not_found("nope"))
"""
from __future__ import annotations

from typing import Any, Callable, Sequence

from leafline.engine.exceptions import InvalidArgumentError

ErrorContinuation = Callable[[Any, Any], Any]
"""``(signal, request) -> response | None``; may also be a coroutine function."""


class PipelineDefinition:
    """Immutable-after-setup sequence of steps.

    Args:
        steps:    Ordered, non-empty sequence of steps.
        name:     Diagnostic name.
        on_error: Optional error continuation (see ``ErrorContinuation``).

    Use ``define()`` to build one from user input; the constructor does not
    validate that steps are callable because adapted definitions hold
    ``AdaptedStep`` objects as well.
    """

    __slots__ = ("name", "steps", "on_error")

    def __init__(
        self,
        steps: Sequence[Any],
        name: str = "",
        on_error: ErrorContinuation | None = None,
    ) -> None:
        self.name = name
        self.steps: tuple[Any, ...] = tuple(steps)
        self.on_error = on_error

    def __len__(self) -> int:
        return len(self.steps)

    def __repr__(self) -> str:
        label = f"{self.name!r}, " if self.name else ""
        return f"PipelineDefinition({label}{len(self.steps)} steps)"

    def with_error_continuation(self, fn: ErrorContinuation) -> "PipelineDefinition":
        """Attach or replace the error continuation and return ``self``.

        Raises:
            InvalidArgumentError: If *fn* is not callable.
        """
        if not callable(fn):
            raise InvalidArgumentError("Expected a function for the error continuation")
        self.on_error = fn
        return self

    def map(self, fn: Callable[[Any], Any]) -> "PipelineDefinition":
        """Return a new definition whose steps are ``fn(step)`` for each step."""
        return PipelineDefinition(
            [fn(step) for step in self.steps],
            name=self.name,
            on_error=self.on_error,
        )


def define(
    name: str | Sequence[Callable[..., Any]],
    steps: Sequence[Callable[..., Any]] | None = None,
) -> PipelineDefinition:
    """Build a ``PipelineDefinition``.

    Accepts ``define(steps)`` or ``define(name, steps)``.  The steps are
    copied, so later changes to the caller's list do not leak in.

    Raises:
        InvalidArgumentError: If *name* is not a string, *steps* is not a
            list or tuple, *steps* is empty, or a step is not callable.
    """
    if steps is None:
        name, steps = "", name  # type: ignore[assignment]

    if not isinstance(name, str) or not isinstance(steps, (list, tuple)):
        raise InvalidArgumentError(
            "Wrong argument types to `define`, expecting (str, list) or (list)"
        )
    if not steps:
        raise InvalidArgumentError("`define` with an empty list does nothing")
    for idx, step in enumerate(steps):
        if not callable(step):
            raise InvalidArgumentError(
                f"Step {idx} of pipeline {name!r} is not callable: {step!r}"
            )
    return PipelineDefinition(steps, name=name)
