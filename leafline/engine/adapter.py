"""Handler adapter — turns an Express-style handler into an async step.

A handler has the shape::

    handler(request, response, next)

and signals completion in one of several ways:

    next()            → CONTINUE
    next(err)         → FAILURE(err)        (any truthy err)
    raise exc         → FAILURE(exc)
    return value      → VALUE(value)        (non-None return, next not called)

A coroutine handler that finishes without calling ``next`` settles with its
own resolution (``VALUE`` when it returned something, else ``CONTINUE``).  A
plain function that returns ``None`` without calling ``next`` leaves the step
pending until ``next`` is called later, which is how callback-style handlers
defer completion (``loop.call_later(1, next)``, a worker thread, ...).

Only the first settlement counts.  A handler that calls ``next`` twice, or
raises after calling ``next``, cannot settle the step a second time.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

from leafline.engine.exceptions import InvalidHandlerError, StepTimeoutError
from leafline.engine.outcome import Outcome

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Any, Callable[..., None]], Any]
"""Express-style handler: ``(request, response, next) -> Any``."""

Step = Callable[[Any, Any], Awaitable[Outcome]]
"""Adapted step: ``async (request, response) -> Outcome``."""


def _handler_name(handler: Any) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__name__


class AdaptedStep:
    """Uniform async step wrapping one callback-style handler.

    Args:
        handler:   The Express-style handler.  Must be callable.
        timeout_s: Optional number of seconds after which an unsettled step
                   fails with ``StepTimeoutError``.  ``None`` waits forever.
        name:      Diagnostic name; defaults to the handler's qualname.

    Raises:
        InvalidHandlerError: If *handler* is not callable.
    """

    __slots__ = ("handler", "timeout_s", "name", "_tasks")

    def __init__(
        self,
        handler: Handler,
        timeout_s: float | None = None,
        name: str | None = None,
    ) -> None:
        if not callable(handler):
            raise InvalidHandlerError(handler)
        self.handler = handler
        self.timeout_s = timeout_s
        self.name = name or _handler_name(handler)
        self._tasks: set[asyncio.Task] = set()

    def __repr__(self) -> str:
        return f"AdaptedStep({self.name})"

    async def __call__(self, request: Any, response: Any) -> Outcome:
        loop = asyncio.get_running_loop()
        settled: asyncio.Future[Outcome] = loop.create_future()

        def settle(outcome: Outcome) -> None:
            if settled.done():
                logger.debug(
                    "step %s already settled; ignoring late %s signal",
                    self.name, outcome.kind.value,
                )
                return
            settled.set_result(outcome)

        def next_(err: Any = None) -> None:
            outcome = Outcome.failed(err) if err else Outcome.cont()
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                settle(outcome)
            else:
                loop.call_soon_threadsafe(settle, outcome)

        task: asyncio.Task | None = None
        try:
            result = self.handler(request, response, next_)
        except Exception as exc:
            settle(Outcome.failed(exc))
        else:
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(self._drain(result, settle))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            elif result is not None:
                settle(Outcome.of(result))

        if self.timeout_s is None:
            return await settled

        try:
            return await asyncio.wait_for(settled, self.timeout_s)
        except asyncio.TimeoutError:
            if task is not None:
                task.cancel()
            logger.warning("step %s timed out after %.3fs", self.name, self.timeout_s)
            return Outcome.failed(StepTimeoutError(self.name, self.timeout_s))

    async def _drain(
        self,
        awaitable: Awaitable[Any],
        settle: Callable[[Outcome], None],
    ) -> None:
        """Await a coroutine handler and settle with its resolution."""
        try:
            value = await awaitable
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            settle(Outcome.failed(exc))
        else:
            settle(Outcome.of(value))


def adapt(handler: Handler, *, timeout_s: float | None = None) -> AdaptedStep:
    """Wrap *handler* into an ``AdaptedStep``.

    Fails at construction time, not at call time, so that a mis-assembled
    pipeline aborts application startup.

    Raises:
        InvalidHandlerError: If *handler* is not callable.
    """
    return AdaptedStep(handler, timeout_s=timeout_s)
