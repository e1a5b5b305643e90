"""Sequential reducer — runs a pipeline's steps in order over shared args.

The reducer behaves like ``any()`` over the steps: it returns the first value
a step produces and does not invoke the remaining steps.  A failure aborts the
run immediately.  If every step completes without producing a value, the run
fails with a ``None`` error: a chain of callback-style handlers has no notion
of "done" other than somebody producing something, so an exhausted chain is
an unclaimed request.

Steps may return:
- an ``Outcome`` (adapted steps always do),
- a plain value, where ``None`` means "continue",
- an awaitable resolving to either of the above.
"""
from __future__ import annotations

import inspect
import logging
from typing import Any, Sequence

from leafline.engine.outcome import Outcome, OutcomeKind
from leafline.engine.pipeline import PipelineDefinition

logger = logging.getLogger(__name__)


def _step_name(step: Any) -> str:
    return getattr(step, "name", None) or getattr(step, "__qualname__", repr(step))


async def reduce_steps(
    pipeline: PipelineDefinition,
    args: Sequence[Any],
    start_idx: int = 0,
) -> Outcome:
    """Run *pipeline*'s steps from *start_idx* with ``step(*args)``.

    Args:
        pipeline:  Definition whose steps to run (usually already adapted).
        args:      Arguments passed to every step, ``(request, response)``.
        start_idx: Index of the first step to run.

    Returns:
        ``VALUE(v)`` for the first produced value, ``FAILURE(err)`` for the
        first failure, or ``FAILURE(None)`` when nobody produced anything.
        Never raises ``Exception``; step errors are folded into the outcome.
    """
    steps = pipeline.steps[start_idx:] if start_idx else pipeline.steps

    for offset, step in enumerate(steps):
        idx = start_idx + offset
        try:
            result = step(*args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.debug("pipeline %r: step %d (%s) raised %r", pipeline.name, idx, _step_name(step), exc)
            return Outcome.failed(exc)

        outcome = result if isinstance(result, Outcome) else Outcome.of(result)

        if outcome.kind is OutcomeKind.FAILURE:
            logger.debug(
                "pipeline %r: step %d (%s) failed with %r",
                pipeline.name, idx, _step_name(step), outcome.error,
            )
            return outcome
        if outcome.kind is OutcomeKind.VALUE:
            # First value wins; the remaining steps are never invoked.
            logger.debug(
                "pipeline %r: step %d (%s) produced a value; skipping %d remaining",
                pipeline.name, idx, _step_name(step), len(steps) - offset - 1,
            )
            return outcome

    logger.debug("pipeline %r: all %d steps continued", pipeline.name, len(steps))
    return Outcome.failed(None)
