"""Dispatcher — binds an adapted pipeline to the transport boundary.

``to_dispatcher()`` turns a list of handlers (or a ``PipelineDefinition``)
into the only shape the engine exposes outward::

    async dispatcher(transport_request, transport_response) -> None

Per request:

1. ``reduce_steps()`` runs the adapted steps over ``(request, response)``.
2. Whatever the run ends with goes into ONE recovery branch as the *signal*:
   a value a step produced, an error a step failed with, or ``None`` when
   nobody claimed the request.  Producing a value and failing are folded
   together on purpose; only the error continuation tells them apart.
3. No continuation → the Default Error Responder writes a generic failure.
   With a continuation → its non-``None`` result is serialized; ``None``
   falls back to the Default Error Responder with the original signal; a
   raise falls back to it with the new error.  There is no third level.

Exactly one response reaches the transport per request, and no exception
other than task cancellation leaves the dispatcher.
"""
from __future__ import annotations

import contextlib
import inspect
import logging
from typing import Any, Sequence

import logfire

from leafline.config import LeaflineConfig
from leafline.engine.adapter import AdaptedStep
from leafline.engine.exceptions import InvalidArgumentError, InvalidHandlerError
from leafline.engine.outcome import Outcome, OutcomeKind
from leafline.engine.pipeline import PipelineDefinition
from leafline.engine.reducer import reduce_steps
from leafline.http.response import Response, err_response
from leafline.http.send import respond, send

logger = logging.getLogger(__name__)


class Dispatcher:
    """Transport-facing callable bound to one adapted pipeline.

    Args:
        pipeline: Definition whose steps are already ``AdaptedStep`` objects.
        config:   Runtime configuration; defaults to ``LeaflineConfig()``.
    """

    def __init__(self, pipeline: PipelineDefinition, config: LeaflineConfig | None = None) -> None:
        self.pipeline = pipeline
        self.config = config or LeaflineConfig()

    def __repr__(self) -> str:
        return f"Dispatcher({self.pipeline!r})"

    async def __call__(self, request: Any, response: Any) -> None:
        with self._span(request) as span:
            outcome = await reduce_steps(self.pipeline, (request, response))
            if span is not None:
                span.set_attribute("outcome", "unclaimed" if outcome.unclaimed else outcome.kind.value)

            status = await self._recover(outcome, request, response)
            if span is not None and status is not None:
                span.set_attribute("http.status_code", status)

    # ------------------------------------------------------------------
    # Recovery branch
    # ------------------------------------------------------------------

    async def _recover(self, outcome: Outcome, request: Any, response: Any) -> int | None:
        signal = outcome.signal
        self._log_outcome(outcome, request)

        continuation = self.pipeline.on_error
        if continuation is None:
            return await self._default_error(signal, response)

        try:
            result = continuation(signal, request)
            if inspect.isawaitable(result):
                result = await result
        except Exception as new_err:
            logger.error(
                "pipeline %r: error continuation raised", self.pipeline.name, exc_info=new_err,
            )
            return await self._default_error(new_err, response)

        if result is None:
            return await self._default_error(signal, response)

        if await self._already_sent(response):
            return None
        try:
            await respond(response, result)
        except InvalidArgumentError as exc:
            logger.error("pipeline %r: %s", self.pipeline.name, exc)
            return await self._default_error(exc, response)
        except Exception:
            logger.exception("pipeline %r: failed to write response", self.pipeline.name)
            return None
        return result.status if isinstance(result, Response) else result["status"]

    async def _default_error(self, err: Any, response: Any) -> int | None:
        """Default Error Responder: write a generic failure response."""
        if await self._already_sent(response):
            return None

        resp = err_response(
            err,
            default_status=self.config.default_error_status,
            expose=self.config.expose_errors,
        )
        try:
            await send(response, resp)
        except Exception:
            logger.exception("pipeline %r: failed to write error response", self.pipeline.name)
            return None
        return resp.status

    def _log_outcome(self, outcome: Outcome, request: Any) -> None:
        name = self.pipeline.name
        if outcome.unclaimed:
            logger.warning(
                "pipeline %r: request %s %s was not claimed by any step",
                name, getattr(request, "method", "?"), getattr(request, "url", "?"),
            )
        elif outcome.kind is OutcomeKind.VALUE:
            logger.debug("pipeline %r: step produced %r", name, type(outcome.value).__name__)
        elif isinstance(outcome.error, BaseException):
            logger.error("pipeline %r: step failed", name, exc_info=outcome.error)
        else:
            logger.error("pipeline %r: step failed with %r", name, outcome.error)

    async def _already_sent(self, response: Any) -> bool:
        """True when a handler started the response itself.

        Such a response is ended here unless the transport reports it
        ``finished``; nothing else is written to it.
        """
        if not getattr(response, "headers_sent", False):
            return False
        logger.debug(
            "pipeline %r: response already started by a handler; not writing another",
            self.pipeline.name,
        )
        if not getattr(response, "finished", False):
            try:
                await response.end()
            except Exception:
                logger.exception("pipeline %r: failed to end response", self.pipeline.name)
        return True

    def _span(self, request: Any) -> Any:
        if not self.config.tracing_enabled:
            return contextlib.nullcontext()
        return logfire.span(
            "dispatch {pipeline} {method} {url}",
            pipeline=self.pipeline.name,
            method=getattr(request, "method", ""),
            url=getattr(request, "url", ""),
        )


def _adapt_all(pipeline: PipelineDefinition, timeout_s: float | None) -> PipelineDefinition:
    adapted = []
    for idx, step in enumerate(pipeline.steps):
        if not callable(step):
            raise InvalidHandlerError(step, index=idx)
        adapted.append(AdaptedStep(step, timeout_s=timeout_s))
    return PipelineDefinition(adapted, name=pipeline.name, on_error=pipeline.on_error)


def to_dispatcher(
    pipeline: PipelineDefinition | Sequence[Any],
    *,
    config: LeaflineConfig | None = None,
) -> Dispatcher:
    """Adapt every step of *pipeline* and bind it to a ``Dispatcher``.

    Args:
        pipeline: A ``PipelineDefinition`` or a plain list/tuple of handlers.
        config:   Runtime configuration (step timeout, error status, tracing).

    Raises:
        InvalidArgumentError: If *pipeline* is neither accepted form.
        InvalidHandlerError:  If any step is not callable.
    """
    if isinstance(pipeline, (list, tuple)):
        pipeline = PipelineDefinition(pipeline)
    if not isinstance(pipeline, PipelineDefinition):
        raise InvalidArgumentError(
            "Expected a list of handlers or a `define` PipelineDefinition"
        )
    if not pipeline.steps:
        raise InvalidArgumentError("Cannot dispatch to a pipeline with no steps")

    config = config or LeaflineConfig()
    return Dispatcher(_adapt_all(pipeline, config.step_timeout_s), config)
