"""Tests for leafline.engine.adapter — callback → Outcome settlement.

Coverage:
- next() / next(err) / raise / return-value settlements for sync handlers.
- Coroutine handlers settling with their own resolution.
- Deferred next() from the event loop and from a worker thread.
- Single settlement under double-next and next-then-raise.
- Construction-time rejection of non-callables; optional step timeout.
"""
from __future__ import annotations

import asyncio
import threading

import pytest

from leafline.engine.adapter import AdaptedStep, adapt
from leafline.engine.exceptions import InvalidHandlerError, StepTimeoutError
from leafline.engine.outcome import OutcomeKind


REQ = object()
RES = object()


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestConstruction:
    @pytest.mark.parametrize("bad", [None, 42, "handler", ["a"]])
    def test_non_callable_rejected_immediately(self, bad) -> None:
        with pytest.raises(InvalidHandlerError):
            adapt(bad)

    def test_name_defaults_to_qualname(self) -> None:
        def authenticate(req, res, next):
            next()

        assert adapt(authenticate).name.endswith("authenticate")
        assert "authenticate" in repr(adapt(authenticate))

    def test_callable_object_accepted(self) -> None:
        class Handler:
            def __call__(self, req, res, next):
                next()

        assert isinstance(adapt(Handler()), AdaptedStep)


# ---------------------------------------------------------------------------
# Synchronous handlers
# ---------------------------------------------------------------------------

class TestSyncHandlers:
    async def test_next_without_error_continues(self) -> None:
        outcome = await adapt(lambda req, res, next: next())(REQ, RES)
        assert outcome.kind is OutcomeKind.CONTINUE

    async def test_next_with_error_fails(self) -> None:
        outcome = await adapt(lambda req, res, next: next("boom"))(REQ, RES)
        assert outcome.kind is OutcomeKind.FAILURE
        assert outcome.error == "boom"

    async def test_falsy_error_continues(self) -> None:
        outcome = await adapt(lambda req, res, next: next(None))(REQ, RES)
        assert outcome.kind is OutcomeKind.CONTINUE

    async def test_raise_fails(self) -> None:
        def handler(req, res, next):
            raise ValueError("bad input")

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.kind is OutcomeKind.FAILURE
        assert isinstance(outcome.error, ValueError)

    async def test_returned_value_short_circuits(self) -> None:
        outcome = await adapt(lambda req, res, next: {"status": 204, "headers": {}})(REQ, RES)
        assert outcome.kind is OutcomeKind.VALUE
        assert outcome.value["status"] == 204

    async def test_receives_request_and_response(self) -> None:
        seen = []

        def handler(req, res, next):
            seen.append((req, res))
            next()

        await adapt(handler)(REQ, RES)
        assert seen == [(REQ, RES)]

    async def test_handler_invoked_once_per_call(self) -> None:
        calls = []

        def handler(req, res, next):
            calls.append(1)
            next()
            next()

        step = adapt(handler)
        await step(REQ, RES)
        await step(REQ, RES)
        assert len(calls) == 2


# ---------------------------------------------------------------------------
# Single settlement
# ---------------------------------------------------------------------------

class TestSingleSettlement:
    async def test_second_next_ignored(self) -> None:
        def handler(req, res, next):
            next()
            next("late error")

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.kind is OutcomeKind.CONTINUE

    async def test_first_error_wins(self) -> None:
        def handler(req, res, next):
            next("first")
            next("second")

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.error == "first"

    async def test_raise_after_next_ignored(self) -> None:
        def handler(req, res, next):
            next()
            raise RuntimeError("after the fact")

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.kind is OutcomeKind.CONTINUE

    async def test_return_after_next_error_ignored(self) -> None:
        def handler(req, res, next):
            next("boom")
            return "value"

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.kind is OutcomeKind.FAILURE
        assert outcome.error == "boom"


# ---------------------------------------------------------------------------
# Deferred callbacks
# ---------------------------------------------------------------------------

class TestDeferredNext:
    async def test_next_called_later_on_loop(self) -> None:
        def handler(req, res, next):
            asyncio.get_running_loop().call_later(0.01, next)

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.kind is OutcomeKind.CONTINUE

    async def test_next_error_called_later_on_loop(self) -> None:
        def handler(req, res, next):
            asyncio.get_running_loop().call_soon(next, "late boom")

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.error == "late boom"

    async def test_next_called_from_worker_thread(self) -> None:
        def handler(req, res, next):
            threading.Thread(target=next, args=("from thread",)).start()

        outcome = await asyncio.wait_for(adapt(handler)(REQ, RES), timeout=2)
        assert outcome.error == "from thread"


# ---------------------------------------------------------------------------
# Coroutine handlers
# ---------------------------------------------------------------------------

class TestAsyncHandlers:
    async def test_resolution_without_next_continues(self) -> None:
        async def handler(req, res, next):
            await asyncio.sleep(0)

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.kind is OutcomeKind.CONTINUE

    async def test_resolution_with_value(self) -> None:
        async def handler(req, res, next):
            return "rendered"

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.kind is OutcomeKind.VALUE
        assert outcome.value == "rendered"

    async def test_rejection_fails(self) -> None:
        async def handler(req, res, next):
            await asyncio.sleep(0)
            raise LookupError("missing")

        outcome = await adapt(handler)(REQ, RES)
        assert isinstance(outcome.error, LookupError)

    async def test_next_error_before_resolution(self) -> None:
        async def handler(req, res, next):
            next("denied")
            return "ignored"

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.error == "denied"

    async def test_settles_on_next_without_waiting_for_coroutine(self) -> None:
        release = asyncio.Event()
        finished = []

        async def handler(req, res, next):
            next()
            await release.wait()
            finished.append(True)

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.kind is OutcomeKind.CONTINUE
        assert finished == []
        release.set()
        await asyncio.sleep(0.01)
        assert finished == [True]

    async def test_raise_after_next_is_swallowed(self) -> None:
        async def handler(req, res, next):
            next()
            await asyncio.sleep(0)
            raise RuntimeError("background")

        outcome = await adapt(handler)(REQ, RES)
        assert outcome.kind is OutcomeKind.CONTINUE
        await asyncio.sleep(0.01)


# ---------------------------------------------------------------------------
# Timeout extension
# ---------------------------------------------------------------------------

class TestTimeout:
    async def test_unsettled_step_times_out(self) -> None:
        def handler(req, res, next):
            return None  # never calls next

        outcome = await adapt(handler, timeout_s=0.05)(REQ, RES)
        assert outcome.kind is OutcomeKind.FAILURE
        assert isinstance(outcome.error, StepTimeoutError)
        assert outcome.error.timeout_s == 0.05

    async def test_slow_coroutine_times_out_and_is_cancelled(self) -> None:
        cancelled = []

        async def handler(req, res, next):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        outcome = await adapt(handler, timeout_s=0.05)(REQ, RES)
        assert isinstance(outcome.error, StepTimeoutError)
        await asyncio.sleep(0.01)
        assert cancelled == [True]

    async def test_fast_step_unaffected(self) -> None:
        outcome = await adapt(lambda req, res, next: next(), timeout_s=1)(REQ, RES)
        assert outcome.kind is OutcomeKind.CONTINUE
