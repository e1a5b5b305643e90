"""leafline execution engine.

Public surface for the engine package. Consumers should import from
sub-modules directly; this __init__ re-exports only the most commonly
used names.
"""
from leafline.engine.adapter import AdaptedStep, adapt
from leafline.engine.dispatch import Dispatcher, to_dispatcher
from leafline.engine.exceptions import (
    EngineError,
    HandlerError,
    InvalidArgumentError,
    InvalidHandlerError,
    StepTimeoutError,
    UnclaimedRequestError,
)
from leafline.engine.outcome import Outcome, OutcomeKind
from leafline.engine.pipeline import PipelineDefinition, define
from leafline.engine.reducer import reduce_steps

__all__ = [
    # Pipeline
    "PipelineDefinition",
    "define",
    # Adapter
    "AdaptedStep",
    "adapt",
    # Reducer
    "reduce_steps",
    # Outcome
    "Outcome",
    "OutcomeKind",
    # Dispatch
    "Dispatcher",
    "to_dispatcher",
    # Exceptions
    "EngineError",
    "InvalidArgumentError",
    "InvalidHandlerError",
    "HandlerError",
    "UnclaimedRequestError",
    "StepTimeoutError",
]
