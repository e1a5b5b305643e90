"""leafline — sequential Express-style middleware pipelines for Python servers.

::

    from leafline import define, to_dispatcher
    from leafline.http import not_found

    def hello(req, res, next):
        next()

    pipeline = define("site", [hello])
    pipeline.with_error_continuation(lambda err, req: not_found("nothing here"))
    dispatch = to_dispatcher(pipeline)
"""

__version__ = "0.3.0"

from leafline.config import LeaflineConfig, load_config
from leafline.engine import (
    EngineError,
    HandlerError,
    InvalidArgumentError,
    InvalidHandlerError,
    Outcome,
    PipelineDefinition,
    UnclaimedRequestError,
    adapt,
    define,
    reduce_steps,
    to_dispatcher,
)

__all__ = [
    "__version__",
    "LeaflineConfig",
    "load_config",
    "PipelineDefinition",
    "define",
    "adapt",
    "reduce_steps",
    "to_dispatcher",
    "Outcome",
    "EngineError",
    "InvalidArgumentError",
    "InvalidHandlerError",
    "HandlerError",
    "UnclaimedRequestError",
]
