"""leafline runtime configuration.

Settings come from, in increasing precedence:

1. ``LeaflineConfig`` field defaults,
2. ``leafline.toml`` in the project directory, or the ``[tool.leafline]``
   table of ``pyproject.toml`` when there is no ``leafline.toml``,
3. ``LEAFLINE_<FIELD>`` environment variables.

TOML sections (``[logging]``, ``[engine]``) are only for grouping; keys are
flattened onto the model.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "leafline.toml"
PYPROJECT_FILE = "pyproject.toml"
ENV_PREFIX = "LEAFLINE_"


class LeaflineConfig(BaseModel):
    """Dispatcher and logging settings.

    Every field can be set from the environment, e.g.
    ``LEAFLINE_STEP_TIMEOUT_S=2.5`` or ``LEAFLINE_EXPOSE_ERRORS=true``.
    """

    log_level: str = "INFO"
    log_file: Optional[Path] = None
    tracing_enabled: bool = True
    step_timeout_s: Optional[float] = Field(default=None, gt=0)
    default_error_status: int = Field(default=500, ge=400, le=599)
    expose_errors: bool = False

    model_config = {"extra": "ignore"}


def _apply_env_overrides(data: dict) -> dict:
    """Overlay ``LEAFLINE_*`` variables naming a known field onto *data*."""
    known = LeaflineConfig.model_fields
    for name, raw in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        key = name.removeprefix(ENV_PREFIX).lower()
        if key in known:
            data[key] = raw
    return data


def _flatten(table: dict[str, Any]) -> dict[str, Any]:
    settings: dict[str, Any] = {}
    for key, value in table.items():
        if isinstance(value, dict):
            settings.update(value)
        else:
            settings[key] = value
    return settings


def _read_table(path: Path) -> dict[str, Any]:
    with path.open("rb") as fh:
        document = tomllib.load(fh)
    if path.name == PYPROJECT_FILE:
        return document.get("tool", {}).get("leafline", {})
    return document


def _find_config(project: Path) -> Path | None:
    for candidate in (project / DEFAULT_CONFIG_FILE, project / PYPROJECT_FILE):
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Path | None = None, project_dir: Path | None = None) -> LeaflineConfig:
    """Build a ``LeaflineConfig`` from TOML and the environment.

    Parameters
    ----------
    config_path:
        TOML file to read.  When *None*, ``leafline.toml`` and then
        ``pyproject.toml`` are looked up in *project_dir*.
    project_dir:
        Directory searched when *config_path* is not given.  Defaults to the
        current working directory.

    Raises
    ------
    pydantic.ValidationError
        If a value is out of range (e.g. ``default_error_status = 200``).
    """
    path = config_path or _find_config(project_dir or Path.cwd())

    settings: dict[str, Any] = {}
    if path is not None and path.exists():
        logger.debug("loading configuration from %s", path)
        settings = _flatten(_read_table(path))

    return LeaflineConfig(**_apply_env_overrides(settings))


def default_config_toml() -> str:
    """Render the default settings as a ``leafline.toml`` document."""
    defaults = LeaflineConfig()
    return (
        "# leafline configuration\n"
        "\n"
        "[logging]\n"
        f'log_level = "{defaults.log_level}"\n'
        "\n"
        "[engine]\n"
        f"tracing_enabled = {str(defaults.tracing_enabled).lower()}\n"
        f"default_error_status = {defaults.default_error_status}\n"
        f"expose_errors = {str(defaults.expose_errors).lower()}\n"
        "# step_timeout_s = 30\n"
    )
