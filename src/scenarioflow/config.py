"""Engine configuration and logging setup.

Settings come from (lowest to highest priority) the defaults below, an
optional YAML file, ``SCENARIOFLOW_*`` environment variables and finally the
CLI options.
"""
from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel
from rich.logging import RichHandler

ENV_PREFIX = "SCENARIOFLOW_"


class EngineConfig(BaseModel):
    scope_name: str = "default"
    halt_on_error: bool = False
    run_timeout: Optional[float] = None   # seconds to wait for the run to settle
    log_level: str = "WARNING"
    results_dir: Path = Path("results")

    def merged(self, **overrides: Any) -> "EngineConfig":
        values = {k: v for k, v in overrides.items() if v is not None}
        return self.model_copy(update=values)


_ENV_FIELDS = {
    "SCOPE": "scope_name",
    "HALT_ON_ERROR": "halt_on_error",
    "RUN_TIMEOUT": "run_timeout",
    "LOG_LEVEL": "log_level",
    "RESULTS_DIR": "results_dir",
}


def _env_values(environ: Dict[str, str]) -> Dict[str, Any]:
    values = {}
    for suffix, name in _ENV_FIELDS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is not None and raw != "":
            values[name] = raw
    return values


def load_config(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> EngineConfig:
    data: Dict[str, Any] = {}
    if path is not None:
        data = yaml.safe_load(Path(path).read_text()) or {}
    data.update(_env_values(os.environ if environ is None else environ))
    return EngineConfig(**data)


def configure_logging(level: str = "WARNING") -> None:
    root = logging.getLogger("scenarioflow")
    root.setLevel(level.upper())
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(show_path=False, rich_tracebacks=True))
    root.propagate = False
