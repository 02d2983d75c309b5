"""TIR Configuration — project-level .tirrc.yml support.

Loads configuration from .tirrc.yml (or .tirrc.yaml, .tirrc.json) found in
the working directory or any parent. Allows a project to configure:
  - The modulus used by unsigned comparisons
  - A loop-iteration budget for concrete execution
  - The SMT solver timeout
  - The native code optimization level
  - The log level of the ``tir`` logger

Example .tirrc.yml:
    unsigned_compare: width      # or fixed64 (default)
    max_iterations: 100000       # 0 = unbounded
    solver_timeout_ms: 5000
    opt_level: 2
    log_level: DEBUG
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml

from tir.operators import UnsignedCompare


@dataclass
class TirConfig:
    """Project-level TIR configuration."""
    # "fixed64" reduces unsigned comparison operands mod 2^64, "width" mod 2^width
    unsigned_compare: str = UnsignedCompare.FIXED64.value
    # Loop iterations allowed per execute() call; 0 = unbounded
    max_iterations: int = 0
    solver_timeout_ms: int = 10000
    opt_level: int = 2
    log_level: str = "WARNING"

    def validate(self) -> None:
        UnsignedCompare(self.unsigned_compare)
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be >= 0, got {self.max_iterations}")
        if self.solver_timeout_ms <= 0:
            raise ValueError(f"solver_timeout_ms must be > 0, got {self.solver_timeout_ms}")
        if self.opt_level not in (0, 1, 2, 3):
            raise ValueError(f"opt_level must be 0-3, got {self.opt_level}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level '{self.log_level}'")


# ---------------------------------------------------------------------------
# Config file names (in priority order)
# ---------------------------------------------------------------------------

_CONFIG_FILES = [
    ".tirrc.yml",
    ".tirrc.yaml",
    ".tirrc.json",
    "tir.config.yml",
    "tir.config.json",
]


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> TirConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found, returns defaults.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return TirConfig()

    with open(path, "r") as f:
        content = f.read()

    if path.endswith(".json"):
        data = json.loads(content)
    else:
        data = yaml.safe_load(content) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return _dict_to_config(data)


def _dict_to_config(data: Dict[str, Any]) -> TirConfig:
    """Convert a parsed dict to TirConfig."""
    config = TirConfig()

    if "unsigned_compare" in data:
        config.unsigned_compare = str(data["unsigned_compare"])
    if "max_iterations" in data:
        config.max_iterations = int(data["max_iterations"] or 0)
    if "solver_timeout_ms" in data:
        config.solver_timeout_ms = int(data["solver_timeout_ms"])
    if "opt_level" in data:
        config.opt_level = int(data["opt_level"])
    if "log_level" in data:
        config.log_level = str(data["log_level"])

    config.validate()
    return config


def configure_logging(config: TirConfig) -> None:
    """Apply ``config.log_level`` to the ``tir`` logger hierarchy."""
    logging.getLogger("tir").setLevel(config.log_level.upper())
