"""
Engine configuration.

Settings come from code (`EngineConfig(...)`), from the environment
(`EngineConfig.from_env()`), or from a YAML file (`load_config(path)`).
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union

import yaml


@dataclass(frozen=True)
class EngineConfig:
    # Deepest allowed nesting of parenthesised/bracketed sub-expressions.
    max_nesting_depth: int = 64
    # Emit trace records through the `bel` loggers at DEBUG level.
    debug: bool = False
    # Compiled programs kept by a Runner, keyed by source text.
    program_cache_size: int = 256

    @classmethod
    def from_env(cls, base: Optional["EngineConfig"] = None) -> "EngineConfig":
        config = base or cls()
        overrides = {}
        if os.environ.get("BEL_DEBUG"):
            overrides["debug"] = os.environ["BEL_DEBUG"].lower() not in ("0", "false", "no")
        if os.environ.get("BEL_MAX_NESTING_DEPTH"):
            overrides["max_nesting_depth"] = int(os.environ["BEL_MAX_NESTING_DEPTH"])
        if os.environ.get("BEL_PROGRAM_CACHE_SIZE"):
            overrides["program_cache_size"] = int(os.environ["BEL_PROGRAM_CACHE_SIZE"])
        return replace(config, **overrides)


DEFAULT_CONFIG = EngineConfig()


def load_config(path: Union[str, Path]) -> EngineConfig:
    """Loads an EngineConfig from a YAML mapping; unknown keys are rejected."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping, got {type(data).__name__}")
    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{path}: unknown configuration keys: {', '.join(unknown)}")
    return EngineConfig(**data)
