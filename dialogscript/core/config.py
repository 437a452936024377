"""
Engine configuration.

A single pydantic model shared by the loader, context and runner:

    config = EngineConfig(default_start_node="intro", strict_interpolation=True)
    runner = Runner(config=config)

    # or from a JSON file
    config = EngineConfig.from_file("dialogue.config.json")
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EngineConfig(BaseModel):
    """
    Settings for a dialogue engine instance.

    Attributes:
        default_start_node: Node used by Runner.start() when none is given
        script_extensions: File suffixes picked up by ScriptLoader.load_directory
        strict_interpolation: If True, an unresolved name inside dialogue text
            raises instead of rendering as its `{source}` form
        auto_advance_to_choices: Keep stepping after a line when the next
            reachable content is a live choice
        max_steps: Upper bound on internal steps per host call
        register_builtins: Register `log` and `concat` on new contexts
        allow_node_overrides: Later scripts may redefine an existing node name
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra='forbid',
    )

    default_start_node: str = "start"
    script_extensions: tuple[str, ...] = (".txt", ".mds")
    strict_interpolation: bool = False
    auto_advance_to_choices: bool = True
    max_steps: int = Field(default=10_000, gt=0)
    register_builtins: bool = True
    allow_node_overrides: bool = True

    @field_validator("script_extensions")
    @classmethod
    def _normalize_extensions(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in value
        )

    @classmethod
    def from_file(cls, path: str | Path) -> EngineConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls.model_validate(data)
