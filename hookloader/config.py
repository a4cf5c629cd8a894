"""Pydantic schemas for loader configuration.

The raw configuration accepts the loose shapes users write (a version may be a
string or a list, a shim may be a dependency list or an object, a map value
may be a replacement or a contextual table). Validation resolves those shapes
once, so the runtime components never re-inspect them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

logger = logging.getLogger(__name__)


class ShimEntry(BaseModel):
    """Global-script shim for one module."""

    deps: list[str] = Field(default_factory=list, description="Modules to load before this one")
    exports: str | None = Field(None, description="Dotted global path holding the module value")

    @model_validator(mode="before")
    @classmethod
    def _accept_shorthand(cls, value: Any) -> Any:
        # `shim: {jquery-ui: [jquery]}` is shorthand for `{deps: [jquery]}`
        if isinstance(value, (list, tuple)):
            return {"deps": list(value)}
        if isinstance(value, dict) and "imports" in value and "deps" not in value:
            value = dict(value)
            value["deps"] = value.pop("imports")
        return value


@dataclass(frozen=True)
class MapTable:
    """Split map configuration.

    Attributes:
        global_rules: prefix -> replacement
        contextual_rules: parent prefix -> {prefix -> replacement}
    """

    global_rules: dict[str, str] = field(default_factory=dict)
    contextual_rules: dict[str, dict[str, str]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, raw: dict[str, str | dict[str, str]]) -> MapTable:
        global_rules: dict[str, str] = {}
        contextual_rules: dict[str, dict[str, str]] = {}
        for prefix, target in raw.items():
            if isinstance(target, dict):
                contextual_rules[prefix] = dict(target)
            else:
                global_rules[prefix] = target
        return cls(global_rules=global_rules, contextual_rules=contextual_rules)


class LoaderConfig(BaseModel):
    """Complete loader configuration."""

    base_url: str = Field(default="", description="Prefix joined onto located addresses")
    paths: dict[str, str] = Field(default_factory=dict, description="Wildcard path rewrites for locate")
    default_extension: str = Field(default=".py", description="Extension appended by locate")
    map: dict[str, str | dict[str, str]] = Field(default_factory=dict, description="Global and contextual maps")
    bundles: dict[str, list[str]] = Field(default_factory=dict, description="Bundle id -> member module names")
    versions: dict[str, list[str]] = Field(default_factory=dict, description="Package -> known versions")
    shim: dict[str, ShimEntry] = Field(default_factory=dict, description="Global-script shims")
    formats: list[str] | None = Field(None, description="Format detection order (registry default if omitted)")

    @field_validator("versions", mode="before")
    @classmethod
    def _versions_as_lists(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {package: [v] if isinstance(v, str) else list(v) for package, v in value.items()}

    def map_table(self) -> MapTable:
        return MapTable.from_config(self.map)


def load_loader_config(path: Path | str) -> LoaderConfig:
    """Read a LoaderConfig from a YAML file.

    The file may hold the configuration at top level or under a `loader` key.

    Args:
        path: YAML file path

    Returns:
        Validated LoaderConfig (defaults if the file is empty)
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if "loader" in data and isinstance(data["loader"], dict):
        data = data["loader"]

    logger.debug(f"Loaded loader config from {path}")
    return LoaderConfig.model_validate(data)
