"""Predefined-module cache.

Producers (bundles, named AMD defines, host code calling `Loader.register`)
register a `{deps, execute}` pair for a name ahead of time. Fetch for that
name short-circuits to empty source and instantiate consumes the pair once
instead of running format detection.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from collections.abc import Iterable
from typing import TYPE_CHECKING
from typing import Any

from .models import Instantiation
from .models import LoadRecord
from .models import Module

if TYPE_CHECKING:
    from .loader import Loader

logger = logging.getLogger(__name__)


class PredefinedModules:
    """One-shot instantiation cache keyed by normalized name."""

    def __init__(self):
        self._defined: dict[str, Instantiation] = {}

    def install(self, loader: Loader) -> None:
        loader.use("fetch", self.fetch, name="predefined")
        loader.use("instantiate", self.instantiate, name="predefined")

    def register(self, name: str, deps: Iterable[str], execute: Callable[..., Any]) -> None:
        """Register a module whose execute returns its bindings.

        Args:
            name: Normalized module name
            deps: Dependency names (normalized against `name` at load time)
            execute: Called with the resolved dependency Modules; returns a
                mapping of bindings or a Module
        """

        def execute_bindings(*dep_modules: Module) -> Module:
            value = execute(*dep_modules)
            if isinstance(value, Module):
                return value
            return Module(dict(value or {}), name=name, es_module=True)

        self.define(name, Instantiation(deps=list(deps), execute=execute_bindings))

    def define(self, name: str, instantiation: Instantiation) -> None:
        if name in self._defined:
            logger.debug(f"[predefined] replacing pending definition of {name}")
        self._defined[name] = instantiation

    def has(self, name: str) -> bool:
        return name in self._defined

    def pop(self, name: str) -> Instantiation | None:
        return self._defined.pop(name, None)

    def names(self) -> list[str]:
        return list(self._defined)

    async def fetch(self, next_, load: LoadRecord) -> str:
        if load.name in self._defined:
            return ""
        return await next_(load)

    async def instantiate(self, next_, load: LoadRecord) -> Instantiation:
        instantiation = self.pop(load.name)
        if instantiation is not None:
            logger.debug(f"[predefined] instantiating {load.name} from registration")
            return instantiation
        return await next_(load)
