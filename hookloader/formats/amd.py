"""AMD format.

Dependency extraction runs the source once against the global scope with a
temporary `define` that only records its arguments. Execution later calls the
recorded factory with the resolved dependencies; the pseudo-dependencies
`require`, `exports` and `module` are synthesized and put back at the
positions they were declared in.

Named defines for a different module than the one being loaded register an
independent side-definition with the loader's predefined modules.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING
from typing import Any

from ..errors import DefinitionConflictError
from ..models import Exports
from ..models import Instantiation
from ..models import LoadRecord
from ..models import Module
from ..models import ModuleObject
from .base import bound_globals
from .base import dedupe
from .base import find_requires

if TYPE_CHECKING:
    from ..loader import Loader

logger = logging.getLogger(__name__)

# define([.., ..], ...) || define("id", ...) || define(factory) || define(lambda ...) || define({...})
AMD_RE = re.compile(
    r"""(?:^\s*|[}{\(\);,\n\?\&]\s*)define\s*\(\s*("[^"]+"\s*,|'[^']+'\s*,\s*)?"""
    r"""(\[(\s*("[^"]+"|'[^']+')\s*,)*(\s*("[^"]+"|'[^']+')\s*)?\]|function\s*|lambda\b|\{|[_$a-zA-Z\xA0-\uffff][_$a-zA-Z0-9\xA0-\uffff]*\))"""
)

PSEUDO_DEPS = ("require", "exports", "module")


@dataclass
class _Definition:
    deps: list[str] | None = None
    factory: Callable[..., Any] | None = None
    anonymous: bool = False


def _parse_define_args(args: tuple[Any, ...]) -> tuple[str | None, list[str] | None, Any]:
    if not args:
        raise TypeError("define() requires at least one argument")

    args_list = list(args)
    name = args_list.pop(0) if isinstance(args_list[0], str) else None
    deps = list(args_list.pop(0)) if args_list and isinstance(args_list[0], (list, tuple)) else None
    factory = args_list[0] if args_list else None
    return name, deps, factory


class AmdFormat:
    id = "amd"

    def __init__(self, loader: Loader):
        self._loader = loader

    def detect(self, load: LoadRecord) -> bool:
        return AMD_RE.search(load.source or "") is not None

    def make_define(self, load: LoadRecord, definition: _Definition | None = None) -> Callable[..., None]:
        """Build a recording `define` for one load.

        Anonymous (or self-named) definitions are stored on `definition`;
        named definitions of other modules go to the predefined modules.
        """
        definition = definition if definition is not None else _Definition()

        def define(*args: Any) -> None:
            name, deps, factory = _parse_define_args(args)

            if not name and definition.anonymous:
                raise DefinitionConflictError(
                    f"Multiple anonymous defines for module {load.name}",
                    name=load.name,
                    address=load.address,
                )
            if not name:
                definition.anonymous = True

            if deps is None:
                # define(factory): CommonJS-style wrapper
                deps = list(PSEUDO_DEPS) + find_requires(load.source or "") if callable(factory) else []

            if not callable(factory):
                value = factory

                def factory(*_args: Any) -> Any:
                    return value

            if name and name != load.name:
                logger.debug(f"[amd:define] {load.name} defines side module {name}")
                self._loader.defined.define(name, self._side_instantiation(name, deps, factory))
                return

            definition.deps = deps
            definition.factory = factory

        define.amd = {}
        return define

    def extract_deps(self, load: LoadRecord) -> list[str]:
        definition = _Definition()
        bindings = {"define": self.make_define(load, definition), "module": None, "exports": None}

        # Run against the live global object so factories resolve globals at call time
        with bound_globals(self._loader.global_scope, bindings) as scope:
            self._loader.engine.execute(load.source or "", scope, load.address)

        raw_deps = dedupe(definition.deps or [])
        load.metadata["amd_deps"] = raw_deps
        load.metadata["amd_factory"] = definition.factory
        return [dep for dep in raw_deps if dep not in PSEUDO_DEPS]

    def execute(self, dep_modules: list[Module], load: LoadRecord) -> Any:
        factory = load.metadata.get("amd_factory")
        if factory is None:
            return None
        return self._call_factory(load.name, load.address, load.metadata.get("amd_deps") or [], dep_modules, factory)

    def _side_instantiation(self, name: str, deps: list[str], factory: Callable[..., Any]) -> Instantiation:
        raw_deps = dedupe(deps)

        def execute(*dep_modules: Module) -> Module:
            output = self._call_factory(name, name, raw_deps, list(dep_modules), factory)
            return Module.from_value(output, name)

        return Instantiation(deps=[dep for dep in raw_deps if dep not in PSEUDO_DEPS], execute=execute)

    def _call_factory(
        self,
        name: str,
        address: str | None,
        raw_deps: list[str],
        dep_modules: list[Module],
        factory: Callable[..., Any],
    ) -> Any:
        real_deps = [dep for dep in raw_deps if dep not in PSEUDO_DEPS]
        resolved = dict(zip(real_deps, dep_modules))

        module: ModuleObject | None = None
        if "exports" in raw_deps or "module" in raw_deps:
            module = ModuleObject(id=name, uri=address, exports=Exports())

        args: list[Any] = []
        for dep in raw_deps:
            if dep == "require":
                args.append(self._scoped_require(name, resolved))
            elif dep == "exports":
                args.append(module.exports)
            elif dep == "module":
                args.append(module)
            else:
                args.append(resolved[dep].interop())

        output = factory(*args)
        if output is None and module is not None:
            output = module.exports
        return output

    def _scoped_require(self, parent_name: str, resolved: dict[str, Module]) -> Callable[..., Any]:
        def require(names: Any, callback: Callable[..., Any] | None = None, errback: Callable | None = None) -> Any:
            if isinstance(names, str) and names in resolved:
                return resolved[names].interop()
            return self._loader.require(names, callback, errback, parent_name=parent_name)

        return require
