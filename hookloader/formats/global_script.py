"""Global-script format.

Fallback format (always matches, so it must be registered last). Supports the
inline shim directives

    "global";
    "import jquery";
    "export my.Global";

and the `shim` configuration. Execution replays the captured globals of the
module's dependencies onto the global scope, snapshots it, runs the script
directly against it and diffs the result. The diff is cached per module so
later global-format dependents can replay it without re-executing.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING
from typing import Any

from ..models import LoadRecord
from ..models import Module

if TYPE_CHECKING:
    from ..loader import Loader

logger = logging.getLogger(__name__)

GLOBAL_SHIM_RE = re.compile(r"""(["']global["'];\s*)((['"]import [^'"]+['"];\s*)*)(['"]export ([^'"]+)["'])?""")
GLOBAL_IMPORT_RE = re.compile(r"""["']import ([^'"]+)["']""")


def _is_hidden(key: str) -> bool:
    # Engine bookkeeping such as __builtins__ never counts as a module global
    return key.startswith("__") and key.endswith("__")


class GlobalFormat:
    id = "global"

    def __init__(self, loader: Loader):
        self._loader = loader
        self.module_globals: dict[str, dict[str, Any]] = {}

    def detect(self, load: LoadRecord) -> bool:
        return True

    def extract_deps(self, load: LoadRecord) -> list[str]:
        deps: list[str] = []
        match = GLOBAL_SHIM_RE.search(load.source or "")
        if match:
            deps = GLOBAL_IMPORT_RE.findall(match.group(2) or "")
            if match.group(5):
                load.metadata["global_export"] = match.group(5)

        shim = self._loader.config.shim.get(load.name)
        if shim is not None:
            if shim.exports:
                load.metadata["global_export"] = shim.exports
            deps = deps + list(shim.deps)

        return deps

    def execute(self, dep_modules: list[Module], load: LoadRecord) -> Any:
        scope = self._loader.global_scope
        global_export = load.metadata.get("global_export")

        for dep in dep_modules:
            captured = self.module_globals.get(dep.name or "")
            if captured:
                scope.update(captured)

        before = {key: value for key, value in scope.items() if not _is_hidden(key)}

        self._loader.engine.execute(load.source or "", scope, load.address)

        if global_export:
            first_part = global_export.split(".")[0]
            self.module_globals[load.name] = {first_part: scope.get(first_part)}
            return self._loader.engine.evaluate(global_export, scope)

        changed: dict[str, Any] = {}
        for key, value in scope.items():
            if _is_hidden(key):
                continue
            if key not in before or before[key] is not value:
                changed[key] = value

        self.module_globals[load.name] = changed
        logger.debug(f"[global:diff] {load.name} changed {sorted(changed)}")

        values = list(changed.values())
        if values and all(value is values[0] for value in values):
            return values[0]
        return Module(changed, name=load.name)
