"""CommonJS format.

Detects `require("...")` calls and `exports.x =` / `module.exports =`
assignments, and runs the source in a private scope holding `module`,
`exports`, `require`, `__filename`, `__dirname`, `process` and `global`.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any

from ..models import Exports
from ..models import LoadRecord
from ..models import Module
from ..models import ModuleObject
from .base import CJS_REQUIRE_RE
from .base import dedupe
from .base import find_requires
from .base import strip_comments

if TYPE_CHECKING:
    from ..loader import Loader

logger = logging.getLogger(__name__)

CJS_EXPORTS_RE = re.compile(
    r"""(?:^\s*|[}{\(\);,\n=:\?\&]\s*|module\.)"""
    r"""(exports\s*\[\s*('[^']+'|"[^"]+")\s*\]|exports\s*\.\s*[_$a-zA-Z\xA0-\uffff][_$a-zA-Z0-9\xA0-\uffff]*|exports\s*=)"""
)


def _noop(*args: Any, **kwargs: Any) -> None:
    return None


@dataclass
class NodeProcess:
    """Inert `process` stand-in."""

    browser: bool = True
    env: dict[str, str] = field(default_factory=dict)
    argv: list[str] = field(default_factory=list)
    on: Callable[..., None] = _noop
    once: Callable[..., None] = _noop
    off: Callable[..., None] = _noop
    emit: Callable[..., None] = _noop

    def cwd(self) -> str:
        return "/"

    def next_tick(self, callback: Callable[[], Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            callback()
            return
        loop.call_soon(callback)


class CommonJSFormat:
    id = "cjs"

    def __init__(self, loader: Loader):
        self._loader = loader
        self.process = NodeProcess()

    def detect(self, load: LoadRecord) -> bool:
        source = strip_comments(load.source or "")
        return bool(CJS_REQUIRE_RE.search(source) or CJS_EXPORTS_RE.search(source))

    def extract_deps(self, load: LoadRecord) -> list[str]:
        deps = find_requires(load.source or "")
        load.metadata["cjs_deps"] = deps
        return deps

    def execute(self, dep_modules: list[Module], load: LoadRecord) -> Any:
        deps = dedupe(load.metadata.get("cjs_deps") or [])
        resolved = dict(zip(deps, dep_modules))

        address = load.address or load.name
        dirname = address.rsplit("/", 1)[0] if "/" in address else ""

        def require(dep: str) -> Any:
            if dep in resolved:
                return resolved[dep].interop()
            return self._loader.get_module(dep)

        exports = Exports()
        module = ModuleObject(id=load.name, uri=load.address, exports=exports)

        scope = dict(self._loader.global_scope)
        scope.update(
            {
                "global": self._loader.global_scope,
                "module": module,
                "exports": exports,
                "require": require,
                "__filename": address,
                "__dirname": dirname,
                "process": self.process,
                "define": None,
            }
        )
        self._loader.engine.execute(load.source or "", scope, load.address)
        return module.exports
