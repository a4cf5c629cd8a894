"""Script execution primitive.

The loader never runs source text itself; it hands source plus a scope dict
(the global object) to a ScriptEngine. PythonScriptEngine is the default and
runs Python source, which is enough to express the AMD, CommonJS and
global-script conventions: `define([...], factory)`, `module.exports = ...`,
`require("...")` and plain top-level assignments.
"""

from __future__ import annotations

import logging
from typing import Any
from typing import Protocol
from typing import runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ScriptEngine(Protocol):
    """Synchronous script execution against a mutable scope."""

    def execute(self, source: str, scope: dict[str, Any], address: str | None = None) -> None:
        """Run `source` with `scope` as its global bindings."""
        ...

    def evaluate(self, expression: str, scope: dict[str, Any]) -> Any:
        """Evaluate a single expression (a dotted export path) in `scope`."""
        ...


class PythonScriptEngine:
    """Runs Python source with exec/eval."""

    def execute(self, source: str, scope: dict[str, Any], address: str | None = None) -> None:
        code = compile(source, address or "<hookloader>", "exec")
        logger.debug(f"[engine:execute] {address or '<anonymous>'} ({len(source)} chars)")
        exec(code, scope)

    def evaluate(self, expression: str, scope: dict[str, Any]) -> Any:
        return eval(expression, scope)

    def __repr__(self) -> str:
        return "PythonScriptEngine()"
