"""Format descriptor protocol and shared source helpers."""

from __future__ import annotations

import re
from collections.abc import Iterable
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from ..models import LoadRecord
from ..models import Module

# First string literal of the source, optionally after comments and "use strict"
FORMAT_HINT_RE = re.compile(
    r"""^(?:\s*(?:/\*[\s\S]*?\*/|//[^\n]*|\#[^\n]*))*\s*(?:["']use strict["'];?\s*)?["'](?P<hint>[^'"\n]+)["'](?:;|\n|$)"""
)

# Block comments, // line comments (not preceded by ':' as in URLs) and # comments
COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/|(?P<slash>[^:]|^)//.*$|(?P<hash>^|[^'\"\w])\#.*$", re.M)

CJS_REQUIRE_RE = re.compile(r"""(?:^\s*|[}{\(\);,\n=:\?\&]\s*)require\s*\(\s*(?:"([^"]+)"|'([^']+)')\s*\)""")


@runtime_checkable
class FormatDescriptor(Protocol):
    """Detector, dependency extractor and executor for one packaging convention."""

    id: str

    def detect(self, load: LoadRecord) -> bool: ...

    def extract_deps(self, load: LoadRecord) -> list[str]: ...

    def execute(self, dep_modules: list[Module], load: LoadRecord) -> Any: ...


def dedupe(names: Iterable[str]) -> list[str]:
    """Drop repeated names, keeping first occurrences in order."""
    return list(dict.fromkeys(names))


def strip_comments(source: str) -> str:
    return COMMENT_RE.sub(lambda m: m.group("slash") or m.group("hash") or "", source)


def find_requires(source: str) -> list[str]:
    """Every statically visible `require("...")` argument, in source order."""
    return [m.group(1) or m.group(2) for m in CJS_REQUIRE_RE.finditer(strip_comments(source))]


def format_hint(source: str) -> str | None:
    match = FORMAT_HINT_RE.match(source)
    return match.group("hint") if match else None


@contextmanager
def bound_globals(scope: dict[str, Any], bindings: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Temporarily install `bindings` on the live global scope.

    Code executed inside the block keeps `scope` as its globals, so functions
    it defines see later writes to the global object. Shadowed values are
    restored on exit.
    """
    shadowed = {key: scope[key] for key in bindings if key in scope}
    scope.update(bindings)
    try:
        yield scope
    finally:
        for key in bindings:
            scope.pop(key, None)
        scope.update(shadowed)
