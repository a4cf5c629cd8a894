"""ES module alias format: `export * from "target"` forwards a whole module."""

from __future__ import annotations

import re
from typing import Any

from ..models import LoadRecord
from ..models import Module

ALIAS_RE = re.compile(r"""^\s*export\s*\*\s*from\s*(?:'([^']+)'|"([^"]+)")""")


class EsAliasFormat:
    id = "esm"

    def detect(self, load: LoadRecord) -> bool:
        return ALIAS_RE.match(load.source or "") is not None

    def extract_deps(self, load: LoadRecord) -> list[str]:
        match = ALIAS_RE.match(load.source or "")
        if match is None:
            return []
        return [match.group(1) or match.group(2)]

    def execute(self, dep_modules: list[Module], load: LoadRecord) -> Any:
        if not dep_modules:
            return Module({}, name=load.name, es_module=True)
        return dep_modules[0]
