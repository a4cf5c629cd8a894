"""Bundle redirection.

    bundles = {"mybundle": ["jquery", "bootstrap/js/bootstrap"]}

A request for any bundle member loads "mybundle" instead; executing the bundle
registers its members with the predefined modules (through `register(...)` or
named `define(...)` calls), after which the member resolves without a fetch
of its own.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from typing import Any

from .formats.base import bound_globals
from .models import Instantiation
from .models import LoadRecord
from .models import Module

if TYPE_CHECKING:
    from .loader import Loader

logger = logging.getLogger(__name__)


class BundleRedirector:
    """Fetch/locate/instantiate handlers for bundle members and bundles."""

    def __init__(self, loader: Loader, bundles: dict[str, list[str]] | None = None):
        self._loader = loader
        self.bundles: dict[str, list[str]] = {bundle: list(members) for bundle, members in (bundles or {}).items()}

    def install(self, loader: Loader) -> None:
        loader.use("fetch", self.fetch, name="bundles")
        loader.use("locate", self.locate, name="bundles")
        loader.use("instantiate", self.instantiate, name="bundles")

    def bundle_for(self, name: str) -> str | None:
        for bundle, members in self.bundles.items():
            if name in members:
                return bundle
        return None

    async def fetch(self, next_, load: LoadRecord) -> str:
        bundle = self.bundle_for(load.name)
        if bundle is None:
            return await next_(load)

        # Normalize by hand so a mapped bundle name is still known as a bundle
        normalized = await self._loader.normalize(bundle)
        self.bundles.setdefault(normalized, self.bundles[bundle])
        logger.debug(f"[bundles] {load.name} is provided by {normalized}")

        await self._loader.load_normalized(normalized)
        return ""

    async def locate(self, next_, load: LoadRecord) -> str:
        if load.name in self.bundles:
            load.metadata["bundle"] = True
        return await next_(load)

    async def instantiate(self, next_, load: LoadRecord) -> Instantiation:
        if not load.metadata.get("bundle"):
            return await next_(load)

        def execute(*_deps: Module) -> Module:
            bindings: dict[str, Any] = {"register": self._loader.register}
            amd = self._loader.formats.get("amd")
            if amd is not None and hasattr(amd, "make_define"):
                bindings["define"] = amd.make_define(load)
            with bound_globals(self._loader.global_scope, bindings) as scope:
                self._loader.engine.execute(load.source or "", scope, load.address)
            return Module({}, name=load.name, es_module=True)

        return Instantiation(deps=[], execute=execute)
