"""Pipeline core.

The Loader drives one module at a time through normalize -> locate -> fetch ->
translate -> instantiate, loads the dependencies instantiate discovers, then
runs the deferred execute with those dependencies resolved. Every add-on
(map, versions, plugins, bundles, predefined modules) is a handler on one of
the stage chains; see hooks.py for the composition rules.

Singleton guarantee: each normalized name gets exactly one Module record per
loader. The record is created as a placeholder when the load starts and filled
in place when execution completes, so every requester (including cycle
partners that observe it early) holds the same object.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import posixpath
from collections.abc import Callable
from collections.abc import Iterable
from typing import Any

from .bundles import BundleRedirector
from .config import LoaderConfig
from .engine import PythonScriptEngine
from .engine import ScriptEngine
from .errors import FetchError
from .errors import LoadFailure
from .errors import LocateError
from .errors import ResolutionError
from .fetchers import Fetcher
from .fetchers import FileFetcher
from .formats import FormatRegistry
from .hooks import STAGES
from .hooks import HookChain
from .mapper import IdentifierMapper
from .models import Instantiation
from .models import LoadRecord
from .models import Module
from .plugins import PluginResolver
from .predefined import PredefinedModules
from .versions import VersionResolver
from .versions import VersionTable

logger = logging.getLogger(__name__)

# Error kind raised when a stage fails with something that is not a LoadFailure
_STAGE_ERRORS: dict[str, type[LoadFailure]] = {
    "locate": LocateError,
    "fetch": FetchError,
    "translate": LoadFailure,
    "instantiate": LoadFailure,
}


class Loader:
    """Hook-pipeline module loader.

    Attributes:
        config: Validated loader configuration
        fetcher: Resource fetcher used by the base fetch stage
        engine: Script execution primitive used by the format descriptors
        global_scope: Global object shared by global-format scripts
        hooks: Stage name -> HookChain
        formats: Ordered format registry
        versions: Runtime version table
    """

    def __init__(
        self,
        config: LoaderConfig | None = None,
        fetcher: Fetcher | None = None,
        engine: ScriptEngine | None = None,
        global_scope: dict[str, Any] | None = None,
    ):
        self.config = config or LoaderConfig()
        self.fetcher = fetcher or FileFetcher()
        self.engine = engine or PythonScriptEngine()
        self.global_scope: dict[str, Any] = global_scope if global_scope is not None else {}

        self._modules: dict[str, Module] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        # in-flight module -> normalized dependencies it is waiting on
        self._edges: dict[str, set[str]] = {}

        self.hooks: dict[str, HookChain] = {
            "normalize": HookChain("normalize", self._normalize_base),
            "locate": HookChain("locate", self._locate_base),
            "fetch": HookChain("fetch", self._fetch_base),
            "translate": HookChain("translate", self._translate_base),
            "instantiate": HookChain("instantiate", self._instantiate_base),
        }

        self.formats = FormatRegistry.with_defaults(self, order=self.config.formats)
        self.versions = VersionTable(self.config.versions)
        self.defined = PredefinedModules()

        self.mapper = IdentifierMapper(self.config.map_table())
        self.version_resolver = VersionResolver(self.versions)
        self.plugins = PluginResolver(self)
        self.bundles = BundleRedirector(self, self.config.bundles)

        # Install order matters: the last installed handler runs first
        for extension in (self.mapper, self.version_resolver, self.plugins, self.bundles, self.defined):
            extension.install(self)

    def use(self, stage: str, handler: Callable, name: str | None = None) -> Callable[[], None]:
        """Register a stage handler.

        Args:
            stage: One of normalize, locate, fetch, translate, instantiate
            handler: Async callable taking (next_, *stage_args)
            name: Optional handler name for debugging

        Returns:
            Unregister function
        """
        if stage not in self.hooks:
            raise ValueError(f"Unknown stage '{stage}' (expected one of {', '.join(STAGES)})")
        return self.hooks[stage].use(handler, name=name)

    # Stage entry points

    async def normalize(self, name: str, parent_name: str | None = None, parent_address: str | None = None) -> str:
        try:
            return await self.hooks["normalize"](name, parent_name, parent_address)
        except LoadFailure as e:
            if e.name is None:
                e.name = name
            raise
        except Exception as e:
            raise ResolutionError(f"Cannot normalize '{name}' (parent: {parent_name}): {e}", name=name) from e

    async def locate(self, load: LoadRecord) -> str:
        return await self._run_stage("locate", load)

    async def fetch(self, load: LoadRecord) -> str:
        return await self._run_stage("fetch", load)

    async def translate(self, load: LoadRecord) -> str:
        return await self._run_stage("translate", load)

    async def instantiate(self, load: LoadRecord) -> Instantiation:
        return await self._run_stage("instantiate", load)

    async def _run_stage(self, stage: str, load: LoadRecord) -> Any:
        logger.debug(f"[loader:{stage}] {load.name}", extra=_log_context(stage, load.name, load.address))
        try:
            return await self.hooks[stage](load)
        except LoadFailure as e:
            if e.name is None:
                e.name = load.name
            if e.address is None:
                e.address = load.address
            raise
        except Exception as e:
            error_cls = _STAGE_ERRORS[stage]
            logger.debug(f"[loader:{stage}] {load.name} failed: {e}", extra=_log_context(stage, load.name, load.address))
            raise error_cls(
                f"{stage.capitalize()} failed for '{load.name}' ({load.address or 'no address'}): {e}",
                name=load.name,
                address=load.address,
            ) from e

    # Base stage implementations

    async def _normalize_base(
        self, name: str, parent_name: str | None = None, parent_address: str | None = None
    ) -> str:
        if not name:
            raise ResolutionError("Cannot normalize an empty module name", name=name)

        if not (name.startswith("./") or name.startswith("../") or name in (".", "..")):
            return name

        parent_dir = posixpath.dirname(parent_name) if parent_name else ""
        normalized = posixpath.normpath(posixpath.join(parent_dir, name))
        if normalized == ".." or normalized.startswith("../"):
            raise ResolutionError(f"'{name}' escapes above the root from parent '{parent_name}'", name=name)
        return normalized

    async def _locate_base(self, load: LoadRecord) -> str:
        address = self._apply_paths(load.name)
        extension = self.config.default_extension
        if extension and not address.endswith(extension):
            address += extension
        if self.config.base_url and "://" not in address and not address.startswith("/"):
            address = f"{self.config.base_url.rstrip('/')}/{address}"
        return address

    def _apply_paths(self, name: str) -> str:
        paths = self.config.paths
        if name in paths:
            return paths[name]

        best_prefix: str | None = None
        for pattern in paths:
            prefix, star, _suffix = pattern.partition("*")
            if not star or not name.startswith(prefix):
                continue
            if best_prefix is None or len(prefix) > len(best_prefix.partition("*")[0]):
                best_prefix = pattern

        if best_prefix is None:
            return name

        prefix = best_prefix.partition("*")[0]
        return paths[best_prefix].replace("*", name[len(prefix):])

    async def _fetch_base(self, load: LoadRecord) -> str:
        if not load.address:
            raise FetchError(f"No address to fetch for '{load.name}'", name=load.name)
        return await self.fetcher.fetch(load.address)

    async def _translate_base(self, load: LoadRecord) -> str:
        return load.source or ""

    async def _instantiate_base(self, load: LoadRecord) -> Instantiation:
        return self.formats.instantiate(load)

    # Module registry

    def get(self, name: str) -> Module | None:
        """Module record for a normalized name (possibly still executing)."""
        return self._modules.get(name)

    def has(self, name: str) -> bool:
        return name in self._modules

    def set(self, name: str, module: Any) -> Module:
        """Install a module record directly, bypassing the pipeline."""
        record = Module.from_value(module, name)
        if record.name is None:
            record.name = name
        self._modules[name] = record
        return record

    def delete(self, name: str) -> bool:
        if name in self._inflight:
            raise RuntimeError(f"Cannot delete '{name}' while it is loading")
        return self._modules.pop(name, None) is not None

    def get_module(self, name: str) -> Any:
        """Interop value of a loaded module (its default for wrapped values)."""
        module = self._modules.get(name)
        if module is None:
            return None
        return module.interop()

    def register(self, name: str, deps: Iterable[str], execute: Callable[..., Any]) -> None:
        """Predefine a module: fetch is skipped and `execute` supplies its bindings."""
        self.defined.register(name, deps, execute)

    # Loading

    async def load(self, name: str, parent_name: str | None = None, parent_address: str | None = None) -> Module:
        """Resolve, fetch and execute a module (once per session).

        Args:
            name: Requested module identifier
            parent_name: Normalized name of the requesting module
            parent_address: Address of the requesting module

        Returns:
            The module's Module record
        """
        normalized = await self.normalize(name, parent_name, parent_address)
        return await self.load_normalized(normalized)

    async def load_normalized(self, name: str) -> Module:
        return await self._load_dependency(name, requester=None)

    async def import_module(self, name: str, parent_name: str | None = None) -> Any:
        """Load a module and return its interop value."""
        module = await self.load(name, parent_name)
        return module.interop()

    def require(
        self,
        names: str | list[str] | tuple[str, ...],
        callback: Callable[..., Any] | None = None,
        errback: Callable[[BaseException], Any] | None = None,
        parent_name: str | None = None,
    ) -> Any:
        """AMD-style require.

        A string returns the already-loaded module's interop value. A list
        schedules loading of every name and calls `callback(*values)` or
        `errback(exc)`; the scheduled task is returned.
        """
        if isinstance(names, str):
            return self.get_module(names)

        if isinstance(names, (list, tuple)):

            async def _load_all():
                try:
                    values = await asyncio.gather(*(self.import_module(n, parent_name) for n in names))
                except LoadFailure as e:
                    if errback is None:
                        raise
                    errback(e)
                    return None
                if callback is not None:
                    return callback(*values)
                return values

            return asyncio.ensure_future(_load_all())

        raise TypeError(f"Invalid require argument: {names!r}")

    async def _load_dependency(self, name: str, requester: str | None) -> Module:
        task = self._inflight.get(name)
        if task is None:
            module = self._modules.get(name)
            if module is not None:
                return module
            return await asyncio.shield(self._start(name))

        if requester is not None and (requester == name or self._waits_on(name, requester)):
            # Cycle: hand back the partially populated record instead of waiting
            logger.debug(
                f"[loader:cycle] {requester} -> {name} (returning in-flight record)",
                extra=_log_context("load", requester, None),
            )
            return self._modules[name]

        return await asyncio.shield(task)

    def _start(self, name: str) -> asyncio.Task:
        placeholder = Module(name=name)
        self._modules[name] = placeholder
        task = asyncio.ensure_future(self._run_load(name, placeholder))
        task.add_done_callback(_retrieve_exception)
        self._inflight[name] = task
        return task

    async def _run_load(self, name: str, placeholder: Module) -> Module:
        try:
            await self._resolve(name, placeholder)
        except BaseException:
            if self._modules.get(name) is placeholder:
                del self._modules[name]
            raise
        finally:
            self._inflight.pop(name, None)
            self._edges.pop(name, None)
        return placeholder

    async def _resolve(self, name: str, placeholder: Module) -> None:
        logger.debug(f"[loader:load] {name}", extra=_log_context("load", name, None))
        load = LoadRecord(name=name)
        load.address = await self.locate(load)
        load.source = await self.fetch(load)
        load.source = await self.translate(load)
        instantiation = await self.instantiate(load)

        dep_names = list(
            await asyncio.gather(*(self.normalize(dep, name, load.address) for dep in instantiation.deps))
        )
        self._edges[name] = set(dep_names)
        dep_modules = await asyncio.gather(*(self._load_dependency(dep, requester=name) for dep in dep_names))

        try:
            result = instantiation.execute(*dep_modules)
            if inspect.isawaitable(result):
                result = await result
        except LoadFailure as e:
            if e.name is None:
                e.name = name
            raise
        except Exception as e:
            logger.warning(f"[loader:execute] {name} raised {e!r}", extra=_log_context("execute", name, load.address))
            raise LoadFailure(f"Error executing '{name}' ({load.address}): {e}", name=name, address=load.address) from e

        placeholder.fill(Module.from_value(result, name))
        logger.debug(f"[loader:loaded] {name} ({len(dep_names)} deps)", extra=_log_context("execute", name, load.address))

    def _waits_on(self, start: str, target: str) -> bool:
        """True if in-flight `start` transitively waits on `target`."""
        seen: set[str] = set()
        stack = [start]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            for dep in self._edges.get(current, ()):
                if dep == target:
                    return True
                if dep in self._inflight:
                    stack.append(dep)
        return False

    def __repr__(self) -> str:
        return f"Loader({len(self._modules)} modules, formats={self.formats.order})"


def _log_context(stage: str, name: str | None, address: str | None) -> dict[str, Any]:
    return {"stage": stage, "load_name": name, "address": address}


def _retrieve_exception(task: asyncio.Task) -> None:
    # Abandoned loads must not report "exception was never retrieved"
    if not task.cancelled():
        task.exception()
