"""Plugin support for `argument!plugin` names.

The plugin name is loaded as a module itself; its exported value (the
`default` binding when present) may provide `locate`, `fetch`, `translate`
hooks for the resources it handles. Hooks are called as `hook(load, loader)`
and may be sync or async. A bare trailing `!` uses the argument's extension
as the plugin name (`styles/site.css!` -> plugin `css`). An argument without
an extension uses its final path segment (`a/b!` -> plugin `b`), not the
whole argument, so a directory prefix never becomes part of a plugin name.

Legacy plugins are plain callables invoked as
`plugin(argument, address, fetch_url, resolve, reject)` and deliver the
resource source through `resolve`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import posixpath
from collections.abc import Callable
from typing import TYPE_CHECKING
from typing import Any

from .errors import LoadFailure
from .errors import PluginError
from .models import LoadRecord
from .models import Module

if TYPE_CHECKING:
    from .loader import Loader

logger = logging.getLogger(__name__)

PLUGIN_HOOKS = ("locate", "fetch", "translate")


def split_plugin(name: str) -> tuple[str, str] | None:
    """Split `argument!plugin` into (argument, plugin).

    Returns None when the name has no plugin suffix.
    """
    index = name.rfind("!")
    if index == -1:
        return None
    argument = name[:index]
    plugin = name[index + 1 :] or _extension(argument)
    return argument, plugin


def _extension(argument: str) -> str:
    # "a/b.txt" -> "txt"; without an extension the final segment stands in: "a/b" -> "b"
    segment = posixpath.basename(argument)
    return segment.rpartition(".")[2]


def _get_hook(plugin: Any, hook: str) -> Callable[..., Any] | None:
    if isinstance(plugin, (Module, dict)):
        value = plugin.get(hook)
    else:
        value = getattr(plugin, hook, None)
    return value if callable(value) else None


def _is_legacy(plugin: Any) -> bool:
    if isinstance(plugin, (Module, dict)) or not callable(plugin):
        return False
    return not any(_get_hook(plugin, hook) for hook in PLUGIN_HOOKS)


class PluginResolver:
    """Normalize/locate/fetch/translate handlers for plugin resources."""

    def __init__(self, loader: Loader):
        self._loader = loader

    def install(self, loader: Loader) -> None:
        loader.use("normalize", self.normalize, name="plugins")
        loader.use("locate", self.locate, name="plugins")
        loader.use("fetch", self.fetch, name="plugins")
        loader.use("translate", self.translate, name="plugins")

    async def normalize(self, next_, name: str, parent_name: str | None = None, parent_address: str | None = None):
        # A plugin parent normalizes against its argument only
        if parent_name and "!" in parent_name:
            parent_name = parent_name[: parent_name.index("!")]

        parts = split_plugin(name)
        if parts is None:
            return await next_(name, parent_name, parent_address)

        argument, plugin = parts
        plugin_name = await self._loader.normalize(plugin, parent_name, parent_address)
        argument_name = await self._loader.normalize(argument, parent_name, parent_address)
        return f"{argument_name}!{plugin_name}"

    async def locate(self, next_, load: LoadRecord) -> str:
        parts = split_plugin(load.name)
        if parts is None:
            return await next_(load)

        argument, plugin_name = parts
        try:
            plugin_module = await self._loader.load_normalized(plugin_name)
        except LoadFailure as e:
            raise PluginError(
                f"Failed to load plugin '{plugin_name}' for '{load.name}': {e}",
                name=load.name,
                plugin=plugin_name,
            ) from e

        plugin = plugin_module.default if plugin_module.default is not None else plugin_module
        load.metadata["plugin"] = plugin
        load.metadata["plugin_name"] = plugin_name
        load.metadata["plugin_argument"] = argument
        logger.debug(f"[plugins:locate] {argument} via {plugin_name}")

        hook = _get_hook(plugin, "locate")
        if hook is not None:
            return await self._call_hook(plugin_name, "locate", hook, load)

        # Standard locate for the argument, without the default extension
        address = await next_(LoadRecord(name=argument, metadata=load.metadata))
        extension = self._loader.config.default_extension
        if extension and address.endswith(extension) and not argument.endswith(extension):
            address = address[: -len(extension)]
        return address

    async def fetch(self, next_, load: LoadRecord) -> str:
        plugin = load.metadata.get("plugin")
        if plugin is None:
            return await next_(load)

        if _is_legacy(plugin):
            return await self._legacy_fetch(next_, load, plugin)

        hook = _get_hook(plugin, "fetch")
        if hook is not None:
            return await self._call_hook(load.metadata["plugin_name"], "fetch", hook, load)
        return await next_(load)

    async def translate(self, next_, load: LoadRecord) -> str:
        plugin = load.metadata.get("plugin")
        hook = _get_hook(plugin, "translate") if plugin is not None else None
        if hook is not None:
            return await self._call_hook(load.metadata["plugin_name"], "translate", hook, load)
        return await next_(load)

    async def _call_hook(self, plugin_name: str, hook_name: str, hook: Callable[..., Any], load: LoadRecord) -> Any:
        try:
            result = hook(load, self._loader)
            if inspect.isawaitable(result):
                result = await result
        except LoadFailure:
            raise
        except Exception as e:
            raise PluginError(
                f"Plugin '{plugin_name}' {hook_name} failed for '{load.name}': {e}",
                name=load.name,
                address=load.address,
                plugin=plugin_name,
            ) from e
        return result

    async def _legacy_fetch(self, next_, load: LoadRecord, plugin: Callable[..., Any]) -> str:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        plugin_name = load.metadata.get("plugin_name")

        def resolve(source: str) -> None:
            if not future.done():
                future.set_result(source)

        def reject(reason: Any) -> None:
            if future.done():
                return
            error = PluginError(
                f"Plugin '{plugin_name}' rejected '{load.name}': {reason}",
                name=load.name,
                address=load.address,
                plugin=plugin_name,
            )
            if isinstance(reason, BaseException):
                error.__cause__ = reason
            future.set_exception(error)

        def fetch_url(url: str, callback: Callable[[str], Any], errback: Callable[[BaseException], Any]) -> asyncio.Task:
            async def _fetch():
                try:
                    source = await next_(LoadRecord(name=load.name, address=url))
                except LoadFailure as e:
                    errback(e)
                    return
                callback(source)

            return asyncio.ensure_future(_fetch())

        try:
            plugin(load.metadata.get("plugin_argument"), load.address, fetch_url, resolve, reject)
        except Exception as e:
            reject(e)

        return await future
