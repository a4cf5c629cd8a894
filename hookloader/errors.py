"""Load failure types.

Every failure raised by the pipeline derives from LoadFailure and carries the
name of the module being resolved (and its address when one is known), so the
host can report which edge of the dependency graph broke.
"""

from __future__ import annotations


class LoadFailure(Exception):
    """Base class for all module loading failures."""

    def __init__(self, message: str, name: str | None = None, address: str | None = None):
        super().__init__(message)
        self.name = name
        self.address = address


class ResolutionError(LoadFailure):
    """Normalize could not produce a canonical name."""


class LocateError(LoadFailure):
    """No fetchable address could be computed for a name."""


class FetchError(LoadFailure):
    """The resource at an address is unavailable."""


class FormatError(LoadFailure):
    """No format descriptor matched the source and no hint was given."""


class DefinitionConflictError(LoadFailure):
    """An anonymous definition was registered more than once for one load."""


class PluginError(LoadFailure):
    """A plugin hook rejected or raised."""

    def __init__(
        self,
        message: str,
        name: str | None = None,
        address: str | None = None,
        plugin: str | None = None,
    ):
        super().__init__(message, name=name, address=address)
        self.plugin = plugin
