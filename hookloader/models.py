"""Loader data models.

Defines the records threaded through the pipeline:
- LoadRecord: scratch state for one module's pass through the stages
- Instantiation: dependency list plus deferred execute closure
- Module: the resolved namespace of a module (one per name per session)
- Exports / ModuleObject: the `exports` and `module` bindings handed to
  CommonJS and AMD sources
"""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterator
from dataclasses import dataclass
from dataclasses import field
from typing import Any

ES_MODULE_MARKER = "__esModule"


@dataclass
class LoadRecord:
    """Mutable state for one module's pipeline pass.

    Attributes:
        name: Normalized module name
        address: Resource address produced by locate
        source: Source text produced by fetch/translate
        metadata: Open bag of facts derived between stages (format, deps,
            plugin, bundle flag, ...)
    """

    name: str
    address: str | None = None
    source: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Instantiation:
    """Result of instantiate: raw dependency names and the deferred execute.

    `execute` is called with the resolved dependency Modules positionally, in
    the same order as `deps`.
    """

    deps: list[str]
    execute: Callable[..., Any]


class Module:
    """Resolved module namespace.

    Bindings are reachable as attributes and items. A module whose raw value
    was not an ES-style namespace is wrapped with `use_default` set and the
    value stored under the `default` binding.
    """

    __slots__ = ("name", "_bindings", "use_default", "es_module", "executed")

    def __init__(
        self,
        bindings: dict[str, Any] | None = None,
        name: str | None = None,
        use_default: bool = False,
        es_module: bool = False,
    ):
        self.name = name
        self._bindings: dict[str, Any] = dict(bindings or {})
        self.use_default = use_default
        self.es_module = es_module
        self.executed = bindings is not None

    @classmethod
    def from_value(cls, value: Any, name: str | None = None) -> Module:
        """Normalize a raw execution result into a Module."""
        if isinstance(value, Module):
            return value
        if _has_es_marker(value):
            bindings = dict(value) if isinstance(value, dict) else dict(vars(value))
            bindings.pop(ES_MODULE_MARKER, None)
            return cls(bindings, name=name, es_module=True)
        return cls({"default": value}, name=name, use_default=True)

    @property
    def default(self) -> Any:
        return self._bindings.get("default")

    def interop(self) -> Any:
        """Value handed to dependents that expect a plain value."""
        if self.use_default:
            return self.default
        return self

    def fill(self, other: Module) -> None:
        """Take over the bindings of `other`, keeping this record's identity."""
        if other is self:
            self.executed = True
            return
        self._bindings.clear()
        self._bindings.update(other._bindings)
        self.use_default = other.use_default
        self.es_module = other.es_module
        self.executed = True

    def bindings(self) -> dict[str, Any]:
        return dict(self._bindings)

    def get(self, key: str, default: Any = None) -> Any:
        return self._bindings.get(key, default)

    def keys(self):
        return self._bindings.keys()

    def items(self):
        return self._bindings.items()

    def __getattr__(self, key: str) -> Any:
        if key.startswith("_"):
            raise AttributeError(key)
        try:
            return self._bindings[key]
        except KeyError:
            raise AttributeError(f"Module '{self.name}' has no binding '{key}'") from None

    def __getitem__(self, key: str) -> Any:
        return self._bindings[key]

    def __contains__(self, key: object) -> bool:
        return key in self._bindings

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        return f"Module({self.name!r}, bindings={sorted(self._bindings)})"


class Exports(dict):
    """`exports` object with attribute-style assignment."""

    def __getattr__(self, key: str) -> Any:
        try:
            return self[key]
        except KeyError:
            raise AttributeError(key) from None

    def __setattr__(self, key: str, value: Any) -> None:
        self[key] = value

    def __delattr__(self, key: str) -> None:
        try:
            del self[key]
        except KeyError:
            raise AttributeError(key) from None


@dataclass
class ModuleObject:
    """`module` binding for CommonJS and AMD sources."""

    id: str
    uri: str | None = None
    exports: Any = field(default_factory=Exports)

    def config(self) -> dict[str, Any]:
        return {}


def _has_es_marker(value: Any) -> bool:
    if isinstance(value, dict):
        return bool(value.get(ES_MODULE_MARKER))
    return bool(getattr(value, ES_MODULE_MARKER, False))
