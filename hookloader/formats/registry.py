"""Ordered registry of format descriptors and the format-aware instantiate."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import FormatError
from ..models import Instantiation
from ..models import LoadRecord
from ..models import Module
from .base import FormatDescriptor
from .base import dedupe
from .base import format_hint

if TYPE_CHECKING:
    from ..loader import Loader

logger = logging.getLogger(__name__)


class FormatRegistry:
    """Format descriptors keyed by id, plus the detection order."""

    def __init__(self, shim: dict | None = None):
        self._descriptors: dict[str, FormatDescriptor] = {}
        self._order: list[str] = []
        self._shim = shim if shim is not None else {}

    @classmethod
    def with_defaults(cls, loader: Loader, order: list[str] | None = None) -> FormatRegistry:
        """Registry holding the built-in formats (global last, it always matches)."""
        from .alias import EsAliasFormat
        from .amd import AmdFormat
        from .cjs import CommonJSFormat
        from .global_script import GlobalFormat

        registry = cls(shim=loader.config.shim)
        for descriptor in (
            EsAliasFormat(),
            AmdFormat(loader),
            CommonJSFormat(loader),
            GlobalFormat(loader),
        ):
            registry.register(descriptor)
        if order is not None:
            registry.set_order(order)
        return registry

    @property
    def order(self) -> list[str]:
        return list(self._order)

    def register(self, descriptor: FormatDescriptor, position: int | None = None) -> None:
        """Add a descriptor to the registry and the detection order.

        Args:
            descriptor: Format descriptor with a unique `id`
            position: Index in the detection order (default: append)
        """
        if descriptor.id in self._order:
            self._order.remove(descriptor.id)
        self._descriptors[descriptor.id] = descriptor
        if position is None:
            self._order.append(descriptor.id)
        else:
            self._order.insert(position, descriptor.id)
        logger.debug(f"Registered format '{descriptor.id}' (order: {self._order})")

    def set_order(self, order: list[str]) -> None:
        unknown = [format_id for format_id in order if format_id not in self._descriptors]
        if unknown:
            raise ValueError(f"Unknown formats in order: {', '.join(unknown)}")
        self._order = list(order)

    def get(self, format_id: str) -> FormatDescriptor | None:
        return self._descriptors.get(format_id)

    def resolve_format(self, load: LoadRecord) -> FormatDescriptor:
        """Pick the descriptor for a load and record its id on the metadata.

        Resolution order: explicit metadata format, inline hint, shim entry,
        then detection in registry order.

        Raises:
            FormatError: Nothing matched
        """
        source = load.source or ""
        format_id = load.metadata.get("format")
        if not format_id:
            format_id = format_hint(source)

        if load.name in self._shim:
            format_id = "global"

        descriptor = self._descriptors.get(format_id) if format_id else None
        if descriptor is None:
            for candidate_id in self._order:
                candidate = self._descriptors[candidate_id]
                if candidate.detect(load):
                    descriptor = candidate
                    break

        if descriptor is None:
            raise FormatError(
                f"No format found for {format_id or load.address}",
                name=load.name,
                address=load.address,
            )

        load.metadata["format"] = descriptor.id
        return descriptor

    def instantiate(self, load: LoadRecord) -> Instantiation:
        descriptor = self.resolve_format(load)
        deps = dedupe(descriptor.extract_deps(load))
        load.metadata["deps"] = deps
        logger.debug(f"[loader:instantiate] {load.name} as {descriptor.id} with deps {deps}")

        def execute(*dep_modules: Module) -> Module:
            output = descriptor.execute(list(dep_modules), load)
            return Module.from_value(output, load.name)

        return Instantiation(deps=deps, execute=execute)
