"""Stage middleware chains.

Each pipeline stage (normalize, locate, fetch, translate, instantiate) owns a
HookChain: a base implementation plus an ordered list of handlers. Handlers
receive the next implementation as their first argument and decide whether to
call onward, so the chain behaves like middleware:

    async def handler(next_, load):
        if short_circuit(load):
            return ...
        result = await next_(load)
        return post_process(result)

The most recently registered handler runs first. The chain is composed once
into a single callable and recomposed only when a handler is added or removed.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

STAGES = ("normalize", "locate", "fetch", "translate", "instantiate")

StageCallable = Callable[..., Awaitable[Any]]


@dataclass
class StageHandler:
    """Registered stage handler."""

    handler: Callable[..., Awaitable[Any]]
    name: str


class HookChain:
    """Ordered middleware chain for one pipeline stage."""

    def __init__(self, stage: str, base: StageCallable):
        """Initialize chain with the stage's base implementation.

        Args:
            stage: Stage name (for logging)
            base: Innermost implementation, called when every handler delegates
        """
        self.stage = stage
        self._base = base
        self._handlers: list[StageHandler] = []
        self._composed: StageCallable | None = None

    def use(self, handler: Callable[..., Awaitable[Any]], name: str | None = None) -> Callable[[], None]:
        """Register a handler that wraps everything registered before it.

        Args:
            handler: Async callable taking (next_, *stage_args)
            name: Optional handler name for debugging

        Returns:
            Unregister function
        """
        stage_handler = StageHandler(handler=handler, name=name or getattr(handler, "__qualname__", repr(handler)))
        self._handlers.append(stage_handler)
        self._composed = None

        logger.debug(f"Registered '{stage_handler.name}' on stage '{self.stage}'")

        def unregister():
            """Remove this handler from the chain."""
            if stage_handler in self._handlers:
                self._handlers.remove(stage_handler)
                self._composed = None
                logger.debug(f"Unregistered '{stage_handler.name}' from stage '{self.stage}'")

        return unregister

    def compose(self) -> StageCallable:
        """Fold the handlers around the base, first registered innermost."""
        call = self._base
        for stage_handler in self._handlers:
            call = functools.partial(stage_handler.handler, call)
        self._composed = call
        return call

    def handler_names(self) -> list[str]:
        """Handler names in execution order (outermost first)."""
        return [h.name for h in reversed(self._handlers)]

    async def __call__(self, *args: Any) -> Any:
        call = self._composed or self.compose()
        return await call(*args)

    def __repr__(self) -> str:
        return f"HookChain({self.stage}, handlers={self.handler_names()})"
