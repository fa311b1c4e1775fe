"""Abstract base class for test-execution hosts driving the reporter."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from screenshot_reporter.models.capabilities import Capabilities

log = logging.getLogger(__name__)

AfterSpecHook: TypeAlias = Callable[[], Awaitable[None]]


@dataclass(frozen=True, kw_only=True)
class BrowserHost(ABC):
    """Abstract base for the browser automation host.

    The host owns the browser session. The reporter asks it for capabilities,
    screenshots and browser logs, and registers hooks that the host runs after
    each spec body, before reporting the spec as done.
    """

    _after_spec_hooks: list[AfterSpecHook] = field(
        default_factory=list, init=False, repr=False
    )

    @abstractmethod
    async def get_capabilities(self) -> Capabilities:
        """Return the capabilities of the current browser session."""

    @abstractmethod
    async def take_screenshot(self) -> bytes:
        """Capture the current browser state as PNG bytes."""

    @abstractmethod
    async def get_browser_logs(self) -> Sequence[Any]:
        """Return the browser console log entries gathered so far."""

    def add_after_spec_hook(self, hook: AfterSpecHook) -> None:
        """Register a hook to run once after the current spec body."""
        self._after_spec_hooks.append(hook)

    async def run_after_spec_hooks(self) -> None:
        """Run and clear all registered after-spec hooks.

        A failing hook is logged and does not prevent the others from running.
        """
        hooks = list(self._after_spec_hooks)
        self._after_spec_hooks.clear()

        for hook in hooks:
            try:
                await hook()
            except Exception as e:
                log.warning("After-spec hook failed: %s", e, exc_info=e)
