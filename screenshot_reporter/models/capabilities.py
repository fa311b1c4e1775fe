"""Browser capabilities supplied by the test-execution host."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

PLATFORM_KEY = "platform"
SESSION_ID_KEY = "webdriver.remote.sessionid"
BROWSER_NAME_KEY = "browserName"
BROWSER_VERSION_KEY = "version"


@dataclass(frozen=True)
class Capabilities(Mapping[str, Any]):
    """Read-only bag describing the browser and node that ran a spec.

    Lookups of the well-known keys never fail: an absent key reads as None.
    W3C names (``platformName``, ``browserVersion``) are used as fallbacks.
    """

    values: Mapping[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def platform(self) -> str | None:
        return self.get(PLATFORM_KEY, self.get("platformName"))

    @property
    def session_id(self) -> str | None:
        return self.get(SESSION_ID_KEY)

    @property
    def browser_name(self) -> str | None:
        return self.get(BROWSER_NAME_KEY)

    @property
    def browser_version(self) -> str | None:
        return self.get(BROWSER_VERSION_KEY, self.get("browserVersion"))
