"""Models for spec results reported by the test-execution host.

Two result shapes exist: the legacy single-callback shape, where a spec links
to its parent suite and exposes result items, and the current multi-callback
shape, where the status is stored directly alongside expectation lists.
"""

from collections.abc import Sequence
from typing import Annotated, Any, Literal, TypeAlias

from pydantic import Field

from screenshot_reporter.models.base import Model

SpecStatus: TypeAlias = Literal["passed", "failed", "pending", "disabled"]

SKIPPED_STATUSES: frozenset[str] = frozenset({"pending", "disabled"})


class Expectation(Model):
    """A single expectation evaluated while running a spec."""

    message: str | None = None
    stack: str | None = None
    passed: bool = False


class SpecResult(Model):
    """Result of a spec in the current multi-callback reporter shape."""

    kind: Literal["current"] = "current"
    id: str = Field(..., description="Host-assigned spec identifier")
    description: str = Field(..., description="Spec name without suite names")
    full_name: str = ""
    status: SpecStatus = "passed"
    passed_expectations: Sequence[Expectation] = Field(default_factory=list)
    failed_expectations: Sequence[Expectation] = Field(default_factory=list)
    pending_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.status in SKIPPED_STATUSES


class SuiteResult(Model):
    """Suite information passed to ``suite_started``."""

    id: str = ""
    description: str
    full_name: str = ""


class Trace(Model):
    """Stack trace attached to a legacy result item."""

    stack: str | None = None


class ResultItem(Model):
    """Single expectation result in the legacy shape."""

    passed: bool
    message: str | None = None
    trace: Trace | None = None


class LegacySpecResult(Model):
    """Results of a spec in the legacy single-callback shape."""

    kind: Literal["legacy"] = "legacy"
    items: Sequence[ResultItem] = Field(default_factory=list)
    skipped: bool = False
    browser_logs: Sequence[Any] | None = None

    def passed(self) -> bool:
        """Return True when every result item passed."""
        return all(item.passed for item in self.items)


class Suite(Model):
    """A suite node linked to its enclosing suite."""

    description: str
    parent_suite: "Suite | None" = None


class LegacySpec(Model):
    """A spec as handed to the legacy ``report_spec_results`` callback."""

    description: str
    suite: Suite | None = None
    results: LegacySpecResult = Field(default_factory=LegacySpecResult)


TestOutcome: TypeAlias = Annotated[SpecResult | LegacySpecResult, Field(discriminator="kind")]
