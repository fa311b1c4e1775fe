"""Builders turning host results into metadata records.

Builders share the signature ``(spec, descriptions, result, capabilities)``
so that user-supplied replacements can be configured on the reporter. They are
pure functions of their inputs.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from screenshot_reporter.models.capabilities import Capabilities
from screenshot_reporter.models.metadata import BrowserInfo, MetadataRecord
from screenshot_reporter.models.result import (
    LegacySpec,
    LegacySpecResult,
    SpecResult,
    Suite,
    Trace,
)

PASSED_MESSAGE = "Passed"
FAILED_MESSAGE = "Failed"
PENDING_MESSAGE = "Pending"
NO_TRACE_MESSAGE = "No Stack trace information"


def gather_descriptions(suite: Suite | None, descriptions: Sequence[str]) -> list[str]:
    """Prepend suite descriptions, walking parent links to the outermost suite."""
    chain = list(descriptions)
    while suite is not None:
        chain.insert(0, suite.description)
        suite = suite.parent_suite
    return chain


def default_metadata_builder(
    spec: LegacySpec | None,
    descriptions: Sequence[str],
    result: LegacySpecResult,
    capabilities: Capabilities,
) -> MetadataRecord:
    """Build metadata from a legacy result.

    On failure the first failing item supplies message and trace, on success
    the first item does.
    """
    passed = result.passed()
    message: str | None = None
    trace: str | None = None

    if result.items:
        if passed:
            item = result.items[0]
            message = item.message or PASSED_MESSAGE
            trace = _legacy_stack(item.trace)
        elif failed := [item for item in result.items if not item.passed]:
            message = failed[0].message or FAILED_MESSAGE
            trace = _legacy_stack(failed[0].trace)

    return MetadataRecord(
        description=" ".join(descriptions),
        passed=passed,
        pending=result.skipped,
        os=capabilities.platform,
        session_id=capabilities.session_id,
        browser=_browser_info(capabilities),
        message=message,
        trace=trace,
    )


def jasmine2_metadata_builder(
    spec: Any,
    descriptions: Sequence[str],
    result: SpecResult,
    capabilities: Capabilities,
) -> MetadataRecord:
    """Build metadata from a current-shape result."""
    trace: str | None = None

    if result.status == "passed":
        first = result.passed_expectations[0] if result.passed_expectations else None
        message = (first.message if first else None) or PASSED_MESSAGE
        trace = first.stack if first else None
    elif result.skipped:
        message = result.pending_reason or PENDING_MESSAGE
    else:
        first = result.failed_expectations[0] if result.failed_expectations else None
        message = (first.message if first else None) or FAILED_MESSAGE
        trace = (first.stack if first else None) or NO_TRACE_MESSAGE

    return MetadataRecord(
        description=" ".join(descriptions),
        passed=result.status == "passed",
        pending=result.skipped,
        os=capabilities.platform,
        session_id=capabilities.session_id,
        browser=_browser_info(capabilities),
        message=message,
        trace=trace,
    )


def coerce_record(value: MetadataRecord | Mapping[str, Any]) -> MetadataRecord:
    """Accept either a record or a plain mapping from a user-supplied builder."""
    if isinstance(value, MetadataRecord):
        return value
    return MetadataRecord.model_validate(value)


def _browser_info(capabilities: Capabilities) -> BrowserInfo:
    return BrowserInfo(
        name=capabilities.browser_name,
        version=capabilities.browser_version,
    )


def _legacy_stack(trace: Trace | None) -> str:
    if trace is None or not trace.stack:
        return NO_TRACE_MESSAGE
    return trace.stack
