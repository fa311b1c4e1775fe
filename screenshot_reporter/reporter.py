"""Reporter wiring host lifecycle callbacks to path, metadata and store logic."""

import asyncio
import functools
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from screenshot_reporter.errors import (
    ArtifactWriteError,
    CapabilityRetrievalError,
    UnsafePathError,
)
from screenshot_reporter.hosts.base import BrowserHost
from screenshot_reporter.metadata import coerce_record, gather_descriptions
from screenshot_reporter.models.capabilities import Capabilities
from screenshot_reporter.models.config import ReporterConfig, load_config
from screenshot_reporter.models.metadata import MetadataRecord
from screenshot_reporter.models.result import (
    LegacySpec,
    LegacySpecResult,
    SpecResult,
    SuiteResult,
    TestOutcome,
)
from screenshot_reporter.paths import ArtifactPaths, PathResolver
from screenshot_reporter.store import ArtifactStore, remove_directory

log = logging.getLogger(__name__)

LOG_CAPABLE_BROWSERS = ("chrome",)


@dataclass(frozen=True, kw_only=True)
class SpecReport:
    """Snapshot of a completed spec, taken when the host reports it done."""

    spec: LegacySpec | None
    descriptions: Sequence[str]
    result: TestOutcome
    stopped: datetime
    started: datetime | None = None
    browser_logs: Sequence[Any] | None = None

    @property
    def passed(self) -> bool:
        if isinstance(self.result, LegacySpecResult):
            return self.result.passed()
        return self.result.status == "passed"

    @property
    def skipped(self) -> bool:
        return self.result.skipped

    @property
    def duration_ms(self) -> float | None:
        if self.started is None:
            return None
        return (self.stopped - self.started).total_seconds() * 1000


class ScreenshotReporter:
    """Captures a screenshot and metadata for every completed spec.

    Example:
        reporter = ScreenshotReporter(host, {"baseDirectory": "reports/e2e"})

        # Legacy hosts call the single callback
        await reporter.report_spec_results(spec)

        # Current hosts use the multi-callback reporter
        jasmine2 = reporter.get_jasmine2_reporter()
        jasmine2.suite_started(suite)
        jasmine2.spec_started(result)
        await jasmine2.spec_done(result)
        jasmine2.suite_done()

    """

    def __init__(
        self,
        host: BrowserHost,
        config: ReporterConfig | Mapping[str, Any] | None = None,
        *,
        store: ArtifactStore | None = None,
    ) -> None:
        """Validate options and prepare the base directory.

        Raises:
            ConfigurationError: If no usable base directory is configured

        """
        self.config = load_config(config)
        self.host = host
        self.resolver = PathResolver(
            base_directory=self.config.base_path,
            screenshots_subfolder=self.config.screenshots_subfolder,
            jsons_subfolder=self.config.jsons_subfolder,
        )
        self.store = store or ArtifactStore.from_config(self.config)
        self._tasks: set[asyncio.Task[None]] = set()

        if not self.config.preserve_directory:
            remove_directory(self.config.base_path)

    def get_jasmine2_reporter(self) -> "Jasmine2Reporter":
        """Return a reporter implementing the multi-callback lifecycle."""
        return Jasmine2Reporter(reporter=self)

    def report_spec_results(self, spec: LegacySpec) -> asyncio.Task[None]:
        """Report a spec handed over by the legacy single callback."""
        report = SpecReport(
            spec=spec,
            descriptions=gather_descriptions(spec.suite, [spec.description]),
            result=spec.results,
            stopped=_now(),
            browser_logs=spec.results.browser_logs,
        )
        return self.schedule(report)

    def schedule(self, report: SpecReport) -> asyncio.Task[None]:
        """Start reporting a spec in the background and track the task."""
        task = asyncio.get_running_loop().create_task(self.report_spec(report))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def flush(self) -> None:
        """Wait until every scheduled spec has been written."""
        while self._tasks:
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    log.error("Spec reporting failed: %s", result, exc_info=result)

    async def fetch_capabilities(self) -> Capabilities:
        """Ask the host for the current capabilities.

        Raises:
            CapabilityRetrievalError: If the host fails to supply them

        """
        try:
            capabilities = await self.host.get_capabilities()
        except Exception as e:
            raise CapabilityRetrievalError(
                f"Host failed to supply capabilities: {e}"
            ) from e

        if isinstance(capabilities, Capabilities):
            return capabilities
        return Capabilities(capabilities)

    def should_take_screenshot(self, report: SpecReport) -> bool:
        """Decide whether a screenshot is wanted for a spec."""
        if report.skipped and not self.config.take_screenshots_for_skipped_specs:
            return False
        return not (report.passed and self.config.take_screenshots_only_for_failed_specs)

    async def report_spec(self, report: SpecReport) -> None:
        """Write screenshot, fragment and aggregate entry for one spec.

        Failures are logged and confined to this spec. Metadata is written
        even when the screenshot could not be captured.
        """
        description = " ".join(report.descriptions)

        try:
            capabilities = await self.fetch_capabilities()
        except CapabilityRetrievalError as e:
            log.warning(
                "%s, reporting %s without capabilities", e, description, exc_info=e
            )
            capabilities = Capabilities()

        try:
            paths, record = self._prepare(report, capabilities)
        except UnsafePathError as e:
            log.warning("Skipping artifacts for %s: %s", description, e)
            return
        except Exception as e:
            log.error("Could not build metadata for %s: %s", description, e, exc_info=e)
            return

        if self.should_take_screenshot(report):
            record = await self._capture_screenshot(record, paths)

        try:
            await self.store.store_metadata_fragment(
                record, paths.metadata_fragment_path, report.descriptions
            )
        except ArtifactWriteError as e:
            log.warning("Could not store metadata for %s: %s", description, e, exc_info=e)

        try:
            await self.store.merge_into_aggregate(
                record, paths.aggregate_metadata_path, report.descriptions
            )
        except ArtifactWriteError as e:
            log.warning(
                "Could not add metadata for %s to the combined report: %s",
                description,
                e,
                exc_info=e,
            )

    def _prepare(
        self, report: SpecReport, capabilities: Capabilities
    ) -> tuple[ArtifactPaths, MetadataRecord]:
        base_name = self.config.path_builder(
            report.spec, report.descriptions, report.result, capabilities
        )
        paths = self.resolver.resolve(base_name)

        if isinstance(report.result, LegacySpecResult):
            builder = self.config.metadata_builder
        else:
            builder = self.config.jasmine2_metadata_builder

        record = coerce_record(
            builder(report.spec, report.descriptions, report.result, capabilities)
        )
        record = record.model_copy(
            update={
                "browser_logs": list(report.browser_logs or []),
                "duration": report.duration_ms,
                "screen_shot_file": None,
            }
        )
        return paths, record

    async def _capture_screenshot(
        self, record: MetadataRecord, paths: ArtifactPaths
    ) -> MetadataRecord:
        try:
            png = await self.host.take_screenshot()
            await self.store.store_screenshot(png, paths.screenshot_path)
        except Exception as e:
            log.warning(
                "Could not capture screenshot for %s: %s",
                record.description,
                e,
                exc_info=e,
            )
            return record

        return record.model_copy(update={"screen_shot_file": paths.screenshot_reference})


@dataclass(kw_only=True)
class Jasmine2Reporter:
    """Multi-callback reporter tracking the active suite names.

    ``suite_names`` is pushed and popped synchronously from the lifecycle
    callbacks. ``spec_done`` snapshots it before any await, so suites that
    finish while a spec is still being written do not affect that spec.
    """

    reporter: ScreenshotReporter
    suite_names: list[str] = field(default_factory=list)
    _started: dict[str, datetime] = field(default_factory=dict, repr=False)
    _browser_logs: dict[str, Sequence[Any]] = field(default_factory=dict, repr=False)

    def suite_started(self, result: SuiteResult) -> None:
        self.suite_names.append(result.description)

    def spec_started(self, result: SpecResult) -> None:
        """Record the start time and arrange for browser logs to be gathered."""
        self._started[result.id] = _now()

        if self.reporter.config.gather_browser_logs:
            self.reporter.host.add_after_spec_hook(
                functools.partial(self._gather_browser_logs, result.id)
            )

    def spec_done(self, result: SpecResult) -> asyncio.Task[None]:
        """Report a finished spec; the returned task completes once written."""
        report = SpecReport(
            spec=None,
            descriptions=[*self.suite_names, result.description],
            result=result,
            started=self._started.pop(result.id, None),
            stopped=_now(),
            browser_logs=self._browser_logs.pop(result.id, None),
        )
        return self.reporter.schedule(report)

    def suite_done(self, result: SuiteResult | None = None) -> None:
        if not self.suite_names:
            log.warning("suite_done called without a matching suite_started")
            return
        self.suite_names.pop()

    async def jasmine_done(self) -> None:
        """Wait for all outstanding spec writes at the end of the run."""
        await self.reporter.flush()

    async def _gather_browser_logs(self, spec_id: str) -> None:
        capabilities = await self.reporter.fetch_capabilities()
        browser_name = (capabilities.browser_name or "").lower()

        if not any(name in browser_name for name in LOG_CAPABLE_BROWSERS):
            return

        self._browser_logs[spec_id] = list(await self.reporter.host.get_browser_logs())


def _now() -> datetime:
    return datetime.now(timezone.utc)
