"""Tests for the screenshot reporter."""

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from screenshot_reporter.errors import ConfigurationError
from screenshot_reporter.models.capabilities import Capabilities
from screenshot_reporter.models.result import (
    Expectation,
    LegacySpec,
    LegacySpecResult,
    ResultItem,
    Suite,
    SuiteResult,
)
from screenshot_reporter.reporter import ScreenshotReporter
from screenshot_reporter.store import COMBINED_JSON_NAME
from screenshot_reporter.testing.factories import SpecResultFactory
from screenshot_reporter.testing.host import PNG_BYTES, FakeBrowserHost
from screenshot_reporter.viewer import COMBINED_JS_NAME


def fixed_name(name: str) -> Any:
    def path_builder(*args: Any) -> str:
        return name

    return path_builder


def read_json(path: Path) -> Any:
    return json.loads(path.read_text())


@pytest.fixture
def host() -> FakeBrowserHost:
    """Create host reporting a chrome session."""
    return FakeBrowserHost()


def make_reporter(
    host: FakeBrowserHost, base_directory: Path, **options: Any
) -> ScreenshotReporter:
    return ScreenshotReporter(host, {"baseDirectory": str(base_directory), **options})


class TestConstruction:
    """Tests for reporter construction."""

    @pytest.mark.parametrize("options", [None, {}, {"baseDirectory": ""}])
    def test_requires_base_directory(
        self, host: FakeBrowserHost, options: dict[str, str] | None
    ) -> None:
        """Fails immediately without a base directory."""
        with pytest.raises(ConfigurationError):
            ScreenshotReporter(host, options)

    @pytest.mark.parametrize(
        "options",
        [{"screenshotsSubfolder": "../shots"}, {"jsonsSubfolder": "/abs"}],
    )
    def test_rejects_subfolder_outside_base_directory(
        self, host: FakeBrowserHost, tmp_path: Path, options: dict[str, str]
    ) -> None:
        """Fails at construction instead of skipping every spec later."""
        (tmp_path / "old.png").write_bytes(b"old")

        with pytest.raises(ConfigurationError, match="Subfolder"):
            make_reporter(host, tmp_path, preserveDirectory=False, **options)

        assert (tmp_path / "old.png").exists()

    def test_clears_base_directory_unless_preserved(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Removes earlier artifacts when preserveDirectory is false."""
        (tmp_path / "old.png").write_bytes(b"old")

        make_reporter(host, tmp_path, preserveDirectory=False)

        assert not tmp_path.exists()

    def test_preserves_base_directory_by_default(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Keeps earlier artifacts by default."""
        (tmp_path / "old.png").write_bytes(b"old")

        make_reporter(host, tmp_path)

        assert (tmp_path / "old.png").exists()


class TestJasmine2SpecDone:
    """Tests for the multi-callback reporter."""

    async def test_passing_spec_scenario(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Writes screenshot, fragment and aggregate entry for a passing spec."""
        reporter = make_reporter(
            host,
            tmp_path,
            pathBuilder=fixed_name("login"),
            screenshotsSubfolder="images",
            jsonsSubfolder="jsons",
        )
        jasmine2 = reporter.get_jasmine2_reporter()
        result = SpecResultFactory.build(
            id="spec0", description="should succeed", status="passed"
        )

        jasmine2.suite_started(SuiteResult(description="Login"))
        jasmine2.spec_started(result)
        await jasmine2.spec_done(result)
        jasmine2.suite_done()

        assert (tmp_path / "images" / "login.png").read_bytes() == PNG_BYTES
        fragment = read_json(tmp_path / "jsons" / "login.json")
        assert fragment["description"] == "Login should succeed"
        assert fragment["descriptions"] == ["Login", "should succeed"]
        assert fragment["passed"] is True
        assert fragment["os"] == "LINUX"
        assert fragment["browser"] == {"name": "chrome", "version": "90"}
        assert fragment["message"] == "Passed"
        assert fragment["screenShotFile"] == "images/login.png"
        assert fragment["duration"] >= 0

        results = read_json(tmp_path / COMBINED_JSON_NAME)["results"]
        assert len(results) == 1
        assert results[0]["screenShotFile"] == "images/login.png"

    async def test_failing_spec_scenario(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Records the failure message and trace."""
        reporter = make_reporter(host, tmp_path, pathBuilder=fixed_name("fail"))
        result = SpecResultFactory.build(
            status="failed",
            failed_expectations=[
                Expectation(message="Expected true to be false", stack=None)
            ],
        )

        await reporter.get_jasmine2_reporter().spec_done(result)

        fragment = read_json(tmp_path / "fail.json")
        assert fragment["passed"] is False
        assert fragment["message"] == "Expected true to be false"
        assert fragment["trace"] == "No Stack trace information"
        assert host.screenshot_calls[0] == 1

    async def test_nested_suites_build_description_chain(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Joins all active suite names in order."""
        reporter = make_reporter(host, tmp_path, pathBuilder=fixed_name("nested"))
        jasmine2 = reporter.get_jasmine2_reporter()
        result = SpecResultFactory.build(description="works")

        jasmine2.suite_started(SuiteResult(description="Outer"))
        jasmine2.suite_started(SuiteResult(description="Inner"))
        task = jasmine2.spec_done(result)
        jasmine2.suite_done()
        jasmine2.suite_done()
        await task

        fragment = read_json(tmp_path / "nested.json")
        assert fragment["descriptions"] == ["Outer", "Inner", "works"]
        assert jasmine2.suite_names == []

    async def test_only_failed_mode_skips_passing_screenshot(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Takes no screenshot and sets no screenShotFile for passing specs."""
        reporter = make_reporter(
            host,
            tmp_path,
            pathBuilder=fixed_name("pass"),
            takeScreenShotsOnlyForFailedSpecs=True,
        )

        await reporter.get_jasmine2_reporter().spec_done(
            SpecResultFactory.build(status="passed")
        )

        assert host.screenshot_calls[0] == 0
        assert not (tmp_path / "pass.png").exists()
        assert "screenShotFile" not in read_json(tmp_path / "pass.json")

    async def test_only_failed_mode_captures_failing_spec(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Still captures screenshots for failing specs."""
        reporter = make_reporter(
            host,
            tmp_path,
            pathBuilder=fixed_name("fail"),
            takeScreenShotsOnlyForFailedSpecs=True,
        )

        await reporter.get_jasmine2_reporter().spec_done(
            SpecResultFactory.build(status="failed")
        )

        assert host.screenshot_calls[0] == 1
        assert read_json(tmp_path / "fail.json")["screenShotFile"] == "fail.png"

    @pytest.mark.parametrize("status", ["pending", "disabled"])
    async def test_skipped_spec_without_screenshot(
        self, host: FakeBrowserHost, tmp_path: Path, status: str
    ) -> None:
        """Writes metadata but no screenshot for skipped specs by default."""
        reporter = make_reporter(host, tmp_path, pathBuilder=fixed_name("skip"))

        await reporter.get_jasmine2_reporter().spec_done(
            SpecResultFactory.build(status=status)
        )

        assert host.screenshot_calls[0] == 0
        fragment = read_json(tmp_path / "skip.json")
        assert fragment["pending"] is True
        assert "screenShotFile" not in fragment

    async def test_skipped_spec_with_screenshot_option(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Captures skipped specs when takeScreenShotsForSkippedSpecs is set."""
        reporter = make_reporter(
            host,
            tmp_path,
            pathBuilder=fixed_name("skip"),
            takeScreenShotsForSkippedSpecs=True,
        )

        await reporter.get_jasmine2_reporter().spec_done(
            SpecResultFactory.build(status="pending")
        )

        assert host.screenshot_calls[0] == 1
        assert read_json(tmp_path / "skip.json")["screenShotFile"] == "skip.png"

    async def test_screenshot_failure_still_writes_metadata(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Writes fragment and aggregate entry when the screenshot fails."""
        host = FakeBrowserHost(screenshot_error=RuntimeError("browser crashed"))
        reporter = make_reporter(host, tmp_path, pathBuilder=fixed_name("crash"))

        with caplog.at_level(logging.WARNING):
            await reporter.get_jasmine2_reporter().spec_done(
                SpecResultFactory.build(status="failed")
            )

        fragment = read_json(tmp_path / "crash.json")
        assert "screenShotFile" not in fragment
        assert len(read_json(tmp_path / COMBINED_JSON_NAME)["results"]) == 1
        assert "Could not capture screenshot" in caplog.text
        assert "browser crashed" in caplog.text

    async def test_capability_failure_reports_without_capabilities(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Logs the failure and writes metadata without capability fields."""
        host = FakeBrowserHost(capability_error=RuntimeError("session lost"))
        reporter = make_reporter(host, tmp_path, pathBuilder=fixed_name("nocaps"))

        with caplog.at_level(logging.WARNING):
            await reporter.get_jasmine2_reporter().spec_done(
                SpecResultFactory.build(status="passed")
            )

        fragment = read_json(tmp_path / "nocaps.json")
        assert "os" not in fragment
        assert fragment["browser"] == {"name": None, "version": None}
        assert "Host failed to supply capabilities: session lost" in caplog.text

    async def test_unsafe_path_skips_spec(
        self, host: FakeBrowserHost, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Writes nothing outside the base directory."""
        base = tmp_path / "reports"
        reporter = make_reporter(host, base, pathBuilder=fixed_name("../escape"))

        with caplog.at_level(logging.WARNING):
            await reporter.get_jasmine2_reporter().spec_done(
                SpecResultFactory.build(status="failed")
            )

        assert not (tmp_path / "escape.json").exists()
        assert host.screenshot_calls[0] == 0
        assert "Skipping artifacts" in caplog.text

    async def test_failing_builder_is_logged(
        self, host: FakeBrowserHost, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Logs errors raised by custom builders instead of propagating them."""

        def broken_builder(*args: Any) -> Any:
            raise KeyError("missing")

        reporter = make_reporter(
            host,
            tmp_path,
            pathBuilder=fixed_name("broken"),
            jasmine2MetaDataBuilder=broken_builder,
        )

        await reporter.get_jasmine2_reporter().spec_done(
            SpecResultFactory.build(status="passed")
        )

        assert "Could not build metadata" in caplog.text
        assert not (tmp_path / "broken.json").exists()

    async def test_custom_builder_mapping_and_screenshot_invariant(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Accepts mappings and ignores a screenShotFile claimed by a builder."""

        def builder(spec: Any, descriptions: Any, result: Any, caps: Capabilities) -> Any:
            return {
                "description": "custom",
                "passed": True,
                "screenShotFile": "fake.png",
                "build": 42,
            }

        reporter = make_reporter(
            host,
            tmp_path,
            pathBuilder=fixed_name("custom"),
            jasmine2MetaDataBuilder=builder,
            takeScreenShotsOnlyForFailedSpecs=True,
        )

        await reporter.get_jasmine2_reporter().spec_done(
            SpecResultFactory.build(status="passed")
        )

        fragment = read_json(tmp_path / "custom.json")
        assert fragment["build"] == 42
        assert "screenShotFile" not in fragment

    async def test_rerun_keeps_single_aggregate_entry(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Replaces the aggregate entry of a spec reported twice."""
        reporter = make_reporter(host, tmp_path)
        jasmine2 = reporter.get_jasmine2_reporter()

        for status in ("failed", "passed"):
            await jasmine2.spec_done(
                SpecResultFactory.build(description="flaky", status=status)
            )

        results = read_json(tmp_path / COMBINED_JSON_NAME)["results"]
        assert len(results) == 1
        assert results[0]["passed"] is True
        assert len(list(tmp_path.glob("*.png"))) == 2

    async def test_reverse_completion_order_loses_no_update(
        self, tmp_path: Path
    ) -> None:
        """Keeps both entries when the first spec finishes writing last."""
        host = FakeBrowserHost(capability_delays=[0.05, 0.0])
        reporter = make_reporter(host, tmp_path)
        jasmine2 = reporter.get_jasmine2_reporter()

        slow = jasmine2.spec_done(SpecResultFactory.build(description="slow"))
        fast = jasmine2.spec_done(SpecResultFactory.build(description="fast"))
        await jasmine2.jasmine_done()

        assert slow.done() and fast.done()
        results = read_json(tmp_path / COMBINED_JSON_NAME)["results"]
        assert sorted(r["description"] for r in results) == ["fast", "slow"]

    async def test_gathers_chrome_browser_logs(self, tmp_path: Path) -> None:
        """Stores browser logs collected by the after-spec hook."""
        logs = [{"level": "SEVERE", "message": "Uncaught TypeError"}]
        host = FakeBrowserHost(browser_logs=logs)
        reporter = make_reporter(host, tmp_path, pathBuilder=fixed_name("logs"))
        jasmine2 = reporter.get_jasmine2_reporter()
        result = SpecResultFactory.build(status="failed")

        jasmine2.spec_started(result)
        await host.run_after_spec_hooks()
        await jasmine2.spec_done(result)

        assert read_json(tmp_path / "logs.json")["browserLogs"] == logs

    async def test_shared_log_entries_are_written_in_full(
        self, tmp_path: Path
    ) -> None:
        """Writes log entries reused by several specs in full for each spec."""
        entry = {"level": "SEVERE", "message": "Uncaught TypeError"}
        host = FakeBrowserHost(browser_logs=[entry])
        reporter = make_reporter(host, tmp_path)
        jasmine2 = reporter.get_jasmine2_reporter()

        for description in ("first", "second"):
            result = SpecResultFactory.build(description=description, status="failed")
            jasmine2.spec_started(result)
            await host.run_after_spec_hooks()
            await jasmine2.spec_done(result)

        results = read_json(tmp_path / COMBINED_JSON_NAME)["results"]
        assert [r["browserLogs"] for r in results] == [[entry], [entry]]
        assert "$ref" not in (tmp_path / COMBINED_JS_NAME).read_text()
        for fragment in tmp_path.glob("*.json"):
            if fragment.name != COMBINED_JSON_NAME:
                assert read_json(fragment)["browserLogs"] == [entry]

    async def test_skips_logs_for_other_browsers(self, tmp_path: Path) -> None:
        """Does not ask non-chrome browsers for logs."""
        host = FakeBrowserHost(
            capabilities={"browserName": "firefox"},
            browser_logs=[{"message": "ignored"}],
        )
        reporter = make_reporter(host, tmp_path, pathBuilder=fixed_name("ff"))
        jasmine2 = reporter.get_jasmine2_reporter()
        result = SpecResultFactory.build()

        jasmine2.spec_started(result)
        await host.run_after_spec_hooks()
        await jasmine2.spec_done(result)

        assert read_json(tmp_path / "ff.json")["browserLogs"] == []

    async def test_log_gathering_can_be_disabled(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Registers no hook when gatherBrowserLogs is false."""
        reporter = make_reporter(host, tmp_path, gatherBrowserLogs=False)

        reporter.get_jasmine2_reporter().spec_started(SpecResultFactory.build())

        assert host._after_spec_hooks == []

    def test_unbalanced_suite_done_is_ignored(
        self, host: FakeBrowserHost, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Logs a warning instead of failing on an empty suite stack."""
        jasmine2 = make_reporter(host, tmp_path).get_jasmine2_reporter()

        with caplog.at_level(logging.WARNING):
            jasmine2.suite_done()

        assert "without a matching suite_started" in caplog.text


class TestReportSpecResults:
    """Tests for the legacy single callback."""

    async def test_uses_parent_suite_linkage(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Builds descriptions from the suite chain and legacy results."""
        reporter = make_reporter(host, tmp_path, pathBuilder=fixed_name("legacy"))
        spec = LegacySpec(
            description="should fail",
            suite=Suite(description="Inner", parent_suite=Suite(description="Outer")),
            results=LegacySpecResult(
                items=[ResultItem(passed=False, message="nope")],
                browser_logs=[{"message": "log"}],
            ),
        )

        await reporter.report_spec_results(spec)

        fragment = read_json(tmp_path / "legacy.json")
        assert fragment["descriptions"] == ["Outer", "Inner", "should fail"]
        assert fragment["passed"] is False
        assert fragment["message"] == "nope"
        assert fragment["trace"] == "No Stack trace information"
        assert fragment["browserLogs"] == [{"message": "log"}]
        assert fragment["screenShotFile"] == "legacy.png"
        assert "duration" not in fragment

    async def test_skipped_legacy_spec(
        self, host: FakeBrowserHost, tmp_path: Path
    ) -> None:
        """Writes metadata without screenshot for skipped legacy specs."""
        reporter = make_reporter(host, tmp_path, pathBuilder=fixed_name("skipped"))

        await reporter.report_spec_results(
            LegacySpec(description="later", results=LegacySpecResult(skipped=True))
        )

        assert host.screenshot_calls[0] == 0
        assert read_json(tmp_path / "skipped.json")["pending"] is True
