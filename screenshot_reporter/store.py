"""Persistence of screenshots, metadata fragments and the aggregate report."""

import asyncio
import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from screenshot_reporter import serialization, viewer
from screenshot_reporter.errors import ArtifactWriteError
from screenshot_reporter.models.config import ReporterConfig
from screenshot_reporter.models.metadata import AggregateReport, MetadataRecord

log = logging.getLogger(__name__)

COMBINED_JSON_NAME = "combined.json"

# Failures raised while encoding or writing artifacts.
WRITE_ERRORS = (OSError, TypeError, ValueError, RecursionError)


def remove_directory(path: Path) -> None:
    """Remove a directory tree, ignoring a directory that does not exist."""
    log.info("Removing base directory %s", path)
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass


@dataclass(kw_only=True)
class ArtifactStore:
    """Writes per-spec artifacts and maintains aggregate reports.

    One aggregate report is kept per report directory. It is loaded from disk
    on first use and cached afterwards. Merges into the same directory are
    serialized by an ``asyncio.Lock``, so a slow continuation can never
    overwrite an update that was merged before it.
    """

    doc_title: str = "Generated test report"
    doc_name: str = "report.html"
    css_override_file: str | None = None
    _reports: dict[Path, AggregateReport] = field(
        default_factory=dict, init=False, repr=False
    )
    _locks: dict[Path, asyncio.Lock] = field(
        default_factory=dict, init=False, repr=False
    )
    _assets_written: set[Path] = field(default_factory=set, init=False, repr=False)

    @classmethod
    def from_config(cls, config: ReporterConfig) -> "ArtifactStore":
        """Create a store using the report options of a reporter config."""
        return cls(
            doc_title=config.doc_title,
            doc_name=config.doc_name,
            css_override_file=config.css_override_file,
        )

    async def store_screenshot(self, png: bytes, path: Path) -> None:
        """Write screenshot bytes, replacing any existing file."""
        try:
            await serialization.write_atomic(path, png)
        except WRITE_ERRORS as e:
            raise ArtifactWriteError(f"Could not store screenshot {path}: {e}") from e
        log.debug("Stored screenshot %s (%d bytes)", path, len(png))

    async def store_metadata_fragment(
        self,
        record: MetadataRecord,
        path: Path,
        descriptions: Sequence[str],
    ) -> None:
        """Write one spec's metadata to its own JSON file."""
        payload = {**record.to_payload(), "descriptions": list(descriptions)}
        try:
            await serialization.write_atomic(path, serialization.dumps(payload))
        except WRITE_ERRORS as e:
            raise ArtifactWriteError(
                f"Could not store metadata fragment {path}: {e}"
            ) from e
        log.debug("Stored metadata fragment %s", path)

    async def merge_into_aggregate(
        self,
        record: MetadataRecord,
        aggregate_path: Path,
        descriptions: Sequence[str],
    ) -> AggregateReport:
        """Merge a record into the aggregate report next to ``aggregate_path``.

        An earlier entry with the same description chain is replaced. The
        report viewer assets are written with the first merge into a
        directory.

        Returns:
            The aggregate report after the merge

        """
        directory = aggregate_path.parent.resolve()
        lock = self._locks.setdefault(directory, asyncio.Lock())

        async with lock:
            try:
                report = await self._get_report(directory)
                if report.merge(descriptions, record):
                    log.info("Replaced aggregate entry for %s", " ".join(descriptions))

                await serialization.write_atomic(
                    directory / COMBINED_JSON_NAME,
                    serialization.dumps(report.to_payload()),
                )
                await serialization.write_atomic(
                    directory / viewer.COMBINED_JS_NAME,
                    viewer.render_combined_js(report),
                )

                if directory not in self._assets_written:
                    await self._write_viewer_assets(directory)
                    self._assets_written.add(directory)
            except WRITE_ERRORS as e:
                raise ArtifactWriteError(
                    f"Could not merge metadata into aggregate report in {directory}: {e}"
                ) from e

        return report

    async def _get_report(self, directory: Path) -> AggregateReport:
        if (report := self._reports.get(directory)) is not None:
            return report

        report = AggregateReport(title=self.doc_title)
        text = await serialization.read_text(directory / COMBINED_JSON_NAME)
        if text is not None:
            try:
                report = AggregateReport.from_payload(
                    serialization.loads(text), title=self.doc_title
                )
            except (ValueError, KeyError, TypeError) as e:
                log.warning(
                    "Ignoring unreadable aggregate report in %s: %s", directory, e
                )
            else:
                log.info(
                    "Loaded %d existing entries from %s",
                    len(report.entries),
                    directory / COMBINED_JSON_NAME,
                )

        self._reports[directory] = report
        return report

    async def _write_viewer_assets(self, directory: Path) -> None:
        stylesheet = self.css_override_file or viewer.DEFAULT_STYLESHEET_NAME
        await serialization.write_atomic(
            directory / self.doc_name,
            viewer.render_html(self.doc_title, stylesheet),
        )
        if self.css_override_file is None:
            await serialization.write_atomic(
                directory / viewer.DEFAULT_STYLESHEET_NAME,
                viewer.DEFAULT_STYLESHEET,
            )
        log.debug("Wrote report viewer assets to %s", directory)
