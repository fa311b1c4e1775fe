"""Metadata records written per spec and merged into the aggregate report."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from pydantic import ConfigDict, Field

from screenshot_reporter.models.base import Model

DescriptionChain: TypeAlias = tuple[str, ...]


class BrowserInfo(Model):
    """Browser name and version taken from the capabilities."""

    name: str | None = None
    version: str | None = None


class MetadataRecord(Model):
    """Normalized, serializable result of one spec.

    Extra keys are kept so that user-supplied metadata builders can attach
    their own data. ``screen_shot_file`` is only set once a screenshot has
    actually been stored.
    """

    model_config = ConfigDict(extra="allow")

    description: str
    passed: bool
    pending: bool = False
    os: str | None = None
    session_id: str | None = None
    browser: BrowserInfo = Field(default_factory=BrowserInfo)
    message: str | None = None
    trace: str | None = None
    duration: float | None = None
    browser_logs: Sequence[Any] = Field(default_factory=list)
    screen_shot_file: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Convert to a camelCase dict, omitting unset optional fields.

        Values are not copied, so the payload may still contain shared or
        self-referential containers. Serialize it with
        ``screenshot_reporter.serialization.dumps``.
        """
        payload: dict[str, Any] = {}
        for name, info in type(self).model_fields.items():
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, BrowserInfo):
                value = value.model_dump()
            payload[info.alias or name] = value

        payload.update(self.model_extra or {})
        return payload


@dataclass(kw_only=True)
class AggregateReport:
    """All metadata records written so far, keyed by description chain."""

    title: str
    entries: dict[DescriptionChain, MetadataRecord] = field(default_factory=dict)

    def merge(self, descriptions: Sequence[str], record: MetadataRecord) -> bool:
        """Add or replace the record for a description chain.

        A replaced entry keeps its position in the report.

        Returns:
            True if an earlier entry for the same chain was replaced

        """
        key = tuple(descriptions)
        replaced = key in self.entries
        self.entries[key] = record
        return replaced

    def results_payload(self) -> list[dict[str, Any]]:
        """Serializable list of entries, each carrying its description chain."""
        return [
            {**record.to_payload(), "descriptions": list(key)}
            for key, record in self.entries.items()
        ]

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {"title": self.title, "results": self.results_payload()}

    @classmethod
    def from_payload(
        cls, payload: Mapping[str, Any], title: str | None = None
    ) -> "AggregateReport":
        """Rebuild a report from a parsed ``combined.json`` document.

        ``title`` overrides the stored title. Entries written without a
        ``descriptions`` list fall back to their joined description as a
        single-element chain.
        """
        report = cls(title=title or payload.get("title") or "")
        for entry in payload.get("results", []):
            data = dict(entry)
            descriptions = data.pop("descriptions", None) or [data["description"]]
            report.merge(descriptions, MetadataRecord.model_validate(data))
        return report
