"""Configuration for the screenshot reporter."""

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any, TypeAlias

from pydantic import Field, ValidationError, field_validator

from screenshot_reporter.errors import ConfigurationError
from screenshot_reporter.metadata import (
    default_metadata_builder,
    jasmine2_metadata_builder,
)
from screenshot_reporter.models.base import Model
from screenshot_reporter.models.capabilities import Capabilities
from screenshot_reporter.models.metadata import MetadataRecord
from screenshot_reporter.paths import default_path_builder

PathBuilder: TypeAlias = Callable[[Any, Sequence[str], Any, Capabilities], str]
MetadataBuilder: TypeAlias = Callable[
    [Any, Sequence[str], Any, Capabilities], MetadataRecord | Mapping[str, Any]
]


class ReporterConfig(Model):
    """Options accepted at reporter construction.

    Keys may be given in snake_case or in the camelCase spelling used by
    existing reporter configurations (``baseDirectory``, ``metaDataBuilder``).
    """

    base_directory: str = Field(
        ..., min_length=1, description="Directory receiving all artifacts"
    )
    path_builder: PathBuilder = default_path_builder
    metadata_builder: MetadataBuilder = Field(
        default=default_metadata_builder, alias="metaDataBuilder"
    )
    jasmine2_metadata_builder: MetadataBuilder = Field(
        default=jasmine2_metadata_builder, alias="jasmine2MetaDataBuilder"
    )
    screenshots_subfolder: str = ""
    jsons_subfolder: str = ""
    take_screenshots_for_skipped_specs: bool = Field(
        default=False, alias="takeScreenShotsForSkippedSpecs"
    )
    take_screenshots_only_for_failed_specs: bool = Field(
        default=False, alias="takeScreenShotsOnlyForFailedSpecs"
    )
    doc_title: str = "Generated test report"
    doc_name: str = Field(default="report.html", min_length=1)
    css_override_file: str | None = None
    preserve_directory: bool = True
    gather_browser_logs: bool = True

    @field_validator("base_directory")
    @classmethod
    def _require_base_directory(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("base directory must not be blank")
        return value

    @property
    def base_path(self) -> Path:
        return Path(self.base_directory)


def load_config(options: "ReporterConfig | Mapping[str, Any] | None") -> ReporterConfig:
    """Validate reporter options.

    Raises:
        ConfigurationError: If the options are missing or invalid, most notably
            when no base directory is given

    """
    if isinstance(options, ReporterConfig):
        return options

    try:
        return ReporterConfig.model_validate(dict(options or {}))
    except ValidationError as e:
        if any(
            error["loc"][:1] in {("baseDirectory",), ("base_directory",)}
            for error in e.errors()
        ):
            raise ConfigurationError(
                "Please pass a valid base directory to store the screenshots into."
            ) from e
        raise ConfigurationError(f"Invalid reporter configuration: {e}") from e
