"""Resolution of screenshot, fragment and aggregate report paths."""

import posixpath
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from screenshot_reporter.errors import ConfigurationError, UnsafePathError
from screenshot_reporter.models.capabilities import Capabilities


def default_path_builder(
    spec: Any,
    descriptions: Sequence[str],
    result: Any,
    capabilities: Capabilities,
) -> str:
    """Return a fresh random base name, so specs never collide within a run."""
    return str(uuid.uuid4())


@dataclass(frozen=True, kw_only=True)
class ArtifactPaths:
    """Paths derived for one spec's artifacts."""

    screenshot_path: Path
    metadata_fragment_path: Path
    aggregate_metadata_path: Path
    screenshot_reference: str

    @property
    def report_directory(self) -> Path:
        """Directory holding the aggregate report for this spec."""
        return self.aggregate_metadata_path.parent


@dataclass(frozen=True, kw_only=True)
class PathResolver:
    """Builds artifact paths below a base directory.

    Base names may contain nested segments (``"login/chrome/spec-1"``), but no
    resolved path is allowed to leave the base directory.
    """

    base_directory: Path | str
    screenshots_subfolder: str = ""
    jsons_subfolder: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.base_directory, Path):
            if not self.base_directory or not str(self.base_directory).strip():
                raise ConfigurationError(
                    "Please pass a valid base directory to store the screenshots into."
                )
            object.__setattr__(self, "base_directory", Path(self.base_directory))

        for option, subfolder in (
            ("screenshotsSubfolder", self.screenshots_subfolder),
            ("jsonsSubfolder", self.jsons_subfolder),
        ):
            self._check_subfolder(option, subfolder)

    def resolve(self, base_name: str) -> ArtifactPaths:
        """Compute artifact paths for a base name.

        Raises:
            UnsafePathError: If the base name is empty or absolute, or if any
                resulting path escapes the base directory

        """
        normalized = base_name.replace("\\", "/").strip()
        if not normalized or normalized.startswith("/") or Path(normalized).is_absolute():
            raise UnsafePathError(f"Refusing to use artifact base name {base_name!r}")

        directory, name = posixpath.split(normalized)
        if not name:
            raise UnsafePathError(f"Artifact base name {base_name!r} has no file name")

        screenshot_file = f"{name}.png"
        paths = ArtifactPaths(
            screenshot_path=self.base_directory
            / directory
            / self.screenshots_subfolder
            / screenshot_file,
            metadata_fragment_path=self.base_directory
            / directory
            / self.jsons_subfolder
            / f"{name}.json",
            aggregate_metadata_path=self.base_directory / f"{normalized}.json",
            screenshot_reference=posixpath.join(
                self.screenshots_subfolder, screenshot_file
            ),
        )

        for path in (
            paths.screenshot_path,
            paths.metadata_fragment_path,
            paths.aggregate_metadata_path,
        ):
            self._ensure_contained(path)

        return paths

    def _check_subfolder(self, option: str, subfolder: str) -> None:
        normalized = subfolder.replace("\\", "/")
        if normalized.startswith("/") or Path(normalized).is_absolute():
            raise ConfigurationError(f"{option} must be a relative path, got {subfolder!r}")

        root = self.base_directory.resolve()
        if not (self.base_directory / normalized).resolve().is_relative_to(root):
            raise ConfigurationError(
                f"{option} {subfolder!r} escapes base directory {self.base_directory}"
            )

    def _ensure_contained(self, path: Path) -> None:
        root = self.base_directory.resolve()
        if not path.resolve().is_relative_to(root):
            raise UnsafePathError(
                f"Artifact path {path} escapes base directory {self.base_directory}"
            )
