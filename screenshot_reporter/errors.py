"""Error taxonomy for the screenshot reporter."""


class ReporterError(Exception):
    """Base class for all reporter errors."""


class ConfigurationError(ReporterError, ValueError):
    """Raised when reporter options are missing or invalid."""


class CapabilityRetrievalError(ReporterError):
    """Raised when the host fails to supply browser capabilities."""


class ArtifactWriteError(ReporterError):
    """Raised when a screenshot, fragment or aggregate report cannot be written."""


class UnsafePathError(ArtifactWriteError):
    """Raised when a built artifact path would escape the base directory."""
