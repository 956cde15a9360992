"""Error kinds raised while installing and launching a service."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable


class ServiceError(Exception):
    """Base class for every install-and-launch failure."""


class UnsupportedPlatformError(ServiceError):
    def __init__(self, formula: str, platform: str, available: Iterable[str] = ()):
        self.formula = formula
        self.platform = platform
        self.available = tuple(available)
        message = f"Platform '{platform}' is not available for '{formula}'"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message)


class FilesystemError(ServiceError):
    def __init__(self, path: Path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Filesystem operation failed on {path}: {reason}")


class AcquisitionError(ServiceError):
    def __init__(self, formula: str, url: str, reason: str):
        self.formula = formula
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to download '{formula}' from {url}: {reason}")


class ExtractionError(ServiceError):
    def __init__(self, formula: str, path: Path, reason: str):
        self.formula = formula
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Failed to extract '{formula}' archive {path}: {reason}")


class LaunchError(ServiceError):
    def __init__(self, formula: str, path: Path, reason: str):
        self.formula = formula
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Failed to start '{formula}' executable {path}: {reason}")
