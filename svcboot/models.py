from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Sequence, Tuple


@dataclass(frozen=True)
class PlatformSpec:
    name: str
    source: str


@dataclass(frozen=True)
class Formula:
    name: str
    version: str
    exec: str
    exec_args: str
    port: int | None = None
    platforms: Tuple[PlatformSpec, ...] = ()

    @property
    def env_prefix(self) -> str:
        return f"{self.name.upper()}_"

    def find_platform(self, name: str) -> PlatformSpec | None:
        for platform in self.platforms:
            if platform.name == name:
                return platform
        return None


@dataclass
class ServiceOptions:
    name: str | None = None
    platform: str | None = None
    dir: str | Path | None = None
    port: int | str | None = None
    args: Sequence[str] | None = None


@dataclass(frozen=True)
class ResolvedConfig:
    formula: Formula
    name: str
    platform: PlatformSpec
    base_dir: Path
    port: int
    extra_args: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ResolvedPaths:
    data_dir: Path
    logs_dir: Path
    log_file: Path
    source_dir: Path
    source_file: Path
    extract_dir: Path
    exec_file: Path


class ServiceState(str, Enum):
    UNRESOLVED = "unresolved"
    CONFIG_RESOLVED = "config_resolved"
    PATHS_PLANNED = "paths_planned"
    ARTIFACT_CACHED = "artifact_cached"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"
    EXTRACTION_CACHED = "extraction_cached"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    LOG_PREPARED = "log_prepared"
    SPAWNING = "spawning"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"
