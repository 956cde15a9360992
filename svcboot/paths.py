from __future__ import annotations

from .models import ResolvedConfig, ResolvedPaths
from .utils import url_extension


def source_file_name(config: ResolvedConfig) -> str:
    formula = config.formula
    return (
        f"{formula.name}-{formula.version}-{config.platform.name}"
        f"{url_extension(config.platform.source)}"
    )


def plan_paths(config: ResolvedConfig) -> ResolvedPaths:
    formula = config.formula
    base = config.base_dir
    logs_dir = base / "logs" / config.name / formula.name
    source_dir = base / "source" / formula.name / formula.version / config.platform.name
    extract_dir = source_dir / "unpacked"
    return ResolvedPaths(
        data_dir=base / "data" / config.name / formula.name,
        logs_dir=logs_dir,
        log_file=logs_dir / "logs.txt",
        source_dir=source_dir,
        source_file=source_dir / source_file_name(config),
        extract_dir=extract_dir,
        exec_file=extract_dir / formula.exec,
    )
