from __future__ import annotations

import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Mapping

from .errors import UnsupportedPlatformError
from .models import Formula, ResolvedConfig, ServiceOptions

logger = logging.getLogger(__name__)

DEFAULT_NAME = "default"


def default_platform() -> str:
    return sys.platform


def default_base_dir(formula: Formula) -> Path:
    return Path(tempfile.gettempdir()) / formula.name


def _env(environ: Mapping[str, str], *keys: str) -> str | None:
    for key in keys:
        value = environ.get(key)
        if value:
            return value
    return None


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _parse_port(value: Any) -> int:
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"Invalid port: {value!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range: {port}")
    return port


def resolve_config(
    formula: Formula,
    options: ServiceOptions | None = None,
    environ: Mapping[str, str] | None = None,
) -> ResolvedConfig:
    """
    Merge call options with environment and formula defaults.

    Precedence, highest first: explicit option, environment variable,
    formula default, hard-coded fallback. The environment is read once.
    """
    options = options or ServiceOptions()
    env = dict(os.environ if environ is None else environ)
    prefix = formula.env_prefix

    name = _first(options.name, _env(env, f"{prefix}NAME"), DEFAULT_NAME)
    platform_name = _first(
        options.platform, _env(env, f"{prefix}PLATFORM"), default_platform()
    )
    port = _first(options.port, _env(env, f"{prefix}PORT", "PORT"), formula.port)
    base_dir = _first(options.dir, _env(env, f"{prefix}DIR"))

    platform = formula.find_platform(platform_name)
    if platform is None:
        raise UnsupportedPlatformError(
            formula.name, platform_name, (p.name for p in formula.platforms)
        )
    if port is None:
        raise ValueError(f"No port configured for '{formula.name}'")

    if base_dir is None:
        base_dir = default_base_dir(formula)

    config = ResolvedConfig(
        formula=formula,
        name=str(name),
        platform=platform,
        base_dir=Path(base_dir).resolve(),
        port=_parse_port(port),
        extra_args=tuple(str(arg) for arg in (options.args or ())),
    )
    logger.debug(
        "Resolved %s config: name=%s platform=%s dir=%s port=%s",
        formula.name,
        config.name,
        platform.name,
        config.base_dir,
        config.port,
    )
    return config
