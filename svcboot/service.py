from __future__ import annotations

import logging
from typing import Mapping

import httpx

from .acquire import ProgressCallback, ensure_artifact
from .config import resolve_config
from .extract import ensure_extracted
from .formulas import get_formula
from .launcher import build_args, prepare_logs, spawn
from .models import Formula, ServiceOptions, ServiceState
from .paths import plan_paths
from .shutdown import ServiceHandle, ShutdownRegistry, StateCallback

logger = logging.getLogger(__name__)


async def start_service(
    formula: Formula | str = "mongo",
    options: ServiceOptions | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    registry: ShutdownRegistry | None = None,
    client: httpx.AsyncClient | None = None,
    on_progress: ProgressCallback | None = None,
    on_state: StateCallback | None = None,
) -> ServiceHandle:
    """
    Install (if needed) and launch the service described by ``formula``.

    The download and unpack steps are skipped when their results are
    already on disk. The returned handle owns the child process; it is
    registered with ``registry`` so the host can stop every service at exit.
    Without a registry the caller alone is responsible for ``close()``.
    """
    if isinstance(formula, str):
        formula = get_formula(formula)

    def state(value: ServiceState) -> None:
        logger.debug("%s: %s", formula.name, value.value)
        if on_state is not None:
            on_state(value)

    state(ServiceState.UNRESOLVED)
    try:
        config = resolve_config(formula, options, environ)
        state(ServiceState.CONFIG_RESOLVED)

        paths = plan_paths(config)
        state(ServiceState.PATHS_PLANNED)

        if not (paths.extract_dir.exists() and paths.exec_file.exists()):
            if paths.source_file.exists():
                state(ServiceState.ARTIFACT_CACHED)
            else:
                state(ServiceState.DOWNLOADING)
                await ensure_artifact(config, paths, client=client, on_progress=on_progress)
                state(ServiceState.DOWNLOADED)

            state(ServiceState.EXTRACTING)
            await ensure_extracted(config, paths)
            state(ServiceState.EXTRACTED)
        else:
            state(ServiceState.EXTRACTION_CACHED)

        log_file = prepare_logs(paths)
        logger.info("Writing logs to: %s", paths.log_file)
        state(ServiceState.LOG_PREPARED)

        args = build_args(formula.exec_args, config.port, paths.data_dir, config.extra_args)
        logger.info("Starting %s at port %s", formula.name, config.port)
        state(ServiceState.SPAWNING)
        process = spawn(formula.name, paths.exec_file, args, log_file)
    except BaseException:
        state(ServiceState.FAILED)
        raise

    handle = ServiceHandle(process, config, paths, args, on_state=on_state)
    if registry is not None:
        handle.attach(registry)
    else:
        logger.warning(
            "%s (pid %s) has no shutdown registry; call close() to stop it",
            formula.name,
            process.pid,
        )
    state(ServiceState.RUNNING)
    return handle
