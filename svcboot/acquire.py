from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable

import httpx

from .errors import AcquisitionError, FilesystemError
from .models import ResolvedConfig, ResolvedPaths
from .utils import ensure_dir, remove_file

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024
DEFAULT_TIMEOUT_SECONDS = 60.0

ProgressCallback = Callable[[int], None]


class _Progress:
    def __init__(self, callback: ProgressCallback | None, total: int | None):
        self._callback = callback
        self._total = total if total and total > 0 else None
        self._last = -1
        self._done = 0

    def _emit(self, percent: int) -> None:
        if self._callback is None or percent <= self._last:
            return
        self._last = percent
        self._callback(percent)

    def start(self) -> None:
        self._emit(0)

    def advance(self, size: int) -> None:
        self._done += size
        if self._total is None:
            return
        # 100 is reserved for the completed transfer
        self._emit(min(99, self._done * 100 // self._total))

    def finish(self) -> None:
        self._emit(100)


def _new_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(DEFAULT_TIMEOUT_SECONDS, connect=10.0),
        follow_redirects=True,
    )


async def _stream_to(
    client: httpx.AsyncClient,
    url: str,
    target: Path,
    on_progress: ProgressCallback | None,
    chunk_size: int,
) -> None:
    async with client.stream("GET", url) as response:
        response.raise_for_status()
        length = response.headers.get("content-length")
        progress = _Progress(on_progress, int(length) if length and length.isdigit() else None)
        progress.start()
        with open(target, "wb") as f:
            async for chunk in response.aiter_bytes(chunk_size):
                f.write(chunk)
                progress.advance(len(chunk))
        progress.finish()


async def ensure_artifact(
    config: ResolvedConfig,
    paths: ResolvedPaths,
    *,
    client: httpx.AsyncClient | None = None,
    on_progress: ProgressCallback | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> bool:
    """
    Make sure the source archive exists at ``paths.source_file``.

    Returns True when the archive was downloaded, False on a cache hit.
    The transfer goes to a temporary file that only replaces the target
    once complete, so an interrupted download never looks like a cached one.
    """
    if paths.source_file.exists():
        logger.debug("Using cached %s", paths.source_file)
        return False

    url = config.platform.source
    formula = config.formula.name
    ensure_dir(paths.source_dir)
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{paths.source_file.name}.", suffix=".part", dir=paths.source_dir
        )
        os.close(fd)
    except OSError as exc:
        raise FilesystemError(paths.source_dir, exc.strerror or str(exc)) from exc
    tmp_path = Path(tmp_name)

    logger.info("Downloading %s from %s", paths.source_file.name, url)
    owns_client = client is None
    if client is None:
        client = _new_client()
    try:
        await _stream_to(client, url, tmp_path, on_progress, chunk_size)
        os.replace(tmp_path, paths.source_file)
    except httpx.HTTPStatusError as exc:
        raise AcquisitionError(formula, url, f"HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise AcquisitionError(formula, url, str(exc) or type(exc).__name__) from exc
    except OSError as exc:
        raise AcquisitionError(formula, url, exc.strerror or str(exc)) from exc
    finally:
        if owns_client:
            await client.aclose()
        remove_file(tmp_path)

    logger.info("Downloaded %s", paths.source_file)
    return True
