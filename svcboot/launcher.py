from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import BinaryIO, Iterable, List

import psutil

from .errors import FilesystemError, LaunchError
from .models import ResolvedPaths
from .utils import ensure_dir, remove_file

logger = logging.getLogger(__name__)


def render_token(token: str, port: int, data_dir: Path) -> str:
    return token.replace("{port}", str(port)).replace("{data}", str(data_dir))


def build_args(
    template: str, port: int, data_dir: Path, extra_args: Iterable[str] = ()
) -> List[str]:
    """Fill ``{port}`` and ``{data}`` in the argument template, then append extras."""
    args = [render_token(token, port, data_dir) for token in template.split()]
    args.extend(str(arg) for arg in extra_args)
    return args


def prepare_logs(paths: ResolvedPaths) -> BinaryIO:
    """Create data and log dirs and return a freshly truncated log file."""
    ensure_dir(paths.data_dir)
    ensure_dir(paths.logs_dir)
    remove_file(paths.log_file)
    try:
        return open(paths.log_file, "wb")
    except OSError as exc:
        raise FilesystemError(paths.log_file, exc.strerror or str(exc)) from exc


def spawn(
    formula: str, exec_file: Path, args: List[str], log_file: BinaryIO
) -> subprocess.Popen:
    command = [str(exec_file), *args]
    logger.debug("Spawning %s", command)

    kwargs = {}
    if os.name == "posix":
        kwargs["start_new_session"] = True
    else:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP

    try:
        proc = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=log_file,
            stderr=log_file,
            **kwargs,
        )
    except OSError as exc:
        raise LaunchError(formula, exec_file, exc.strerror or str(exc)) from exc
    finally:
        log_file.close()
    return proc


def terminate_process_tree(proc: subprocess.Popen) -> bool:
    """
    Ask the process and its descendants to stop.

    Returns False when the process had already exited, True once SIGTERM
    (or TerminateProcess on Windows) has been sent.
    """
    if proc.poll() is not None:
        return False

    try:
        parent = psutil.Process(proc.pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return False

    for child in children:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass
    try:
        parent.terminate()
    except psutil.NoSuchProcess:
        pass
    return True
