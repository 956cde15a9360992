from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tarfile
import tempfile
import zipfile
import zlib
from pathlib import Path, PurePosixPath

from .errors import ExtractionError, FilesystemError
from .models import ResolvedConfig, ResolvedPaths
from .utils import make_executable


logger = logging.getLogger(__name__)


class _BadArchive(Exception):
    pass


def strip_component(name: str, strip: int = 1) -> str | None:
    """Drop the first ``strip`` path components; None if nothing safe is left."""
    parts = [p for p in PurePosixPath(name.replace("\\", "/")).parts if p not in ("", ".")]
    if parts and parts[0] == "/":
        return None
    parts = parts[strip:]
    if not parts or ".." in parts:
        return None
    return "/".join(parts)


def _extract_tar(source: Path, target: Path, strip: int) -> None:
    with tarfile.open(source) as tar:
        members = []
        for member in tar.getmembers():
            name = strip_component(member.name, strip)
            if name is None:
                continue
            if member.islnk():
                link = strip_component(member.linkname, strip)
                if link is None:
                    continue
                member.linkname = link
            member.name = name
            members.append(member)
        tar.extractall(target, members=members, filter="data")


def _extract_zip(source: Path, target: Path, strip: int) -> None:
    with zipfile.ZipFile(source) as zf:
        for info in zf.infolist():
            name = strip_component(info.filename, strip)
            if name is None:
                continue
            dest = target / name
            if info.is_dir():
                dest.mkdir(parents=True, exist_ok=True)
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, open(dest, "wb") as out:
                shutil.copyfileobj(src, out)
            mode = (info.external_attr >> 16) & 0o777
            if mode:
                os.chmod(dest, mode)


def extract_archive(source: Path, target: Path, strip: int = 1) -> None:
    """Unpack a tar or zip archive into ``target``, detected by content."""
    try:
        if tarfile.is_tarfile(source):
            _extract_tar(source, target, strip)
        elif zipfile.is_zipfile(source):
            _extract_zip(source, target, strip)
        else:
            raise _BadArchive("unrecognized archive format")
    except (tarfile.TarError, zipfile.BadZipFile, zlib.error, EOFError) as exc:
        raise _BadArchive(str(exc) or type(exc).__name__) from exc


def _unpack(config: ResolvedConfig, paths: ResolvedPaths) -> None:
    formula = config.formula.name
    source = paths.source_file
    if not source.exists():
        raise ExtractionError(formula, source, "archive is missing")

    try:
        if paths.extract_dir.exists():
            logger.debug("Removing incomplete %s", paths.extract_dir)
            shutil.rmtree(paths.extract_dir)
        staging = Path(tempfile.mkdtemp(prefix=".unpacked.", dir=paths.source_dir))
    except OSError as exc:
        raise FilesystemError(paths.extract_dir, exc.strerror or str(exc)) from exc

    try:
        try:
            extract_archive(source, staging)
        except _BadArchive as exc:
            raise ExtractionError(formula, source, str(exc)) from exc
        except OSError as exc:
            raise ExtractionError(formula, source, exc.strerror or str(exc)) from exc

        staged_exec = staging / config.formula.exec
        if not staged_exec.is_file():
            raise ExtractionError(
                formula, source, f"archive does not contain {config.formula.exec}"
            )
        make_executable(staged_exec)

        try:
            os.rename(staging, paths.extract_dir)
        except OSError:
            # another start with the same layout may have published first
            if not paths.exec_file.exists():
                raise
            logger.debug("Using %s unpacked concurrently", paths.extract_dir)
    except OSError as exc:
        raise FilesystemError(paths.extract_dir, exc.strerror or str(exc)) from exc
    finally:
        shutil.rmtree(staging, ignore_errors=True)


async def ensure_extracted(config: ResolvedConfig, paths: ResolvedPaths) -> bool:
    """
    Make sure the executable exists under ``paths.extract_dir``.

    Returns True when the archive was unpacked, False when reused. One
    leading directory is stripped from every archive entry.
    """
    if paths.extract_dir.exists() and paths.exec_file.exists():
        logger.debug("Using unpacked %s", paths.extract_dir)
        return False

    logger.info("Decompressing %s", paths.source_file.name)
    await asyncio.to_thread(_unpack, config, paths)
    logger.info("Unpacked %s", paths.extract_dir)
    return True
