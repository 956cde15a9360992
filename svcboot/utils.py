from __future__ import annotations

import json
import os
import stat
from pathlib import Path, PurePosixPath
from typing import Any, Dict
from urllib.parse import urlsplit

import yaml

from .errors import FilesystemError


def load_yaml_or_json(path: Path) -> Dict[str, Any]:
    data: Dict[str, Any]
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        raise ValueError(f"Unsupported formula definition: {path}")
    if not isinstance(data, dict):
        raise ValueError(f"Invalid formula definition format: {path}")
    return data


def ensure_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(path, exc.strerror or str(exc)) from exc


def remove_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise FilesystemError(path, exc.strerror or str(exc)) from exc


def url_extension(url: str) -> str:
    """
    Return the final suffix of the URL path, ignoring query and fragment.

    Examples:
      - https://host/a/mongodb-4.2.2.tgz -> .tgz
      - https://host/a/mongodb-4.2.2.tar.gz?x=1 -> .gz
      - https://host/a/download -> ""
    """
    return PurePosixPath(urlsplit(url).path).suffix


def make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
