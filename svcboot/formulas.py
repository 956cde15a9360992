"""Built-in formulas and helpers to load formulas from data files."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from .models import Formula, PlatformSpec
from .utils import load_yaml_or_json

MONGO_FORMULA: Dict[str, Any] = {
    "name": "mongo",
    "version": "4.2.2",
    "exec": "bin/mongod",
    "execArgs": "--port {port} --dbpath {data}",
    "port": 27017,
    "platforms": [
        {
            "name": "linux",
            "source": "https://fastdl.mongodb.org/linux/mongodb-linux-x86_64-ubuntu1804-4.2.2.tgz",
        },
        {
            "name": "darwin",
            "source": "https://fastdl.mongodb.org/osx/mongodb-macos-x86_64-4.2.2.tgz",
        },
        {
            "name": "win32",
            "source": "https://fastdl.mongodb.org/win32/mongodb-win32-x86_64-2012plus-4.2.2.zip",
        },
    ],
}

FORMULAS: Dict[str, Dict[str, Any]] = {
    "mongo": MONGO_FORMULA,
}


def formula_from_dict(data: Dict[str, Any]) -> Formula:
    port = data.get("port")
    return Formula(
        name=str(data["name"]),
        version=str(data["version"]),
        exec=str(data["exec"]),
        exec_args=str(data.get("execArgs", "")),
        port=int(port) if port is not None else None,
        platforms=tuple(
            PlatformSpec(name=str(p["name"]), source=str(p["source"]))
            for p in data.get("platforms", [])
        ),
    )


def get_formula(name: str) -> Formula:
    if name not in FORMULAS:
        raise KeyError(f"Unknown formula '{name}' (known: {', '.join(sorted(FORMULAS))})")
    return formula_from_dict(FORMULAS[name])


def load_formula_file(path: Path) -> Formula:
    data = load_yaml_or_json(path)
    missing = [key for key in ("name", "version", "exec") if not data.get(key)]
    if missing:
        raise ValueError(f"Missing required fields in {path}: {', '.join(missing)}")
    return formula_from_dict(data)
