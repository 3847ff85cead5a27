"""Path helpers used by the data processors."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union

PathLike = Union[str, os.PathLike]


def normalize(path: PathLike) -> str:
    return os.path.normpath(os.fspath(path))


def join(*parts: PathLike) -> str:
    if not parts:
        return "."
    return os.path.normpath(os.path.join(*(os.fspath(p) for p in parts)))


def resolve(*parts: PathLike) -> str:
    """Resolve ``parts`` against the current working directory."""
    if not parts:
        return str(Path.cwd())
    return os.path.abspath(os.path.join(*(os.fspath(p) for p in parts)))
