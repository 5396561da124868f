from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

EXCLUDED_DIRS = frozenset({".git", ".hg", ".svn", "node_modules", "dist", ".next"})
SOURCE_EXTENSIONS = frozenset({".tsx", ".jsx", ".ts"})


def read_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping: {p}")
    return data


def read_json(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"JSON root must be an object: {p}")
    return data


def atomic_write_bytes(path: Path, content: bytes) -> Path:
    """Write ``content`` to ``path`` via a temp file in the same directory and a rename.

    Parent directories are created. A reader never observes a partially written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    return path


def atomic_write_text(path: Path, text: str) -> Path:
    return atomic_write_bytes(path, text.encode("utf-8"))


def is_source_file(path: Path) -> bool:
    return path.suffix in SOURCE_EXTENSIONS


def is_excluded(path: Path, root: Path) -> bool:
    try:
        parts = path.relative_to(root).parts
    except ValueError:
        parts = path.parts
    return any(part in EXCLUDED_DIRS for part in parts[:-1])


def iter_source_files(root: Path) -> Iterator[Path]:
    """Yield eligible source files under ``root``, depth-first in listing order.

    Directories in EXCLUDED_DIRS and symlinked directories are not entered.
    A subdirectory that cannot be listed is logged and skipped.

    Raises:
        FileNotFoundError: If ``root`` is not an existing directory.
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Source directory not found: {root}")
    yield from _walk(root)


def _walk(directory: Path) -> Iterator[Path]:
    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as e:
        logger.warning(f"Cannot list directory {directory}: {e}")
        return

    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                if entry.name not in EXCLUDED_DIRS:
                    yield from _walk(Path(entry.path))
            elif entry.is_file():
                p = Path(entry.path)
                if is_source_file(p):
                    yield p
        except OSError as e:
            logger.warning(f"Cannot stat {entry.path}: {e}")
