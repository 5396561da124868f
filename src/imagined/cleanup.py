"""Garbage collection of artifacts no longer referenced by any declaration.

Pass 1 re-scans the source tree and collects the identity keys of every
declaration, plus the keys named by plain <img> elements left by write-back.
Pass 2 lists the output directory and treats each image file whose stem is
not in that set as unused. If any source file fails to parse, its
references are unknown and deletion is refused unless forced.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .cache import derive_key
from .gen.config import Settings
from .io import iter_source_files
from .paths import public_prefix
from .scan import extractor_for

logger = logging.getLogger(__name__)

ARTIFACT_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})


@dataclass
class ReferenceScan:
    keys: set[str] = field(default_factory=set)
    parse_errors: list[tuple[Path, str]] = field(default_factory=list)


@dataclass
class CleanupResult:
    referenced: set[str] = field(default_factory=set)
    unused: list[Path] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)
    errors: list[tuple[Path, str]] = field(default_factory=list)
    parse_errors: list[tuple[Path, str]] = field(default_factory=list)
    blocked: bool = False


def collect_referenced_keys(root_dir: Path, settings: Settings) -> ReferenceScan:
    """Collect the identity key of every declaration under ``root_dir``.

    Plain <img> elements whose ``src`` points at an artifact under the public
    prefix count as references too, so rewritten sources keep their images.

    Raises:
        FileNotFoundError: If ``root_dir`` does not exist.
    """
    extractor = extractor_for(settings)
    prefix = public_prefix(settings)
    refs = ReferenceScan()
    for path in iter_source_files(root_dir):
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read {path}: {e}")
            refs.parse_errors.append((path, str(e)))
            continue

        parsed = extractor.parse(source)
        if not parsed.ok:
            logger.warning(f"Error parsing file {path}: {parsed.error}")
            refs.parse_errors.append((path, parsed.error or "parse error"))
            continue

        for decl in parsed.declarations:
            refs.keys.add(derive_key(decl.prompt, decl.width, decl.height, decl.seed, decl.style))
        for src in parsed.image_sources:
            key = key_from_url(src, prefix)
            if key is not None:
                refs.keys.add(key)
    return refs


def key_from_url(src: str, prefix: str) -> Optional[str]:
    """Artifact key named by ``src``, or None if it is not an artifact URL."""
    head, sep, name = src.rpartition("/")
    if not sep or head != prefix or "/" in name:
        return None
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem or f".{ext.lower()}" not in ARTIFACT_EXTENSIONS:
        return None
    return stem


def list_artifacts(output_dir: Path) -> list[Path]:
    artifacts = []
    with os.scandir(output_dir) as it:
        for entry in it:
            if not entry.is_file(follow_symlinks=False):
                continue
            p = Path(entry.path)
            if p.suffix.lower() in ARTIFACT_EXTENSIONS:
                artifacts.append(p)
    return sorted(artifacts)


def collect_unused(
    root_dir: Path,
    output_dir: Path,
    dry_run: bool = False,
    settings: Optional[Settings] = None,
    force: bool = False,
) -> CleanupResult:
    settings = settings or Settings()
    result = CleanupResult()

    if not output_dir.is_dir():
        logger.info(f"Output directory does not exist: {output_dir}")
        return result

    refs = collect_referenced_keys(root_dir, settings)
    result.referenced = refs.keys
    result.parse_errors = refs.parse_errors

    try:
        artifacts = list_artifacts(output_dir)
    except OSError as e:
        logger.error(f"Cannot list output directory {output_dir}: {e}")
        result.errors.append((output_dir, str(e)))
        return result

    result.unused = [p for p in artifacts if p.stem not in refs.keys]
    logger.info(f"Found {len(refs.keys)} referenced image(s), {len(result.unused)} unused")

    if dry_run or not result.unused:
        return result

    if result.parse_errors and not force:
        logger.warning(
            f"{len(result.parse_errors)} source file(s) failed to parse; "
            "refusing to delete unused images (use --force to override)"
        )
        result.blocked = True
        return result

    for path in result.unused:
        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Error deleting {path.name}: {e}")
            result.errors.append((path, str(e)))
            continue
        result.removed.append(path)
        logger.info(f"Deleted: {path.name}")
    return result
