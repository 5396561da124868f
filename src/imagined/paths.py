from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .gen.config import Settings

DEFAULT_PUBLIC_PREFIX = "/generated-images"
PUBLIC_SEGMENT = "public"


@dataclass(frozen=True)
class ResolvedImage:
    key: str
    file_path: Path
    public_url: str


def _normalize_public_path(public_path: str) -> str:
    prefix = public_path if public_path.startswith("/") else f"/{public_path}"
    return prefix[:-1] if prefix.endswith("/") else prefix


def _output_parts(settings: Settings) -> tuple[str, ...]:
    """Output dir path segments, relative to the project root when it lies inside it."""
    out = PurePosixPath(settings.output_dir.replace("\\", "/"))
    if settings.project_root:
        root = PurePosixPath(settings.project_root.replace("\\", "/"))
        try:
            return out.relative_to(root).parts
        except ValueError:
            pass
    return out.parts


def public_prefix(settings: Settings) -> str:
    """URL prefix for artifacts: explicit publicPath, else inferred from a ``public`` dir."""
    if settings.public_path:
        return _normalize_public_path(settings.public_path)

    if settings.output_dir:
        parts = _output_parts(settings)
        if PUBLIC_SEGMENT in parts:
            last = len(parts) - 1 - parts[::-1].index(PUBLIC_SEGMENT)
            remainder = "/".join(parts[last + 1:])
            if remainder:
                return f"/{remainder}"

    return DEFAULT_PUBLIC_PREFIX


def artifact_path(key: str, settings: Settings) -> Path:
    return settings.output_path / f"{key}.{settings.image_format}"


def resolve(key: str, settings: Settings) -> ResolvedImage:
    return ResolvedImage(
        key=key,
        file_path=artifact_path(key, settings),
        public_url=f"{public_prefix(settings)}/{key}.{settings.image_format}",
    )
