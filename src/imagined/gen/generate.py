from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..cache import check_cache, derive_key
from ..extract import Declaration
from ..io import atomic_write_bytes
from ..paths import resolve
from ..styles import StyleError, StyleOptions, parse_style
from .config import ConfigError, Settings
from .provider import ImageProvider
from .registry import ProviderRegistry
from .types import GenerationOutcome, GenerationStatus, ImageGenRequest

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    generated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)

    def add(self, outcome: GenerationOutcome) -> None:
        if outcome.status is GenerationStatus.SUCCESS:
            self.generated.append(outcome.key)
        elif outcome.status is GenerationStatus.SKIPPED:
            self.skipped.append(outcome.key)
        else:
            self.errors.append((outcome.key, outcome.message))


def _request_style(decl: Declaration, settings: Settings) -> Optional[StyleOptions]:
    if decl.style is None:
        return settings.default_style
    try:
        return parse_style(decl.style)
    except StyleError as e:
        logger.warning(f"Invalid style for '{decl.prompt}', using default: {e}")
        return settings.default_style


def ensure_generated(
    decl: Declaration,
    settings: Settings,
    provider: Optional[ImageProvider] = None,
) -> GenerationOutcome:
    """Make sure the artifact for ``decl`` exists, calling the backend at most once.

    Never raises: backend and file-system failures are returned as a FAILED outcome.
    """
    key = derive_key(decl.prompt, decl.width, decl.height, decl.seed, decl.style)
    out_path: Path = resolve(key, settings).file_path

    if check_cache(out_path):
        logger.debug(f"Image already exists: {out_path.name}")
        return GenerationOutcome(GenerationStatus.SKIPPED, key, out_path, reason="exists")

    if provider is None:
        registry = ProviderRegistry(settings)
        try:
            return _generate(decl, settings, registry.get_default_provider(), key, out_path)
        except ConfigError as e:
            return GenerationOutcome(GenerationStatus.FAILED, key, out_path, reason="provider", message=str(e))
        finally:
            registry.close()
    return _generate(decl, settings, provider, key, out_path)


def _generate(
    decl: Declaration,
    settings: Settings,
    provider: ImageProvider,
    key: str,
    out_path: Path,
) -> GenerationOutcome:
    if provider.requires_credential and not settings.api_key:
        logger.info(f"No API key configured, skipping generation for '{decl.prompt}'")
        return GenerationOutcome(GenerationStatus.SKIPPED, key, out_path, reason="no_credential")

    request = ImageGenRequest(
        prompt=decl.prompt,
        width=decl.width,
        height=decl.height,
        seed=decl.seed,
        style=_request_style(decl, settings),
        model=settings.model,
        image_format=settings.image_format,
        out_path=out_path,
    )

    try:
        content = provider.generate(request)
    except Exception as e:
        logger.error(f"Error generating image for '{decl.prompt}': {e}")
        return GenerationOutcome(GenerationStatus.FAILED, key, out_path, reason="backend", message=str(e))

    try:
        atomic_write_bytes(out_path, content)
    except OSError as e:
        logger.error(f"Error writing {out_path}: {e}")
        return GenerationOutcome(GenerationStatus.FAILED, key, out_path, reason="write", message=str(e))

    logger.info(f"Generated image: {out_path.name}")
    return GenerationOutcome(GenerationStatus.SUCCESS, key, out_path)
