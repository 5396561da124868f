from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .cache import derive_key
from .extract import DeclarationExtractor
from .gen.config import Settings
from .gen.generate import GenerationResult, ensure_generated
from .gen.provider import ImageProvider
from .gen.registry import ProviderRegistry
from .gen.types import GenerationOutcome
from .io import atomic_write_text, iter_source_files
from .paths import resolve
from .rewrite import render_img, rewrite_source

logger = logging.getLogger(__name__)


@dataclass
class FileResult:
    path: Path
    declarations: int = 0
    keys: list[str] = field(default_factory=list)
    outcomes: list[GenerationOutcome] = field(default_factory=list)
    transformed: Optional[str] = None
    changed: bool = False
    written: bool = False
    error: Optional[str] = None


@dataclass
class ScanResult:
    files: list[FileResult] = field(default_factory=list)
    generation: GenerationResult = field(default_factory=GenerationResult)

    @property
    def files_scanned(self) -> int:
        return len(self.files)

    @property
    def declarations(self) -> int:
        return sum(f.declarations for f in self.files)

    @property
    def files_changed(self) -> list[Path]:
        return [f.path for f in self.files if f.changed]

    @property
    def files_written(self) -> list[Path]:
        return [f.path for f in self.files if f.written]

    @property
    def file_errors(self) -> list[tuple[Path, str]]:
        return [(f.path, f.error) for f in self.files if f.error]

    @property
    def ok(self) -> bool:
        return not self.generation.errors and not self.file_errors


def extractor_for(settings: Settings) -> DeclarationExtractor:
    return DeclarationExtractor(settings.component, settings.style_attribute)


def process_file(
    path: Path,
    settings: Settings,
    generate: bool = False,
    write: bool = False,
    provider: Optional[ImageProvider] = None,
    extractor: Optional[DeclarationExtractor] = None,
) -> FileResult:
    """Run the single-file pipeline: extract, optionally generate, rewrite.

    The file is only replaced on disk when ``write`` is set and the text changed.
    Read, parse and write failures are recorded on the result, never raised.
    """
    result = FileResult(path=path)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Cannot read {path}: {e}")
        result.error = f"read failed: {e}"
        return result

    extractor = extractor or extractor_for(settings)
    parsed = extractor.parse(source)
    if not parsed.ok:
        logger.warning(f"Error parsing file {path}: {parsed.error}")
        result.error = parsed.error
        return result
    if not parsed.declarations:
        return result

    result.declarations = len(parsed.declarations)
    logger.debug(f"Found {result.declarations} declaration(s) in {path}")

    replacements = []
    for decl in parsed.declarations:
        key = derive_key(decl.prompt, decl.width, decl.height, decl.seed, decl.style)
        result.keys.append(key)
        if generate:
            result.outcomes.append(ensure_generated(decl, settings, provider))
        replacements.append((decl, render_img(decl, resolve(key, settings).public_url)))

    transformed = rewrite_source(source, replacements)
    result.transformed = transformed
    result.changed = transformed != source
    if not result.changed:
        return result

    if write:
        try:
            atomic_write_text(path, transformed)
        except OSError as e:
            logger.error(f"Error writing {path}: {e}")
            result.error = f"write failed: {e}"
            return result
        result.written = True
        logger.info(f"Rewrote {path}")
    else:
        logger.debug(f"Preview for {path}:\n{transformed}")
    return result


def scan(
    root_dir: Path,
    settings: Settings,
    generate: bool = False,
    write: Optional[bool] = None,
    provider: Optional[ImageProvider] = None,
) -> ScanResult:
    """Process every eligible source file under ``root_dir``.

    Raises:
        FileNotFoundError: If ``root_dir`` does not exist.
    """
    if write is None:
        write = settings.write_back

    registry: Optional[ProviderRegistry] = None
    if generate and provider is None:
        registry = ProviderRegistry(settings)
        provider = registry.get_default_provider()

    extractor = extractor_for(settings)
    result = ScanResult()
    try:
        for path in iter_source_files(root_dir):
            try:
                file_result = process_file(
                    path, settings, generate=generate, write=write,
                    provider=provider, extractor=extractor,
                )
            except Exception as e:
                logger.exception(f"Unexpected error processing {path}")
                file_result = FileResult(path=path, error=str(e))
            result.files.append(file_result)
            for outcome in file_result.outcomes:
                result.generation.add(outcome)
    finally:
        if registry is not None:
            registry.close()

    logger.info(
        f"Scanned {result.files_scanned} file(s), {result.declarations} declaration(s), "
        f"{len(result.generation.generated)} generated"
    )
    return result
