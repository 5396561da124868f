from __future__ import annotations

import json
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ..io import read_json, read_yaml
from ..styles import NamedStyle, StyleOptions
from .providers.recraft import RECRAFT_BASE_URL

logger = logging.getLogger(__name__)

CONFIG_FILES = ("imagined.toml", "imagined.yaml", "imagined.yml")
ENV_FILES = (".env.local", ".env", ".env.production")
MANIFEST_FILE = "package.json"
MANIFEST_FIELD = "imagined"

API_KEY_ENV = "RECRAFT_API_KEY"
OUTPUT_DIR_ENV = "IMAGINED_OUTPUT_DIR"

DEFAULT_OUTPUT_DIR = "generated-images"

ImageFormat = Literal["jpg", "png", "webp"]


class ConfigError(Exception):
    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


class Settings(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    project_root: Optional[str] = None
    api_key: Optional[str] = None
    source_dir: Optional[str] = None
    output_dir: Optional[str] = None
    public_path: Optional[str] = None
    image_format: ImageFormat = "jpg"
    model: Literal["recraftv2", "recraftv3"] = "recraftv3"
    default_style: Optional[StyleOptions] = NamedStyle(
        style="realistic_image", substyle="natural_light"
    )
    provider: Literal["recraft", "placeholder"] = "recraft"
    component: str = "Imagined"
    style_attribute: str = "recraftStyle"
    base_url: str = RECRAFT_BASE_URL
    timeout: float = 60.0
    write_back: bool = False

    @field_validator("component", "style_attribute")
    @classmethod
    def _not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir or DEFAULT_OUTPUT_DIR)


def _load_config_file(path: Path) -> dict[str, Any]:
    try:
        if path.suffix == ".toml":
            return tomllib.loads(path.read_text(encoding="utf-8"))
        return read_yaml(path)
    except (tomllib.TOMLDecodeError, yaml.YAMLError, ValueError, OSError) as e:
        raise ConfigError(f"Failed to parse config: {e}", path=path) from e


def _load_manifest_field(path: Path) -> dict[str, Any]:
    try:
        manifest = read_json(path)
    except (json.JSONDecodeError, ValueError, OSError) as e:
        logger.warning(f"Failed to parse {path}: {e}")
        return {}
    data = manifest.get(MANIFEST_FIELD) or {}
    if not isinstance(data, dict):
        raise ConfigError(f'"{MANIFEST_FIELD}" field must be an object', path=path)
    return data


def find_config(project_root: Path) -> Optional[Path]:
    for name in CONFIG_FILES:
        candidate = project_root / name
        if candidate.is_file():
            return candidate
    return None


def load_env_file(project_root: Path) -> Optional[Path]:
    for name in ENV_FILES:
        candidate = project_root / name
        if candidate.is_file():
            load_dotenv(candidate, override=False)
            return candidate
    return None


def default_output_dir(project_root: Path) -> Path:
    if (project_root / "public").is_dir():
        return project_root / "public" / DEFAULT_OUTPUT_DIR
    return project_root / DEFAULT_OUTPUT_DIR


def load_settings(
    project_root: Optional[Path] = None,
    output_dir: Optional[str | Path] = None,
) -> Settings:
    """Merge defaults, config file, package.json field, environment and overrides.

    Later sources win. Relative directories are resolved against ``project_root``.

    Raises:
        ConfigError: If a config source cannot be parsed or fails validation.
    """
    root = (project_root or Path.cwd()).resolve()
    data: dict[str, Any] = {}
    origin: Optional[Path] = None

    config_path = find_config(root)
    if config_path is not None:
        data.update(_load_config_file(config_path))
        origin = config_path
        logger.info(f"Loaded config from {config_path.name}")

    manifest_path = root / MANIFEST_FILE
    if manifest_path.is_file():
        manifest_data = _load_manifest_field(manifest_path)
        if manifest_data:
            data.update(manifest_data)
            origin = manifest_path

    load_env_file(root)
    if os.getenv(API_KEY_ENV):
        data["apiKey"] = os.environ[API_KEY_ENV]
        data.pop("api_key", None)
    if os.getenv(OUTPUT_DIR_ENV):
        data["outputDir"] = os.environ[OUTPUT_DIR_ENV]
        data.pop("output_dir", None)
    if output_dir is not None:
        data["outputDir"] = str(output_dir)
        data.pop("output_dir", None)

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}", path=origin) from e

    out = settings.output_dir
    resolved_out = root / out if out else default_output_dir(root)
    src = settings.source_dir
    resolved_src = root / src if src else root
    return settings.model_copy(update={
        "output_dir": str(resolved_out.resolve()),
        "source_dir": str(resolved_src.resolve()),
        "project_root": str(root),
    })
