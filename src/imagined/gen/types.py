from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..styles import StyleOptions

DEFAULT_SIZE = (1024, 1024)


@dataclass(frozen=True)
class ImageGenRequest:
    prompt: str
    width: Optional[int]
    height: Optional[int]
    seed: Optional[str]
    style: Optional[StyleOptions]
    model: str
    image_format: str
    out_path: Path

    @property
    def size(self) -> tuple[int, int]:
        if self.width and self.height:
            return self.width, self.height
        return DEFAULT_SIZE


class GenerationStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationOutcome:
    status: GenerationStatus
    key: str
    path: Path
    reason: str = ""
    message: str = ""
