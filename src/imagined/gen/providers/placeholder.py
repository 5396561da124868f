from __future__ import annotations

import io
import textwrap

from PIL import Image, ImageDraw

from ..provider import ImageProvider, ProviderError
from ..types import ImageGenRequest

CHECKER_LIGHT = (255, 255, 255)
CHECKER_DARK = (221, 221, 221)
CHECKER_CELLS = 4

PIL_FORMATS = {"jpg": "JPEG", "png": "PNG", "webp": "WEBP"}


class PlaceholderProvider(ImageProvider):
    """Renders a labelled checkerboard locally; no network, no credential."""

    @property
    def provider_id(self) -> str:
        return "placeholder"

    def generate(self, req: ImageGenRequest) -> bytes:
        width, height = req.size
        pil_format = PIL_FORMATS.get(req.image_format)
        if pil_format is None:
            raise ProviderError(f"Unsupported image format: {req.image_format}")

        img = Image.new("RGB", (width, height), CHECKER_LIGHT)
        d = ImageDraw.Draw(img)
        cell_w = max(1, width // CHECKER_CELLS)
        cell_h = max(1, height // CHECKER_CELLS)
        for row in range(CHECKER_CELLS):
            for col in range(CHECKER_CELLS):
                if (row + col) % 2:
                    d.rectangle(
                        [col * cell_w, row * cell_h, (col + 1) * cell_w - 1, (row + 1) * cell_h - 1],
                        fill=CHECKER_DARK,
                    )

        label_lines = textwrap.wrap(req.prompt, width=48)[:6]
        label_lines.append(f"{width}x{height}")
        d.text((24, 24), "\n".join(label_lines), fill=(0, 0, 0))

        buf = io.BytesIO()
        img.save(buf, format=pil_format)
        return buf.getvalue()
