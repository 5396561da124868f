from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

RecraftStyle = Literal[
    "realistic_image",
    "digital_illustration",
    "vector_illustration",
    "logo_raster",
]

SUBSTYLES: dict[str, frozenset[str]] = {
    "realistic_image": frozenset({
        "b_and_w", "enterprise", "evening_light", "faded_nostalgia", "forest_life",
        "hard_flash", "hdr", "motion_blur", "mystic_naturalism", "natural_light",
        "natural_tones", "organic_calm", "real_life_glow", "retro_realism",
        "retro_snapshot", "studio_portrait", "urban_drama", "village_realism",
        "warm_folk",
    }),
    "digital_illustration": frozenset({
        "2d_art_poster", "2d_art_poster_2", "antiquarian", "bold_fantasy",
        "child_book", "cover", "crosshatch", "digital_engraving", "engraving_color",
        "expressionism", "freehand_details", "grain", "grain_20", "graphic_intensity",
        "hand_drawn", "hand_drawn_outline", "handmade_3d", "hard_comics",
        "infantile_sketch", "long_shadow", "modern_folk", "multicolor", "neon_calm",
        "noir", "nostalgic_pastel", "outline_details", "pastel_gradient",
        "pastel_sketch", "pixel_art", "plastic", "pop_art", "pop_renaissance",
        "seamless", "street_art", "tablet_sketch", "urban_glow", "urban_sketching",
        "young_adult_book", "young_adult_book_2",
    }),
    "vector_illustration": frozenset({
        "bold_stroke", "chemistry", "colored_stencil", "cosmics", "cutout",
        "depressive", "editorial", "emotional_flat", "engraving", "line_art",
        "line_circuit", "linocut", "marker_outline", "mosaic", "naivector",
        "roundish_flat", "seamless", "segmented_colors", "sharp_contrast", "thin",
        "vector_photo", "vivid_shapes",
    }),
    "logo_raster": frozenset({
        "emblem_graffiti", "emblem_pop_art", "emblem_punk", "emblem_stamp",
        "emblem_vintage",
    }),
}


class StyleError(ValueError):
    """Raised when a style value cannot be parsed into StyleOptions."""


class NamedStyle(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    style: RecraftStyle
    substyle: Optional[str] = None

    @model_validator(mode="after")
    def _substyle_belongs_to_style(self) -> "NamedStyle":
        if self.substyle is not None and self.substyle not in SUBSTYLES[self.style]:
            raise ValueError(f"substyle '{self.substyle}' is not valid for style '{self.style}'")
        return self


class StyleId(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    style_id: str = Field(min_length=1)


StyleOptions = Union[NamedStyle, StyleId]

_STYLE_ADAPTER: TypeAdapter[StyleOptions] = TypeAdapter(StyleOptions)


def style_fields(style: StyleOptions) -> dict[str, str]:
    return style.model_dump(exclude_none=True)


def parse_style(value: Any) -> StyleOptions:
    """Parse a mapping, a model or a serialized ``"k":"v"`` string into StyleOptions.

    Raises:
        StyleError: If the value is not valid JSON or does not describe a known style.
    """
    if isinstance(value, (NamedStyle, StyleId)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text.startswith("{"):
            text = "{" + text + "}"
        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            raise StyleError(f"Invalid style format: {e}") from e
    if not isinstance(value, Mapping):
        raise StyleError(f"Style must be an object, got {type(value).__name__}")
    try:
        return _STYLE_ADAPTER.validate_python(dict(value))
    except ValidationError as e:
        raise StyleError(f"Invalid style: {e}") from e
