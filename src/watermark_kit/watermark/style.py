from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

RGBAColor = Tuple[int, int, int, int]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatermarkStyle:
    """
    Style constants for the single centered, bottom-anchored watermark line.

    Sizes are not stored here directly; they are derived per image by
    ``derive_metrics`` from the divisors and ratios below, so the same style
    scales from thumbnails to full-resolution photos.

    Attributes:
        name (str): Preset name shown on the command line.
        min_font_size (float): Floor for the derived font size in pixels.
        width_divisor (float): Font size candidate is ``width / width_divisor``.
        height_divisor (float): Font size candidate is ``height / height_divisor``.
        stroke_ratio (float): Outline width is ``font_size / stroke_ratio``.
        padding_ratio (float): Gap above the bottom edge is
            ``font_size * padding_ratio``.
        bold (bool): Prefer a bold face when looking up system fonts.
        fill_color (RGBAColor): Glyph fill, drawn last.
        stroke (bool): Draw the outline layer at all.
        stroke_color (RGBAColor): Outline colour.
        shadow_offset (Tuple[int, int]): Shadow displacement in pixels.
        shadow_blur (float): Canvas-style blur amount. The Gaussian standard
            deviation applied is half of this value.
        shadow_color (RGBAColor): Shadow colour before blurring.
    """

    name: str = "default"
    min_font_size: float = 16
    width_divisor: float = 18
    height_divisor: float = 22
    stroke_ratio: float = 15
    padding_ratio: float = 0.75
    bold: bool = True
    fill_color: RGBAColor = (255, 255, 255, 217)
    stroke: bool = True
    stroke_color: RGBAColor = (0, 0, 0, 153)
    shadow_offset: Tuple[int, int] = (2, 2)
    shadow_blur: float = 8
    shadow_color: RGBAColor = (0, 0, 0, 128)

    @property
    def shadow_radius(self) -> float:
        return self.shadow_blur / 2


@dataclass(frozen=True)
class WatermarkMetrics:
    """Per-image sizes derived from a style and the surface dimensions."""

    font_size: float
    stroke_width: float
    padding: float

    @property
    def stroke_px(self) -> int:
        """
        Outset of the outline beyond the glyph edge, in whole pixels.

        ``stroke_width`` is a line centred on the glyph outline, so only half
        of it lies outside the glyph. Pillow's ``stroke_width`` is that
        outside part. Never thinner than 1 px.
        """
        return max(1, round(self.stroke_width / 2))

    def anchor(self, width: int, height: int) -> Tuple[float, float]:
        """Horizontal center, ``padding`` pixels above the bottom edge."""
        return width / 2, height - self.padding


DEFAULT_STYLE = WatermarkStyle()

# Lighter look with no outline: regular weight, 70 % white, small soft shadow.
SOFT_STYLE = WatermarkStyle(
    name="soft",
    min_font_size=12,
    width_divisor=20,
    height_divisor=25,
    bold=False,
    fill_color=(255, 255, 255, 179),
    stroke=False,
    shadow_offset=(0, 0),
    shadow_blur=5,
)

STYLES: Dict[str, WatermarkStyle] = {
    style.name: style for style in (DEFAULT_STYLE, SOFT_STYLE)
}


def get_style(name: Optional[str]) -> WatermarkStyle:
    """
    Look up a named style preset.

    Args:
        name (str | None): Preset name. ``None`` selects ``DEFAULT_STYLE``.

    Raises:
        ValueError: If no preset has that name.
    """
    if name is None:
        return DEFAULT_STYLE
    try:
        return STYLES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown style: {name}. Available styles: {', '.join(STYLES)}"
        ) from None


def derive_metrics(
    width: int,
    height: int,
    style: WatermarkStyle = DEFAULT_STYLE,
) -> WatermarkMetrics:
    """
    Compute font size, outline width and bottom padding for an image.

    The font size follows the smaller of ``width / width_divisor`` and
    ``height / height_divisor`` and is clamped below at ``min_font_size``
    so text on small images stays legible. With the default style an
    800x600 image gets ``min(44.4, 27.3) = 27.3`` and a 100x100 image
    gets the 16 px floor.

    Args:
        width (int): Surface width in pixels. Must be positive.
        height (int): Surface height in pixels. Must be positive.
        style (WatermarkStyle): Style supplying the divisors and ratios.

    Returns:
        WatermarkMetrics: The derived sizes, unrounded.

    Raises:
        ValueError: If either dimension is not positive.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Dimensions must be positive, got {width}x{height}.")

    font_size = max(
        style.min_font_size,
        min(width / style.width_divisor, height / style.height_divisor),
    )
    metrics = WatermarkMetrics(
        font_size=font_size,
        stroke_width=font_size / style.stroke_ratio,
        padding=font_size * style.padding_ratio,
    )
    logger.debug(
        f"Metrics for {width}x{height} ({style.name}): "
        f"font={metrics.font_size:.2f} stroke={metrics.stroke_width:.2f} "
        f"padding={metrics.padding:.2f}"
    )
    return metrics
