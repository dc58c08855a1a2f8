from __future__ import annotations

import base64
import logging
import os
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from watermark_kit.errors import CompositeError
from watermark_kit.watermark.decode import DecodedSurface
from watermark_kit.watermark.style import (
    DEFAULT_STYLE,
    RGBAColor,
    WatermarkMetrics,
    WatermarkStyle,
    derive_metrics,
)

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "watermarked-image.png"

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


@dataclass(frozen=True)
class CompositedImage:
    """
    PNG-encoded result of a compositing call.

    Attributes:
        data (bytes): PNG file contents.
        width (int): Pixel width, equal to the source surface width.
        height (int): Pixel height, equal to the source surface height.
        filename (str): Suggested download name.
    """

    data: bytes
    width: int
    height: int
    filename: str = DEFAULT_FILENAME

    mime_type = "image/png"

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def to_data_url(self) -> str:
        """Return the image as a ``data:image/png;base64,...`` URL."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    def save(self, output_path: str | os.PathLike) -> Path:
        """
        Write the PNG bytes to ``output_path``, creating parent directories.

        Returns:
            Path: The path written.
        """
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path


class WatermarkCompositor:
    """
    Burns a single line of watermark text into a decoded surface.

    Every call follows the same fixed pipeline:
        1. derive font size, outline width and padding from the surface size
        2. copy the surface unmodified into a new canvas
        3. composite a blurred drop shadow of the text
        4. composite the outline stroke (skipped for styles without one)
        5. composite the semi-opaque fill on top
        6. encode the canvas to PNG

    The shadow -> stroke -> fill order is what keeps the text readable on
    both light and dark backgrounds; the fill must always land last.

    The text is centered horizontally with its descender line ``padding``
    pixels above the bottom edge. It is never wrapped: text wider than the
    image is drawn centered and clipped by the canvas edges.

    The compositor holds no state between calls; fonts are loaded per call.
    One instance may be shared between calls and threads.

    Example:
        >>> surface = decode(data, "image/jpeg")
        >>> result = WatermarkCompositor().composite(surface, "© 2024 Studio")
        >>> result.save("watermarked-image.png")
    """

    _ANCHOR = "md"
    _LEFT_ANCHOR = "ld"
    _CHUNK_LENGTH = 10_000
    _TRANSPARENT: RGBAColor = (0, 0, 0, 0)
    _LINE_BREAKS = str.maketrans({"\n": " ", "\r": " ", "\t": " ", "\f": " "})
    _BOLD_FONTS = (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/Library/Fonts/Arial Bold.ttf",
        "C:/Windows/Fonts/arialbd.ttf",
    )
    _REGULAR_FONTS = (
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/Library/Fonts/Arial.ttf",
        "C:/Windows/Fonts/arial.ttf",
    )

    def __init__(
        self,
        style: WatermarkStyle = DEFAULT_STYLE,
        font_path: str | None = None,
        filename: str = DEFAULT_FILENAME,
    ) -> None:
        """
        Args:
            style (WatermarkStyle): Style constants. Defaults to
                ``DEFAULT_STYLE``.
            font_path (str | None): Explicit TrueType/OpenType font file.
                When ``None`` common system fonts are tried, then Pillow's
                bundled default font.
            filename (str): Download name attached to each result.
        """
        self.style = style
        self.font_path = font_path
        self.filename = filename

    def composite(self, surface: DecodedSurface, text: str) -> CompositedImage:
        """
        Render ``text`` onto ``surface`` and return the PNG-encoded result.

        Empty or whitespace-only text still runs the whole pipeline; it just
        leaves every layer transparent, so the output pixels equal the input.
        Text of any length is accepted: very long text is cut down to the
        run that can reach the canvas before it is rasterised.

        Args:
            surface (DecodedSurface): Source pixels. Not modified.
            text (str): Watermark text, rendered literally as one line.
                Line breaks and tabs are drawn as spaces.

        Returns:
            CompositedImage: PNG bytes with the same dimensions as ``surface``.

        Raises:
            CompositeError: If the canvas cannot be allocated, drawn on, or
                encoded. Nothing partial is returned.
        """
        metrics = derive_metrics(surface.width, surface.height, self.style)
        line = (text or "").translate(self._LINE_BREAKS)

        try:
            canvas = surface.image.copy()
            font = self._load_font(metrics.font_size)
            line, position, anchor = self._layout(line, font, metrics, canvas.size)

            canvas = self._stack(
                canvas,
                self._shadow_layer(canvas.size, line, font, position, anchor, metrics),
            )
            if self.style.stroke:
                canvas = self._stack(
                    canvas,
                    self._stroke_layer(canvas.size, line, font, position, anchor, metrics),
                )
            canvas = self._stack(
                canvas, self._fill_layer(canvas.size, line, font, position, anchor)
            )
        except (MemoryError, OSError, ValueError) as e:
            raise CompositeError(f"Failed to draw watermark: {e}") from e

        if canvas.size != surface.size:
            raise CompositeError(
                f"Canvas size {canvas.size} does not match surface size {surface.size}."
            )

        data = self._encode(canvas, keep_alpha=surface.has_alpha)
        return CompositedImage(
            data=data,
            width=surface.width,
            height=surface.height,
            filename=self.filename,
        )

    def _layout(
        self,
        line: str,
        font: FontType,
        metrics: WatermarkMetrics,
        size: Tuple[int, int],
    ) -> Tuple[str, Tuple[float, float], str]:
        """
        Decide which text to rasterise, where, and with which anchor.

        Text up to ``_CHUNK_LENGTH`` characters is drawn whole, centered on
        the anchor point. Longer text is measured chunk by chunk; chunks
        lying entirely beyond the canvas edges (plus the reach of the stroke
        and shadow) are dropped and the remaining run is drawn left-anchored
        at the x it would have had in the full line. The visible pixels are
        the same, and Pillow's per-string length limit is never hit.

        Returns:
            Tuple[str, Tuple[float, float], str]: Text to draw, its position,
                and the Pillow anchor for that position.
        """
        x, y = metrics.anchor(*size)
        if len(line) <= self._CHUNK_LENGTH:
            return line, (x, y), self._ANCHOR

        chunks = [
            line[i:i + self._CHUNK_LENGTH]
            for i in range(0, len(line), self._CHUNK_LENGTH)
        ]
        widths = [font.getlength(chunk) for chunk in chunks]
        dx, dy = self.style.shadow_offset
        reach = (
            metrics.font_size
            + metrics.stroke_px
            + 3 * self.style.shadow_radius
            + max(abs(dx), abs(dy))
        )

        start = x - sum(widths) / 2
        kept: List[str] = []
        kept_left: Optional[float] = None
        for chunk, width in zip(chunks, widths):
            end = start + width
            if end >= -reach and start <= size[0] + reach:
                if kept_left is None:
                    kept_left = start
                kept.append(chunk)
            start = end

        if kept_left is None:
            return "", (x, y), self._ANCHOR
        logger.debug(f"Drawing {sum(map(len, kept))} of {len(line)} characters")
        return "".join(kept), (kept_left, y), self._LEFT_ANCHOR

    def _shadow_layer(
        self,
        size: Tuple[int, int],
        text: str,
        font: FontType,
        position: Tuple[float, float],
        anchor: str,
        metrics: WatermarkMetrics,
    ) -> Image.Image:
        """
        Draw the text silhouette (outline included when the style has one)
        at the shadow offset, then blur it.
        """
        layer = self._new_layer(size)
        dx, dy = self.style.shadow_offset
        self._draw_text(
            layer,
            (position[0] + dx, position[1] + dy),
            text,
            font,
            anchor,
            fill=self.style.shadow_color,
            stroke_width=metrics.stroke_px if self.style.stroke else 0,
            stroke_fill=self.style.shadow_color,
        )
        if self.style.shadow_radius > 0:
            layer = layer.filter(ImageFilter.GaussianBlur(radius=self.style.shadow_radius))
        return layer

    def _stroke_layer(
        self,
        size: Tuple[int, int],
        text: str,
        font: FontType,
        position: Tuple[float, float],
        anchor: str,
        metrics: WatermarkMetrics,
    ) -> Image.Image:
        layer = self._new_layer(size)
        self._draw_text(
            layer,
            position,
            text,
            font,
            anchor,
            fill=self.style.stroke_color,
            stroke_width=metrics.stroke_px,
            stroke_fill=self.style.stroke_color,
        )
        return layer

    def _fill_layer(
        self,
        size: Tuple[int, int],
        text: str,
        font: FontType,
        position: Tuple[float, float],
        anchor: str,
    ) -> Image.Image:
        layer = self._new_layer(size)
        self._draw_text(layer, position, text, font, anchor, fill=self.style.fill_color)
        return layer

    def _new_layer(self, size: Tuple[int, int]) -> Image.Image:
        return Image.new("RGBA", size, self._TRANSPARENT)

    @staticmethod
    def _draw_text(
        layer: Image.Image,
        position: Tuple[float, float],
        text: str,
        font: FontType,
        anchor: str,
        fill: RGBAColor,
        stroke_width: int = 0,
        stroke_fill: RGBAColor | None = None,
    ) -> None:
        # Nothing to rasterise; the layer stays transparent.
        if not text:
            return
        ImageDraw.Draw(layer).text(
            position,
            text,
            font=font,
            fill=fill,
            anchor=anchor,
            stroke_width=stroke_width,
            stroke_fill=stroke_fill,
        )

    @staticmethod
    def _stack(canvas: Image.Image, layer: Image.Image) -> Image.Image:
        """
        Alpha-composite ``layer`` over ``canvas``.

        A fully transparent layer leaves the canvas as is, which keeps the
        base pixels bit-exact when there is nothing to draw.
        """
        if layer.getbbox() is None:
            return canvas
        return Image.alpha_composite(canvas, layer)

    @staticmethod
    def _encode(canvas: Image.Image, keep_alpha: bool) -> bytes:
        """
        Serialise the canvas to PNG.

        Sources without transparency are written as RGB so the output does
        not gain an alpha channel the input never had.

        Raises:
            CompositeError: If Pillow fails to encode the image.
        """
        output = canvas if keep_alpha else canvas.convert("RGB")
        buffer = BytesIO()
        try:
            output.save(buffer, format="PNG")
        except (OSError, ValueError) as e:
            raise CompositeError(f"Failed to encode PNG: {e}") from e
        return buffer.getvalue()

    def _load_font(self, size: float) -> FontType:
        """
        Load a font at the given pixel size.

        Tries ``font_path`` first, then common system fonts (bold or regular
        depending on the style), then Pillow's bundled scalable font.
        """
        candidates = list(self._BOLD_FONTS if self.style.bold else self._REGULAR_FONTS)
        if self.font_path:
            candidates.insert(0, self.font_path)
        for path in candidates:
            if os.path.exists(path):
                try:
                    return ImageFont.truetype(path, size)
                except OSError:
                    logger.debug(f"Could not load font {path}, trying next candidate")
        return ImageFont.load_default(size)


def composite(
    surface: DecodedSurface,
    text: str,
    style: WatermarkStyle = DEFAULT_STYLE,
) -> CompositedImage:
    """Convenience wrapper: composite with a throwaway ``WatermarkCompositor``."""
    return WatermarkCompositor(style=style).composite(surface, text)
