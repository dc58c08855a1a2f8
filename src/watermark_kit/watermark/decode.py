from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from watermark_kit.errors import DecodeError


IMAGE_MIME_PREFIX = "image/"


@dataclass(frozen=True)
class SourceImage:
    """
    Raw image bytes as handed over by the upload side, plus the MIME type
    it declared.

    Attributes:
        data (bytes): The encoded image file contents.
        mime_type (str): Declared MIME type, e.g. ``"image/jpeg"``.
    """

    data: bytes
    mime_type: str

    @property
    def is_image(self) -> bool:
        return is_image_type(self.mime_type)


@dataclass(frozen=True)
class DecodedSurface:
    """
    A decoded pixel grid ready to receive drawing commands.

    ``image`` is always RGBA so layers can be alpha-composited onto it.
    ``has_alpha`` remembers whether the source carried transparency, which
    decides whether the encoder keeps the alpha channel.

    Attributes:
        width (int): Natural pixel width.
        height (int): Natural pixel height.
        image (Image.Image): RGBA pixel buffer of size ``(width, height)``.
        has_alpha (bool): True when the source image had transparency.
    """

    width: int
    height: int
    image: Image.Image
    has_alpha: bool = False

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height


def is_image_type(mime_type: str | None) -> bool:
    """Return True when ``mime_type`` names an image kind (``image/...``)."""
    return bool(mime_type) and mime_type.strip().lower().startswith(IMAGE_MIME_PREFIX)


def decode(data: bytes, declared_type: str) -> DecodedSurface:
    """
    Decode an encoded image into a ``DecodedSurface``.

    The image is fully loaded here rather than lazily, so truncated or
    corrupt data fails now instead of halfway through compositing. EXIF
    orientation is applied, which makes ``width`` and ``height`` the
    dimensions a viewer would display.

    Args:
        data (bytes): Encoded image bytes (PNG, JPEG, GIF, WebP, BMP, ...).
        declared_type (str): MIME type declared for ``data``. Must start
            with ``image/``.

    Returns:
        DecodedSurface: RGBA surface with the image's natural dimensions.

    Raises:
        DecodeError: If the declared type is not an image type, the buffer
            is empty, or Pillow cannot identify or fully decode the data.
    """
    if not is_image_type(declared_type):
        raise DecodeError(f"Not an image type: {declared_type!r}")
    if not data:
        raise DecodeError("Image data is empty.")

    try:
        with Image.open(BytesIO(data)) as opened:
            opened.load()
            has_alpha = opened.has_transparency_data
            oriented = ImageOps.exif_transpose(opened)
            image = oriented.convert("RGBA")
    except UnidentifiedImageError as e:
        raise DecodeError(f"Unrecognised image data ({declared_type}): {e}") from e
    except Image.DecompressionBombError as e:
        raise DecodeError(f"Image is too large to decode: {e}") from e
    except (OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Failed to decode image: {e}") from e

    width, height = image.size
    if width <= 0 or height <= 0:
        raise DecodeError(f"Image has no pixels ({width}x{height}).")

    return DecodedSurface(width=width, height=height, image=image, has_alpha=has_alpha)


async def decode_async(data: bytes, declared_type: str) -> DecodedSurface:
    """
    Awaitable form of ``decode``.

    Decoding runs on a worker thread so the event loop stays free while
    large images are being read. Errors are the same as ``decode``.
    """
    return await asyncio.to_thread(decode, data, declared_type)


async def decode_source(source: SourceImage) -> DecodedSurface:
    return await decode_async(source.data, source.mime_type)
