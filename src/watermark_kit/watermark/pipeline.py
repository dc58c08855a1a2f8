from __future__ import annotations

import asyncio
from typing import Optional

from watermark_kit.watermark.composite import CompositedImage, WatermarkCompositor
from watermark_kit.watermark.decode import SourceImage, decode_source
from watermark_kit.watermark.style import DEFAULT_STYLE, WatermarkStyle


async def apply_watermark(
    source: SourceImage,
    text: str,
    style: WatermarkStyle = DEFAULT_STYLE,
    compositor: Optional[WatermarkCompositor] = None,
) -> CompositedImage:
    """
    Decode ``source`` and burn ``text`` into it.

    Compositing only starts once the decode has resolved. A ``DecodeError``
    is raised straight to the caller and no compositing is attempted. The
    compositing step itself runs on a worker thread as well, since large
    images make the blur and PNG encode noticeably slow.

    Args:
        source (SourceImage): Raw image bytes and declared MIME type.
        text (str): Watermark text.
        style (WatermarkStyle): Style used when ``compositor`` is not given.
        compositor (WatermarkCompositor | None): Reuse an existing compositor
            instead of creating one.

    Returns:
        CompositedImage: PNG result with the source's dimensions.

    Raises:
        DecodeError: If the source cannot be decoded.
        CompositeError: If drawing or encoding fails.
    """
    surface = await decode_source(source)
    compositor = compositor or WatermarkCompositor(style=style)
    return await asyncio.to_thread(compositor.composite, surface, text)
