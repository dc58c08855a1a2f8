from io import BytesIO

import numpy as np
import pytest
from PIL import Image


def encode(image: Image.Image, format: str = "PNG", **params) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format=format, **params)
    return buffer.getvalue()


def gradient_image(width: int, height: int) -> Image.Image:
    """RGB gradient so every region of the image has distinct pixels."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    arr = np.zeros((height, width, 3), dtype=np.uint8)
    arr[..., 0] = xs[np.newaxis, :].astype(np.uint8)
    arr[..., 1] = ys[:, np.newaxis].astype(np.uint8)
    arr[..., 2] = 128
    return Image.fromarray(arr, mode="RGB")


@pytest.fixture
def make_png():
    """Factory for in-memory PNG bytes."""

    def _make(width=800, height=600, color=None, mode="RGB"):
        if color is None and mode == "RGB":
            image = gradient_image(width, height)
        else:
            image = Image.new(mode, (width, height), color or 0)
        return encode(image)

    return _make


@pytest.fixture
def png_800x600(make_png) -> bytes:
    return make_png(800, 600)


def pixels(data: bytes) -> np.ndarray:
    with Image.open(BytesIO(data)) as image:
        return np.asarray(image.copy())


def open_png(data: bytes) -> Image.Image:
    with Image.open(BytesIO(data)) as image:
        image.load()
        return image.copy()
