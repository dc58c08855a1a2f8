"""
Caller-side state for a single watermarking session.

Holds the current source image, the watermark text, the latest result and
a status flag that moves ``idle -> loading -> success | error``. The
compositing core stays stateless; everything a user interface needs to
show lives here, including the user-facing error messages.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from watermark_kit.errors import CompositeError, DecodeError
from watermark_kit.watermark.composite import CompositedImage, WatermarkCompositor
from watermark_kit.watermark.decode import SourceImage, is_image_type
from watermark_kit.watermark.pipeline import apply_watermark
from watermark_kit.watermark.style import DEFAULT_STYLE, WatermarkStyle


class Status(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class WatermarkSession:
    """
    Owns the in-memory image pair (original and watermarked) for one user.

    Any new input (``load``, ``apply`` or ``clear``) supersedes a request
    still in flight. When the older request finishes its result is thrown
    away, so a slow decode can never overwrite a newer image.

    Attributes:
        text (str): Watermark text used by the next ``apply()``.
        original (SourceImage | None): The most recently loaded image.
        processed (CompositedImage | None): Result of the last successful
            ``apply()`` for ``original``.
        status (Status): Current state.
        error (str | None): User-facing message when ``status`` is ERROR.

    Example:
        >>> session = WatermarkSession(text="© 2024 Studio")
        >>> session.load(data, "image/jpeg")
        >>> result = asyncio.run(session.apply())
    """

    DEFAULT_TEXT = "Your Watermark"
    INVALID_FILE_MESSAGE = "Please select a valid image file."
    NO_IMAGE_MESSAGE = "Please upload an image first."
    DECODE_FAILED_MESSAGE = "Failed to load the image for processing."
    COMPOSITE_FAILED_MESSAGE = "Could not get a drawing surface."
    UNEXPECTED_FAILURE_MESSAGE = "Something went wrong while applying the watermark."

    def __init__(
        self,
        text: str = DEFAULT_TEXT,
        style: WatermarkStyle = DEFAULT_STYLE,
    ) -> None:
        self.text = text
        self.compositor = WatermarkCompositor(style=style)
        self.original: Optional[SourceImage] = None
        self.processed: Optional[CompositedImage] = None
        self.status = Status.IDLE
        self.error: Optional[str] = None
        self._generation = 0
        self.logger = logging.getLogger(__name__)

    @property
    def is_busy(self) -> bool:
        return self.status is Status.LOADING

    def load(self, data: bytes, mime_type: str) -> bool:
        """
        Accept a new source image.

        Only ``image/*`` types are accepted. The bytes themselves are not
        decoded until ``apply()``.

        Returns:
            bool: True if the image was accepted, False if it was rejected
                (``status`` is then ERROR with ``INVALID_FILE_MESSAGE``).
        """
        self._generation += 1
        if not is_image_type(mime_type):
            self._fail(self.INVALID_FILE_MESSAGE, f"Rejected upload with type {mime_type!r}")
            return False

        self.original = SourceImage(data=data, mime_type=mime_type)
        self.processed = None
        self.status = Status.IDLE
        self.error = None
        self.logger.debug(f"Loaded {mime_type} image ({len(data)} bytes)")
        return True

    async def apply(self) -> Optional[CompositedImage]:
        """
        Watermark the current image with ``text``.

        Returns:
            CompositedImage | None: The result, or None when there is no
                image, processing failed, or the request was superseded.
        """
        if self.original is None:
            self._fail(self.NO_IMAGE_MESSAGE, "Apply requested without an image")
            return None

        self._generation += 1
        generation = self._generation
        self.status = Status.LOADING
        self.error = None

        try:
            result = await apply_watermark(
                self.original, self.text, compositor=self.compositor
            )
        except DecodeError as e:
            if self._is_current(generation):
                self._fail(self.DECODE_FAILED_MESSAGE, f"Decode failed: {e}")
            return None
        except CompositeError as e:
            if self._is_current(generation):
                self._fail(self.COMPOSITE_FAILED_MESSAGE, f"Compositing failed: {e}")
            return None
        except BaseException as e:
            # Includes cancellation; the request must still end in ERROR.
            if self._is_current(generation):
                self._fail(
                    self.UNEXPECTED_FAILURE_MESSAGE,
                    f"Watermarking interrupted: {type(e).__name__}: {e}",
                )
            raise

        if not self._is_current(generation):
            self.logger.debug("Discarding result of a superseded request")
            return None

        self.processed = result
        self.status = Status.SUCCESS
        self.logger.info(f"Watermark applied ({result.width}x{result.height})")
        return result

    def clear(self) -> None:
        """Drop the current image and result and return to IDLE."""
        self._generation += 1
        self.original = None
        self.processed = None
        self.status = Status.IDLE
        self.error = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _fail(self, message: str, detail: str) -> None:
        self.status = Status.ERROR
        self.error = message
        self.logger.warning(detail)
