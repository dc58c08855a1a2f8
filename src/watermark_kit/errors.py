from __future__ import annotations


class WatermarkError(Exception):
    """Base class for every failure raised by the watermark pipeline."""


class DecodeError(WatermarkError):
    """
    Raised when input bytes cannot be turned into a pixel surface.

    Covers undeclared or non-image MIME types, empty buffers, unknown or
    unsupported encodings, truncated data, and images too large to decode
    safely. The caller should ask for a different file; nothing is retried.
    """


class CompositeError(WatermarkError):
    """
    Raised when a decoded surface cannot be watermarked or encoded.

    Covers canvas allocation, drawing, and PNG encoding failures. No partial
    output is ever returned alongside this error.
    """
