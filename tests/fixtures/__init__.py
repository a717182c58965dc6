"""Test fixtures for the social network backend."""

from tests.fixtures.images import png_bytes, jpeg_bytes

__all__ = [
    "png_bytes",
    "jpeg_bytes",
]
