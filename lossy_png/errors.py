"""Exception hierarchy for the quantization engine."""

from __future__ import annotations


class LossyPngError(Exception):
    """Base class for everything the engine raises on bad input."""


class InvalidArgumentError(LossyPngError, ValueError):
    """A parameter is outside its documented range (e.g. negative quantization)."""


class DataCorruptionError(LossyPngError, ValueError):
    """The buffer and palette disagree: an index points past the palette."""
