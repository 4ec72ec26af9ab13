"""Centralised configuration via a frozen dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class LossyConfig:
    """All tuneable parameters for a compression run.

    Attributes:
        quantization:   Quantization strength, zero is lossless.
        conversion:     "none", "grayscale" or "rgba" (see image_io.ColorConversion).
        extension:      Suffix replacing the input extension on output files.
        compress_level: zlib level handed to the PNG encoder (0-9).
        workers:        Parallel worker processes (None = one per CPU, capped
                        at the number of files).
        input_dir:      Folder scanned by the ``batch`` command.
        output_dir:     Folder for ``batch`` results.
    """

    # Engine
    quantization: int = 20
    conversion: str = "none"  # "none" | "grayscale" | "rgba"

    # Output
    extension: str = "-lossy.png"
    compress_level: int = 9

    # Dispatch
    workers: int | None = None

    # Paths
    input_dir: Path = field(default_factory=lambda: Path("images"))
    output_dir: Path = field(default_factory=lambda: Path("output"))

    SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
        {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tiff", ".tif", ".webp"}
    )
