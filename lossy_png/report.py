"""Human-readable size and quality figures for the CLI report."""

from __future__ import annotations

import numpy as np
from PIL import Image
from skimage.metrics import peak_signal_noise_ratio

_SIZE_SUFFIXES = ("B", "kB", "MB", "GB", "TB")


def size_desc(size: int) -> str:
    """Compact decimal size: ``9999 -> "9999B"``, ``12345 -> "12kB"``."""
    i = 0
    while i + 1 < len(_SIZE_SUFFIXES) and size >= 10_000:
        size = (size + 500) // 1000
        i += 1
    return f"{size}{_SIZE_SUFFIXES[i]}"


def compression_percentage(input_size: int, output_size: int) -> str:
    """Output size as a rounded percentage of the input size."""
    if input_size <= 0:
        return "???%"
    return f"{(output_size * 100 + input_size // 2) // input_size}%"


def psnr(reference: Image.Image, optimized: Image.Image) -> float:
    """Peak signal-to-noise ratio in dB between two renderings (inf if identical)."""
    a = np.asarray(reference.convert("RGBA"), dtype=np.uint8)
    b = np.asarray(optimized.convert("RGBA"), dtype=np.uint8)
    if np.array_equal(a, b):
        return float("inf")
    return float(peak_signal_noise_ratio(a, b, data_range=255))
