"""
Lossy PNG
=========

Make PNG files smaller by rewriting pixels so the PNG row filters produce
more compressible residuals, with error diffusion keeping the visual loss
controlled. Ships two engines:

- **Average filter** for grayscale / RGBA buffers
- **Paeth filter** for palette-indexed buffers
"""

__version__ = "1.0.0"

from lossy_png.color_utils import color_difference, expand_palette, magnitude, paeth_predictor
from lossy_png.config import LossyConfig
from lossy_png.errors import DataCorruptionError, InvalidArgumentError, LossyPngError
from lossy_png.image_io import (
    ColorConversion,
    compress,
    load_image,
    normalize,
    optimize_image,
    optimize_path,
    save_png,
)
from lossy_png.optimize import optimize_average_filter, optimize_paeth_filter

__all__ = [
    "ColorConversion",
    "DataCorruptionError",
    "InvalidArgumentError",
    "LossyConfig",
    "LossyPngError",
    "color_difference",
    "compress",
    "expand_palette",
    "load_image",
    "magnitude",
    "normalize",
    "optimize_average_filter",
    "optimize_image",
    "optimize_paeth_filter",
    "optimize_path",
    "paeth_predictor",
    "save_png",
]
