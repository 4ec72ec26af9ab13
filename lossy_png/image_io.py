"""Image loading, colour-mode normalisation, optimisation and PNG saving."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import numpy as np
from PIL import Image

from lossy_png.config import LossyConfig
from lossy_png.optimize import optimize_average_filter, optimize_paeth_filter
from lossy_png.report import psnr

logger = logging.getLogger(__name__)

BYTES_PER_PIXEL = {"L": 1, "RGBA": 4}
_SIXTEEN_BIT_MODES = {"I", "I;16", "I;16B", "I;16L", "I;16N"}


class ColorConversion(str, Enum):
    """Target colour profile for the optimised image."""

    NONE = "none"
    GRAYSCALE = "grayscale"
    RGBA = "rgba"


def load_image(path: str | Path) -> Image.Image:
    """Open and fully decode an image file."""
    with Image.open(path) as img:
        img.load()
        return img.copy()


def _reduce_to_8bit_gray(image: Image.Image) -> Image.Image:
    """Keep the high byte of 16-bit (or 32-bit integer) gray samples."""
    arr = np.clip(np.array(image, dtype=np.int64), 0, 65535) >> 8
    return Image.fromarray(arr.astype(np.uint8))


def normalize(
    image: Image.Image,
    conversion: ColorConversion | str = ColorConversion.NONE,
) -> Image.Image:
    """Return a copy of *image* in one of the modes the engine handles.

    ``GRAYSCALE`` and ``RGBA`` force ``L`` and ``RGBA``. With ``NONE`` the
    image keeps ``L``, ``RGBA`` or ``P``; 16-bit gray drops to 8-bit ``L``;
    every other mode becomes ``RGBA``.
    """
    conversion = ColorConversion(conversion)
    if conversion is ColorConversion.GRAYSCALE:
        if image.mode in _SIXTEEN_BIT_MODES:
            return _reduce_to_8bit_gray(image)
        return image.convert("L")
    if conversion is ColorConversion.RGBA:
        if image.mode in _SIXTEEN_BIT_MODES:
            return _reduce_to_8bit_gray(image).convert("RGBA")
        return image.convert("RGBA")

    if image.mode in ("L", "RGBA", "P"):
        return image.copy()
    if image.mode in _SIXTEEN_BIT_MODES:
        return _reduce_to_8bit_gray(image)
    # RGB, LA, PA, CMYK, YCbCr, 1, F, ...
    return image.convert("RGBA")


def palette_rgba(image: Image.Image) -> list[tuple[int, int, int, int]]:
    """Straight-alpha RGBA entries of a ``P`` image's palette.

    An ``RGBA`` palette (e.g. from ``quantize`` of an RGBA image) carries
    its own alpha. For an ``RGB`` palette, alpha comes from the
    ``transparency`` info: a byte string of per-index alphas (PNG tRNS) or
    a single fully transparent index (GIF).
    """
    if image.palette is not None and image.palette.mode == "RGBA":
        flat = image.getpalette(rawmode="RGBA") or []
        return [tuple(flat[i : i + 4]) for i in range(0, len(flat) - 3, 4)]

    flat = image.getpalette() or []
    rgb = [tuple(flat[i : i + 3]) for i in range(0, len(flat) - 2, 3)]
    alphas = [255] * len(rgb)

    transparency = image.info.get("transparency")
    if isinstance(transparency, (bytes, bytearray)):
        for i, a in enumerate(transparency[: len(alphas)]):
            alphas[i] = a
    elif isinstance(transparency, int) and 0 <= transparency < len(alphas):
        alphas[transparency] = 0

    return [(r, g, b, a) for (r, g, b), a in zip(rgb, alphas, strict=True)]


def optimize_image(image: Image.Image, quantization: int) -> Image.Image:
    """Run the matching optimizer over a copy of an ``L``, ``RGBA`` or ``P`` image."""
    out = image.copy()
    w, h = out.size
    pixels = bytearray(out.tobytes())

    if out.mode == "P":
        optimize_paeth_filter(pixels, w, h, w, quantization, palette_rgba(out))
    elif out.mode in BYTES_PER_PIXEL:
        bpp = BYTES_PER_PIXEL[out.mode]
        optimize_average_filter(pixels, w, h, w * bpp, bpp, quantization)
    else:
        msg = f"Mode {out.mode!r} is not normalised; call normalize() first"
        raise ValueError(msg)

    out.frombytes(bytes(pixels))
    return out


def compress(
    image: Image.Image,
    conversion: ColorConversion | str = ColorConversion.NONE,
    quantization: int = 20,
) -> Image.Image:
    """Normalise *image*, then quantize it for a smaller PNG encoding."""
    return optimize_image(normalize(image, conversion), quantization)


def save_png(image: Image.Image, path: str | Path, compress_level: int = 9) -> None:
    """Encode *image* as PNG (palette and transparency are kept)."""
    image.save(path, format="PNG", compress_level=compress_level)


def path_with_suffix(path: str | Path, suffix: str) -> Path:
    """Replace the file extension (if any) with *suffix*.

    ``photo.jpg`` + ``-lossy.png`` -> ``photo-lossy.png``.
    """
    path = Path(path)
    return path.with_name(path.stem + suffix) if path.suffix else path.with_name(path.name + suffix)


@dataclass(frozen=True)
class CompressionResult:
    """Outcome of optimising one file."""

    input_path: Path
    output_path: Path
    input_size: int
    output_size: int
    psnr: float
    elapsed: float


def optimize_path(
    in_path: str | Path,
    config: LossyConfig,
    output_dir: Path | None = None,
) -> CompressionResult:
    """Load, optimise and save a single file.

    The output lands beside the input (or in *output_dir*) with the
    configured extension. Runs in worker processes, so it only touches
    its own files.
    """
    t0 = time.perf_counter()
    in_path = Path(in_path)
    out_path = path_with_suffix(in_path, config.extension)
    if output_dir is not None:
        out_path = output_dir / out_path.name

    image = load_image(in_path)
    reference = normalize(image, config.conversion)
    optimized = optimize_image(reference, config.quantization)
    save_png(optimized, out_path, config.compress_level)
    logger.debug("Saved %s (%s, %dx%d)", out_path, optimized.mode, *optimized.size)

    return CompressionResult(
        input_path=in_path,
        output_path=out_path,
        input_size=in_path.stat().st_size,
        output_size=out_path.stat().st_size,
        psnr=psnr(reference, optimized),
        elapsed=time.perf_counter() - t0,
    )
