"""Filter-aware quantization of raw pixel buffers.

Both optimizers rewrite a caller-owned buffer in place, in strict raster
order, so that the residual PNG's average or Paeth filter would compute
becomes cheaper to DEFLATE. Row 0 and column 0 have no full neighbourhood
to predict from and are never modified.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

import numpy as np

from lossy_png.color_utils import color_difference, expand_palette, magnitude, paeth_predictor
from lossy_png.diffusion import FLOYD_STEINBERG, SIERRA, ErrorRing
from lossy_png.errors import DataCorruptionError, InvalidArgumentError

logger = logging.getLogger(__name__)

MAX_BYTES_PER_PIXEL = 4
MAX_PALETTE_SIZE = 256  # indices are single bytes


def _check_quantization(quantization: int) -> None:
    if quantization < 0:
        msg = f"quantization must be >= 0, got {quantization}"
        raise InvalidArgumentError(msg)


def _pixel_view(
    buffer: bytearray | memoryview | np.ndarray,
    width: int,
    height: int,
    stride: int,
    bytes_per_pixel: int,
) -> np.ndarray:
    """Writable (H, W, bpp) uint8 view over the caller's buffer, no copy."""
    if width < 0 or height < 0:
        msg = f"bounds must be non-negative, got {width}x{height}"
        raise InvalidArgumentError(msg)
    if stride < width * bytes_per_pixel:
        msg = f"stride {stride} is shorter than a row of {width}x{bytes_per_pixel} bytes"
        raise InvalidArgumentError(msg)
    if stride * height == 0:
        return np.zeros((height, width, bytes_per_pixel), dtype=np.uint8)

    flat = np.frombuffer(buffer, dtype=np.uint8)
    if flat.size < stride * height:
        msg = f"buffer holds {flat.size} bytes, need {stride * height}"
        raise InvalidArgumentError(msg)
    if not flat.flags.writeable:
        msg = "buffer is read-only"
        raise InvalidArgumentError(msg)

    rows = flat[: stride * height].reshape(height, stride)
    return rows[:, : width * bytes_per_pixel].reshape(height, width, bytes_per_pixel)


def optimize_average_filter(
    buffer: bytearray | memoryview | np.ndarray,
    width: int,
    height: int,
    stride: int,
    bytes_per_pixel: int,
    quantization: int,
) -> None:
    """Quantize residuals of the PNG average filter, in place.

    Each channel byte is replaced by ``average + k * quantization`` (the
    nearest such value once diffused error is folded in), where
    ``average`` is the mean of the already-committed bytes above and to
    the left. Rounding error spreads through a Sierra kernel. A value that
    would leave ``[0, 255]`` is kept as is and diffuses nothing.

    Args:
        buffer:         Writable row-major bytes, at least ``stride * height``.
        width:          Pixels per row.
        height:         Rows.
        stride:         Bytes between row starts.
        bytes_per_pixel: Channels per pixel, 0..4 (1 = gray/alpha, 4 = RGBA).
        quantization:   Step size; 0 leaves the buffer untouched.

    Raises:
        InvalidArgumentError: negative quantization, bad geometry or buffer.
    """
    _check_quantization(quantization)
    if not 0 <= bytes_per_pixel <= MAX_BYTES_PER_PIXEL:
        msg = f"bytes_per_pixel must be in 0..{MAX_BYTES_PER_PIXEL}, got {bytes_per_pixel}"
        raise InvalidArgumentError(msg)
    if quantization == 0:
        # zero means lossless
        return

    pixels = _pixel_view(buffer, width, height, stride, bytes_per_pixel)
    if width <= 1 or height <= 1 or bytes_per_pixel == 0:
        return

    t0 = time.perf_counter()
    half_step = quantization // 2
    ring = ErrorRing(SIERRA, width, bytes_per_pixel)
    changed = 0

    # row 0 records nothing but zeros, so start the ring one row in
    ring.rotate()
    for y in range(1, height):
        above_row = pixels[y - 1]
        row = pixels[y]
        for x in range(1, width):
            diffusion = ring.diffuse(x)
            error = [0] * bytes_per_pixel
            for c in range(bytes_per_pixel):
                here = int(row[x, c])
                average = (int(above_row[x, c]) + int(row[x - 1, c])) // 2  # PNG average filter

                t = int(diffusion[c]) + here - average + half_step
                t -= int(np.fmod(t, quantization))
                new_value = t + average
                if 0 <= new_value <= 255:
                    if new_value != here:
                        row[x, c] = new_value
                        changed += 1
                    error[c] = here - new_value
            ring.record(x, error)
        ring.rotate()

    logger.debug(
        "Average filter: %dx%d x%d, q=%d, %d bytes changed (%.2f s)",
        width, height, bytes_per_pixel, quantization, changed,
        time.perf_counter() - t0,
    )


def optimize_paeth_filter(
    buffer: bytearray | memoryview | np.ndarray,
    width: int,
    height: int,
    stride: int,
    quantization: int,
    palette: Sequence[Sequence[int]],
) -> None:
    """Steer palette indices toward the PNG Paeth prediction, in place.

    For every interior pixel the Paeth-predicted index is kept when its
    colour, plus the diffused error, lies within ``quantization`` of the
    original colour. Otherwise the whole palette is scanned for the entry
    with the smallest perceptual distance (lowest index on ties). The
    chosen entry's delta feeds a Floyd-Steinberg kernel.

    Args:
        buffer:       Writable row-major palette indices, one byte each.
        width:        Pixels per row.
        height:       Rows.
        stride:       Bytes between row starts.
        quantization: Distance threshold; 0 leaves the buffer untouched.
        palette:      8-bit ``(r, g, b[, a])`` entries, straight alpha.

    Raises:
        InvalidArgumentError: negative quantization, bad geometry or buffer.
        DataCorruptionError:  an index is not a valid palette position.
    """
    _check_quantization(quantization)
    color_count = len(palette)
    if color_count > MAX_PALETTE_SIZE:
        msg = f"palette holds {color_count} colours, at most {MAX_PALETTE_SIZE} fit in a byte"
        raise InvalidArgumentError(msg)
    if quantization == 0 or color_count == 0:
        return

    pixels = _pixel_view(buffer, width, height, stride, 1)[:, :, 0]
    if width <= 1 or height <= 1:
        return

    bad = np.flatnonzero(pixels.astype(np.int64) >= color_count)
    if bad.size:
        y, x = divmod(int(bad[0]), width)
        msg = (
            f"Palette index {int(pixels[y, x])} at ({x}, {y}) is out of range "
            f"for a palette of {color_count} colours"
        )
        raise DataCorruptionError(msg)

    t0 = time.perf_counter()
    colors = expand_palette(palette)
    threshold = quantization * quantization
    ring = ErrorRing(FLOYD_STEINBERG, width, 4)
    searched = 0
    changed = 0

    ring.rotate()
    for y in range(1, height):
        above_row = pixels[y - 1]
        row = pixels[y]
        for x in range(1, width):
            diffusion = ring.diffuse(x)
            here = int(row[x])
            paeth = paeth_predictor(int(row[x - 1]), int(above_row[x]), int(above_row[x - 1]))

            best_delta = color_difference(colors[here], colors[paeth])
            if (int(magnitude(best_delta + diffusion)) >> 16) < threshold:
                best = paeth
            else:
                deltas = color_difference(colors[here], colors)
                best = int(np.argmin(magnitude(deltas + diffusion)))
                best_delta = deltas[best]
                searched += 1

            if best != here:
                row[x] = best
                changed += 1
            ring.record(x, best_delta)
        ring.rotate()

    logger.debug(
        "Paeth filter: %dx%d, %d colours, q=%d, %d searched, %d changed (%.2f s)",
        width, height, color_count, quantization, searched, changed,
        time.perf_counter() - t0,
    )
