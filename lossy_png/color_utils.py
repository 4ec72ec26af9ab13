"""Perceptual colour distance and small integer helpers.

Colours are 16-bit premultiplied RGBA held in ``int64`` arrays so that
every weighted difference and sum of squares stays exact.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

ColorDelta = NDArray[np.int64]

FULL = 65535  # 16-bit full scale


def trunc_div(numerator: np.ndarray | int, denominator: np.ndarray | int) -> np.ndarray:
    """Integer division rounding toward zero (numpy's ``//`` floors)."""
    n = np.asarray(numerator, dtype=np.int64)
    d = np.asarray(denominator, dtype=np.int64)
    q = np.abs(n) // np.abs(d)
    return np.where((n < 0) != (d < 0), -q, q)


def expand_palette(palette: Sequence[Sequence[int]]) -> NDArray[np.int64]:
    """Expand 8-bit straight-alpha colours to 16-bit premultiplied RGBA.

    Entries may be ``(r, g, b)`` (opaque) or ``(r, g, b, a)``.

    Returns:
        (N, 4) int64.
    """
    out = np.empty((len(palette), 4), dtype=np.int64)
    for i, entry in enumerate(palette):
        r, g, b = (int(v) for v in entry[:3])
        a = int(entry[3]) if len(entry) > 3 else 255
        out[i, :3] = [v * 0x101 * a // 0xFF for v in (r, g, b)]
        out[i, 3] = a * 0x101
    return out


def _unpremultiply(colors: np.ndarray) -> np.ndarray:
    alpha = colors[..., 3:4]
    rgb = colors[..., :3]
    return np.where(alpha > 0, rgb * FULL // np.maximum(alpha, 1), rgb)


def color_difference(a: np.ndarray, b: np.ndarray) -> ColorDelta:
    """Weighted perceptual delta between colours ``a`` and ``b``.

    Uses the low-cost "redmean" metric: red and blue are weighted by the
    mean red level, green by 4/3, alpha passes through. Inputs broadcast,
    so ``a`` may be a single colour and ``b`` a whole palette.

    Args:
        a: (..., 4) int64 16-bit premultiplied RGBA.
        b: (..., 4) int64 16-bit premultiplied RGBA.

    Returns:
        (..., 4) int64 delta.
    """
    a = np.asarray(a, dtype=np.int64)
    b = np.asarray(b, dtype=np.int64)
    ua = _unpremultiply(a)
    ub = _unpremultiply(b)
    diff = ua - ub
    red_mean = (ua[..., 0] + ub[..., 0]) // 2

    delta = np.empty(np.broadcast_shapes(a.shape, b.shape), dtype=np.int64)
    delta[..., 0] = trunc_div((2 * FULL + red_mean) * diff[..., 0], 3 * FULL)
    delta[..., 1] = trunc_div(4 * diff[..., 1], 3)
    delta[..., 2] = trunc_div((3 * FULL - red_mean) * diff[..., 2], 3 * FULL)
    delta[..., 3] = a[..., 3] - b[..., 3]
    return delta


def magnitude(delta: np.ndarray) -> np.ndarray:
    """Sum of squares over the last axis, for ordering only."""
    d = np.asarray(delta, dtype=np.int64)
    return np.sum(d * d, axis=-1)


def paeth_predictor(a: int, b: int, c: int) -> int:
    """PNG Paeth predictor. a = left, b = above, c = upper left."""
    p = a + b - c
    pa = abs(p - a)
    pb = abs(p - b)
    pc = abs(p - c)
    # ties resolve in the order a, b, c
    if pa <= pb and pa <= pc:
        return a
    if pb <= pc:
        return b
    return c
