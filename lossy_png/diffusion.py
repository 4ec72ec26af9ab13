"""Error-diffusion kernels and the row ring they read from.

Diffusion is expressed in *gather* form: instead of pushing a pixel's
error forward into neighbours, each pixel pulls a weighted sum of the
errors already recorded above it and to its left.

A tap is ``(rows_back, dx, weight)``: ``rows_back`` 0 is the current row,
1 the row above, and so on.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from lossy_png.color_utils import ColorDelta, trunc_div

Tap = tuple[int, int, int]

# Sierra (three-row) dithering, weights total 32.
SIERRA_TAPS: tuple[Tap, ...] = (
    (2, -1, 2), (2, 0, 3), (2, 1, 2),
    (1, -2, 2), (1, -1, 4), (1, 0, 5), (1, 1, 4), (1, 2, 2),
    (0, -2, 3), (0, -1, 5),
)

# Floyd-Steinberg, gathered: left 7, above-left 1, above 5, above-right 3.
FLOYD_STEINBERG_TAPS: tuple[Tap, ...] = (
    (0, -1, 7),
    (1, -1, 1), (1, 0, 5), (1, 1, 3),
)


@dataclass(frozen=True)
class DiffusionKernel:
    """Immutable tap plan with its derived geometry."""

    taps: tuple[Tap, ...]
    rows: int = field(init=False)
    reach: int = field(init=False)
    weight_total: int = field(init=False)
    half: int = field(init=False)

    def __post_init__(self) -> None:
        if not self.taps:
            msg = "A diffusion kernel needs at least one tap"
            raise ValueError(msg)
        for back, dx, _ in self.taps:
            if back < 0 or (back == 0 and dx >= 0):
                msg = f"Tap ({back}, {dx}) reads a pixel that is not finalised yet"
                raise ValueError(msg)
        total = sum(w for _, _, w in self.taps)
        object.__setattr__(self, "rows", max(b for b, _, _ in self.taps) + 1)
        object.__setattr__(self, "reach", max(abs(dx) for _, dx, _ in self.taps))
        object.__setattr__(self, "weight_total", total)
        object.__setattr__(self, "half", total // 2)

    @property
    def width(self) -> int:
        """Columns spanned by the kernel."""
        return 2 * self.reach + 1

    def weight_matrix(self) -> np.ndarray:
        """(rows, width) int64 weights indexed by [rows_back, dx + reach]."""
        m = np.zeros((self.rows, self.width), dtype=np.int64)
        for back, dx, w in self.taps:
            m[back, dx + self.reach] = w
        return m


SIERRA = DiffusionKernel(SIERRA_TAPS)
FLOYD_STEINBERG = DiffusionKernel(FLOYD_STEINBERG_TAPS)


class ErrorRing:
    """Ring of per-row error slots for one optimizer call.

    Each slot holds ``width + kernel.width - 1`` cells so that taps reaching
    past either image edge land in zero padding. Rows are never copied:
    ``rotate`` moves the head, so the slot that was "current" becomes
    "above" and the oldest slot is wiped and reused.
    """

    def __init__(self, kernel: DiffusionKernel, width: int, channels: int) -> None:
        self.kernel = kernel
        self.channels = channels
        self._slots = np.zeros(
            (kernel.rows, width + kernel.width - 1, channels), dtype=np.int64,
        )
        self._weights = kernel.weight_matrix()
        self._head = 0
        self._physical_weights = self._weights

    def _slot(self, rows_back: int) -> int:
        return (self._head + rows_back) % self.kernel.rows

    def diffuse(self, x: int) -> ColorDelta:
        """Rounded, normalised error forecast for column ``x`` of the current row."""
        window = self._slots[:, x : x + self.kernel.width, :]
        total = np.tensordot(self._physical_weights, window, axes=([0, 1], [0, 1]))
        total = np.where(total < 0, total - self.kernel.half, total + self.kernel.half)
        return trunc_div(total, self.kernel.weight_total)

    def record(self, x: int, delta: np.ndarray | int) -> None:
        """Store the error of column ``x`` in the current row."""
        self._slots[self._head, x + self.kernel.reach] = delta

    def row(self, rows_back: int = 0) -> np.ndarray:
        """View of a logical row's cells, padding excluded."""
        reach = self.kernel.reach
        cells = self._slots[self._slot(rows_back)]
        return cells[reach : cells.shape[0] - reach]

    def rotate(self) -> None:
        """Finish the current row and start a fresh one."""
        self._head = (self._head - 1) % self.kernel.rows
        self._slots[self._head] = 0
        # physical slot i carries logical row (i - head) mod rows
        self._physical_weights = np.roll(self._weights, self._head, axis=0)
