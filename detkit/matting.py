"""Robust video matting with recurrent state carried from frame to frame."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from detkit.imaging import to_chw

Model = Callable[[list], Sequence[np.ndarray]]

INPUT_NAMES = ("src", "r1i", "r2i", "r3i", "r4i", "downsample_ratio")
OUTPUT_NAMES = ("fgr", "pha", "r1o", "r2o", "r3o", "r4o")

# Background colour (B, G, R) the foreground is merged onto.
BACKGROUND = (153.0, 255.0, 120.0)

DEFAULT_DOWNSAMPLE_RATIO = 0.25


def value_size_of(dims: Sequence[int]) -> int:
    """Number of elements of a tensor shape; 0 for an empty shape."""
    dims = list(dims)
    if not dims:
        return 0
    return math.prod(int(d) for d in dims)


@dataclass
class MattingContent:
    """Foreground (BGR uint8), alpha (float 0..1), merged image and whether they are set."""

    fgr_mat: Optional[np.ndarray] = None
    pha_mat: Optional[np.ndarray] = None
    merge_mat: Optional[np.ndarray] = None
    flag: bool = False


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def generate_matting(fgr, pha) -> MattingContent:
    """Foreground, alpha and merged images from fgr (1, 3, H, W) and pha (1, 1, H, W)."""
    fgr = np.asarray(fgr, dtype=np.float32)
    pha = np.asarray(pha, dtype=np.float32)
    if fgr.ndim == 4:
        fgr = fgr[0]
    if fgr.ndim != 3 or fgr.shape[0] != 3:
        raise ValueError("fgr must have shape (1, 3, H, W)")
    height, width = fgr.shape[1:]
    if pha.size != height * width:
        raise ValueError("pha must match the height and width of fgr")
    alpha = pha.reshape(height, width)

    r, g, b = fgr * np.float32(255.0)
    rest = 1.0 - alpha
    merged = np.stack(
        [
            b * alpha + rest * BACKGROUND[0],
            g * alpha + rest * BACKGROUND[1],
            r * alpha + rest * BACKGROUND[2],
        ],
        axis=-1,
    )
    foreground = np.stack([b, g, r], axis=-1)
    return MattingContent(_to_uint8(foreground), alpha, _to_uint8(merged), True)


class RobustVideoMatting:
    """Runs a matting model given as a callable on a list of input arrays.

    The model takes inputs in the order of :data:`INPUT_NAMES` — the frame as
    (1, 3, H, W) RGB in [0, 1], four recurrent states and the downsample
    ratio as (1,) — and returns outputs in the order of :data:`OUTPUT_NAMES`.
    The recurrent outputs feed the next call.
    """

    def __init__(self, model: Model):
        self.model = model
        self.downsample_ratio = DEFAULT_DOWNSAMPLE_RATIO
        self.reset()

    def reset(self) -> None:
        """Forget the recurrent state, as at the start of a new video."""
        self._context = [np.zeros((1, 1, 1, 1), dtype=np.float32) for _ in range(4)]
        self.context_is_update = False

    @property
    def context(self) -> tuple[np.ndarray, ...]:
        """The four recurrent state tensors fed to the next call."""
        return tuple(self._context)

    def transform(self, image: np.ndarray) -> list[np.ndarray]:
        """Model inputs for a BGR image with the current state and ratio."""
        src = to_chw(np.asarray(image), swap_rb=True, scale=1 / 255.0)[None, ...]
        ratio = np.array([self.downsample_ratio], dtype=np.float32)
        return [src, *self._context, ratio]

    def _update_context(self, outputs: Sequence[np.ndarray]) -> None:
        self._context = [np.array(o, dtype=np.float32, copy=True) for o in outputs]
        self.context_is_update = True

    def detect(
        self, image: np.ndarray, downsample_ratio: float = DEFAULT_DOWNSAMPLE_RATIO
    ) -> MattingContent:
        """Matte one BGR frame and carry the recurrent state forward.

        An empty image gives an unset :class:`MattingContent` and leaves the
        state untouched.
        """
        arr = np.asarray(image)
        if arr.size == 0:
            return MattingContent()
        self.downsample_ratio = float(downsample_ratio)
        outputs = self.model(self.transform(arr))
        if len(outputs) < len(OUTPUT_NAMES):
            raise ValueError(f"the model must return {len(OUTPUT_NAMES)} outputs")
        content = generate_matting(outputs[0], outputs[1])
        self.context_is_update = False
        self._update_context(outputs[2:6])
        return content