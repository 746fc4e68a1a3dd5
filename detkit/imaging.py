"""Image resizing, letterboxing and conversion to network input tensors."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from PIL import Image


class Interpolation(enum.Enum):
    NEAREST = "nearest"
    LINEAR = "linear"
    AREA = "area"


_RESAMPLE = {
    Interpolation.NEAREST: Image.Resampling.NEAREST,
    Interpolation.LINEAR: Image.Resampling.BILINEAR,
    Interpolation.AREA: Image.Resampling.BOX,
}


def resize(
    image: np.ndarray,
    width: int,
    height: int,
    interpolation: Interpolation = Interpolation.LINEAR,
) -> np.ndarray:
    """Resize an H×W or H×W×C array to ``height`` × ``width``."""
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid target size {width}x{height}")
    arr = np.asarray(image)
    if arr.ndim not in (2, 3):
        raise ValueError("image must be two- or three-dimensional")
    if arr.dtype != np.uint8:
        arr = arr.astype(np.float32)
    planes = arr[..., None] if arr.ndim == 2 else arr
    resample = _RESAMPLE[interpolation]
    resized = [
        np.asarray(Image.fromarray(np.ascontiguousarray(plane)).resize((width, height), resample))
        for plane in np.moveaxis(planes, 2, 0)
    ]
    out = np.stack(resized, axis=-1)
    return out[..., 0] if arr.ndim == 2 else out


@dataclass
class Letterbox:
    """A letterboxed image with the size of its content and its padding."""

    image: np.ndarray
    new_height: int
    new_width: int
    pad_top: int = 0
    pad_left: int = 0


def letterbox(
    image: np.ndarray,
    height: int,
    width: int,
    keep_ratio: bool = True,
    interpolation: Interpolation = Interpolation.AREA,
) -> Letterbox:
    """Fit an image into ``height`` × ``width``, padding with zeros to keep its ratio."""
    arr = np.asarray(image)
    src_h, src_w = arr.shape[:2]
    if not keep_ratio or src_h == src_w:
        return Letterbox(resize(arr, width, height, interpolation), height, width)

    hw_scale = src_h / src_w
    extra = [(0, 0)] * (arr.ndim - 2)
    if hw_scale > 1:
        new_w = int(width / hw_scale)
        left = int((width - new_w) * 0.5)
        scaled = resize(arr, new_w, height, interpolation)
        padded = np.pad(scaled, [(0, 0), (left, width - new_w - left)] + extra)
        return Letterbox(padded, height, new_w, 0, left)

    new_h = int(height * hw_scale)
    top = int((height - new_h) * 0.5)
    scaled = resize(arr, width, new_h, interpolation)
    padded = np.pad(scaled, [(top, height - new_h - top), (0, 0)] + extra)
    return Letterbox(padded, new_h, width, top, 0)


def to_chw(
    image: np.ndarray,
    swap_rb: bool = False,
    scale: float = 1.0,
    mean: Optional[Sequence[float]] = None,
    std: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """Planar float32 (3, H, W) array: ``(pixel * scale - mean) / std`` per channel."""
    arr = np.asarray(image, dtype=np.float32)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError("image must have shape (H, W, 3)")
    if swap_rb:
        arr = arr[..., ::-1]
    arr = arr * np.float32(scale)
    if mean is not None:
        arr = arr - np.asarray(mean, dtype=np.float32)
    if std is not None:
        arr = arr / np.asarray(std, dtype=np.float32)
    return np.ascontiguousarray(arr.transpose(2, 0, 1), dtype=np.float32)


def blob_from_image(
    image: np.ndarray,
    scale: float = 1.0,
    size: Optional[tuple[int, int]] = None,
    swap_rb: bool = False,
) -> np.ndarray:
    """A (1, 3, H, W) float32 batch, resized to ``size`` (width, height) if given."""
    arr = np.asarray(image)
    if size is not None:
        width, height = size
        if arr.shape[1] != width or arr.shape[0] != height:
            arr = resize(arr, width, height, Interpolation.LINEAR)
    return to_chw(arr, swap_rb=swap_rb, scale=scale)[None, ...]