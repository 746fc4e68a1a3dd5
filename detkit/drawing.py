"""Drawing of boxes, points, labels and masks onto H×W×3 uint8 images."""

from __future__ import annotations

from typing import Sequence

import numpy as np
from PIL import Image, ImageDraw, ImageFont

# Approximate pixel height of a label at font scale 1.
_BASE_TEXT_HEIGHT = 22


def _fill(image: np.ndarray, x0: int, y0: int, x1: int, y1: int, color) -> None:
    h, w = image.shape[:2]
    x0, y0 = max(x0, 0), max(y0, 0)
    x1, y1 = min(x1, w - 1), min(y1, h - 1)
    if x0 <= x1 and y0 <= y1:
        image[y0 : y1 + 1, x0 : x1 + 1] = color


def draw_rectangle(
    image: np.ndarray,
    top_left: Sequence[int],
    bottom_right: Sequence[int],
    color: Sequence[int],
    thickness: int = 1,
) -> np.ndarray:
    """Draw a rectangle outline in place; a negative thickness fills it."""
    xa, ya = (int(v) for v in top_left)
    xb, yb = (int(v) for v in bottom_right)
    x0, x1 = sorted((xa, xb))
    y0, y1 = sorted((ya, yb))
    if thickness < 0:
        _fill(image, x0, y0, x1, y1, color)
        return image
    thickness = max(thickness, 1)
    lo = thickness // 2
    hi = thickness - 1 - lo
    _fill(image, x0 - lo, y0 - lo, x1 + hi, y0 + hi, color)
    _fill(image, x0 - lo, y1 - lo, x1 + hi, y1 + hi, color)
    _fill(image, x0 - lo, y0 - lo, x0 + hi, y1 + hi, color)
    _fill(image, x1 - lo, y0 - lo, x1 + hi, y1 + hi, color)
    return image


def draw_circle(
    image: np.ndarray, center: Sequence[int], radius: int, color: Sequence[int]
) -> np.ndarray:
    """Draw a filled disc in place."""
    cx, cy = (int(v) for v in center)
    h, w = image.shape[:2]
    yy, xx = np.ogrid[:h, :w]
    inside = (xx - cx) ** 2 + (yy - cy) ** 2 <= radius * radius
    image[inside] = color
    return image


def _font(size: float):
    pixels = max(int(round(_BASE_TEXT_HEIGHT * size)), 1)
    try:
        return ImageFont.load_default(size=pixels)
    except TypeError:
        return ImageFont.load_default()


def draw_text(
    image: np.ndarray,
    text: str,
    origin: Sequence[int],
    color: Sequence[int],
    size: float = 0.75,
) -> np.ndarray:
    """Write ``text`` in place with its bottom-left corner at ``origin``."""
    x, y = (int(v) for v in origin)
    canvas = Image.fromarray(np.ascontiguousarray(image))
    pen = ImageDraw.Draw(canvas)
    font = _font(size)
    _, _, _, bottom = pen.textbbox((0, 0), text, font=font)
    pen.text((x, y - bottom), text, fill=tuple(int(c) for c in color), font=font)
    image[...] = np.asarray(canvas)
    return image


def blend_mask(image: np.ndarray, mask: np.ndarray, color: Sequence[int]) -> np.ndarray:
    """Mix ``color`` half and half into the pixels selected by ``mask``.

    A non-boolean mask selects the pixels where it exceeds 0.5.
    """
    mask = np.asarray(mask)
    if mask.shape != image.shape[:2]:
        raise ValueError("mask must match the image height and width")
    selected = mask if mask.dtype == bool else mask > 0.5
    mixed = image[selected].astype(np.float64) * 0.5 + np.asarray(color, dtype=np.float64) * 0.5
    image[selected] = mixed.astype(np.uint8)
    return image