"""Heatmap decoding and affine helpers for top-down keypoint estimation."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from detkit.boxes import Rect

PIXEL_STD = 200

# Limb pairs (joint indices) for drawing a skeleton of the 17 COCO keypoints.
PAIR_LINES: tuple[tuple[int, int], ...] = (
    (6, 8), (8, 10), (6, 12), (12, 14), (14, 16),
    (5, 7), (7, 9), (5, 11), (11, 13), (13, 15),
)


def sign(x: float) -> int:
    """-1, 0 or 1 by the sign of ``x``."""
    if x > 0:
        return 1
    if x == 0:
        return 0
    return -1


def get_3rd_point(a: Sequence[float], b: Sequence[float]) -> tuple[float, float]:
    """The point at ``b`` plus ``a - b`` turned by a right angle."""
    dx, dy = a[0] - b[0], a[1] - b[1]
    return (b[0] - dy, b[1] + dx)


def get_dir(src_point_x: float, src_point_y: float, rot_rad: float) -> tuple[float, float]:
    """Rotate a point about the origin by ``rot_rad`` radians."""
    sn, cs = math.sin(rot_rad), math.cos(rot_rad)
    return (src_point_x * cs - src_point_y * sn, src_point_x * sn + src_point_y * cs)


def _solve_affine(sources, targets) -> np.ndarray:
    rows = []
    values = []
    for (x, y), (u, v) in zip(sources, targets):
        rows.append([x, y, 1.0, 0.0, 0.0, 0.0])
        rows.append([0.0, 0.0, 0.0, x, y, 1.0])
        values.extend([u, v])
    solution = np.linalg.solve(np.array(rows, dtype=np.float64), np.array(values, dtype=np.float64))
    return solution.reshape(2, 3)


def get_affine_transform(
    center: Sequence[float],
    scale: Sequence[float],
    rot: float,
    output_size: Sequence[int],
    inv: bool = False,
) -> np.ndarray:
    """The 2×3 matrix mapping the scaled box around ``center`` to ``output_size``.

    ``output_size`` is (width, height); with ``inv`` the matrix maps back.
    """
    src_w = scale[0] * PIXEL_STD
    dst_w, dst_h = output_size
    rot_rad = rot * math.pi / 180
    src_dir = get_dir(0.0, -0.5 * src_w, rot_rad)
    dst_dir = (0.0, -0.5 * dst_w)

    src0 = (float(center[0]), float(center[1]))
    src1 = (src0[0] + src_dir[0], src0[1] + src_dir[1])
    dst0 = (dst_w * 0.5, dst_h * 0.5)
    dst1 = (dst0[0] + dst_dir[0], dst0[1] + dst_dir[1])
    src2 = get_3rd_point(src0, src1)
    dst2 = get_3rd_point(dst0, dst1)

    src = (src0, src1, src2)
    dst = (dst0, dst1, dst2)
    if inv:
        return _solve_affine(dst, src)
    return _solve_affine(src, dst)


def transform_preds(
    coords: np.ndarray,
    center: Sequence[float],
    scale: Sequence[float],
    output_size: Sequence[int],
) -> np.ndarray:
    """Map (N, 2) heatmap coordinates back into image coordinates."""
    points = np.asarray(coords, dtype=np.float64).reshape(-1, 2)
    tran = get_affine_transform(center, scale, 0, output_size, inv=True)
    homogeneous = np.column_stack([points, np.ones(len(points))])
    return homogeneous @ tran.T


def box_to_center_scale(box: Rect, width: int, height: int) -> tuple[tuple[float, float], tuple[float, float]]:
    """Centre and padded scale of ``box`` stretched to the aspect ``width / height``."""
    box_width, box_height = box.width, box.height
    center = (box.x + box_width * 0.5, box.y + box_height * 0.5)
    aspect_ratio = width * 1.0 / height
    if box_width > aspect_ratio * box_height:
        box_height = int(box_width * 1.0 / aspect_ratio)
    elif box_width < aspect_ratio * box_height:
        box_width = int(box_height * aspect_ratio)
    scale_x = box_width * 1.0 / PIXEL_STD
    scale_y = box_height * 1.0 / PIXEL_STD
    if center[0] != -1:
        scale_x *= 1.25
        scale_y *= 1.25
    return center, (scale_x, scale_y)


def _joint_maps(heatmaps) -> np.ndarray:
    maps = np.asarray(heatmaps, dtype=np.float32)
    if maps.ndim == 4:
        # Only a batch of one is supported; the last item is decoded.
        maps = maps[-1]
    if maps.ndim != 3:
        raise ValueError("heatmaps must have shape (joints, H, W) or (batch, joints, H, W)")
    return maps


def get_max_preds(heatmaps) -> tuple[np.ndarray, np.ndarray]:
    """Per-joint peak location (x, y) and peak value; non-positive peaks give (0, 0)."""
    maps = _joint_maps(heatmaps)
    joints, _, width = maps.shape
    flat = maps.reshape(joints, -1)
    idx = flat.argmax(axis=1)
    maxvals = flat[np.arange(joints), idx]
    preds = np.stack([idx % width, idx // width], axis=1).astype(np.float32)
    preds[maxvals <= 0] = 0.0
    return preds, maxvals


def get_final_preds(heatmaps, center: Sequence[float], scale: Sequence[float]) -> np.ndarray:
    """Keypoints (N, 2) in image coordinates, refined a quarter pixel toward the slope."""
    maps = _joint_maps(heatmaps)
    _, heat_h, heat_w = maps.shape
    coords, _ = get_max_preds(maps)
    for joint, (hm, point) in enumerate(zip(maps, coords)):
        px = int(point[0] + 0.5)
        py = int(point[1] + 0.5)
        if 1 < px < heat_w - 1 and 1 < py < heat_h - 1:
            diff_x = hm[py, px + 1] - hm[py, px - 1]
            diff_y = hm[py + 1, px] - hm[py - 1, px]
            coords[joint, 0] += sign(diff_x) * 0.25
            coords[joint, 1] += sign(diff_y) * 0.25
    return transform_preds(coords, center, scale, (heat_w, heat_h))