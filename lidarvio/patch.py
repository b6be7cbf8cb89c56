"""Image patch sampling, comparison and projection helpers."""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np


def compute_projection_jacobian(fx: float, fy: float, point) -> np.ndarray:
    """Jacobian (2x3) of the pinhole projection with respect to a camera-frame point."""
    x, y, z = (float(v) for v in point)
    z_inv = 1.0 / z
    z_inv_2 = z_inv * z_inv
    return np.array(
        [
            [fx * z_inv, 0.0, -fx * x * z_inv_2],
            [0.0, fy * z_inv, -fy * y * z_inv_2],
        ]
    )


def _patch_grid(pc: Sequence[float], patch_size: int, level: int):
    scale = 1 << level
    half = patch_size // 2
    u_ref, v_ref = float(pc[0]), float(pc[1])
    u_i = math.floor(u_ref / scale) * scale
    v_i = math.floor(v_ref / scale) * scale
    su = (u_ref - u_i) / scale
    sv = (v_ref - v_i) / scale
    weights = ((1.0 - su) * (1.0 - sv), su * (1.0 - sv), (1.0 - su) * sv, su * sv)
    offsets = (np.arange(patch_size) - half) * scale
    return v_i + offsets, u_i + offsets, weights, scale


def _sample(img: np.ndarray, rows, cols, weights, scale, dr: int = 0, dc: int = 0) -> np.ndarray:
    r = rows[:, None] + dr
    c = cols[None, :] + dc
    height, width = img.shape[:2]
    if r.min() < 0 or c.min() < 0 or r.max() + scale >= height or c.max() + scale >= width:
        raise ValueError("patch extends outside the image")
    tl, tr, bl, br = weights
    return (
        tl * img[r, c]
        + tr * img[r, c + scale]
        + bl * img[r + scale, c]
        + br * img[r + scale, c + scale]
    )


def get_image_patch(img, pc, patch_size: int, level: int = 0) -> np.ndarray:
    """Bilinearly sampled square patch around ``pc`` at pyramid ``level``, row-major."""
    image = np.asarray(img, dtype=float)
    rows, cols, weights, scale = _patch_grid(pc, patch_size, level)
    return _sample(image, rows, cols, weights, scale).reshape(-1)


def calculate_ncc(ref_patch, cur_patch) -> float:
    """Normalised cross-correlation of two patches of equal size."""
    ref = np.asarray(ref_patch, dtype=float).reshape(-1)
    cur = np.asarray(cur_patch, dtype=float).reshape(-1)
    if ref.shape != cur.shape:
        raise ValueError("patches differ in size")
    if ref.size == 0:
        raise ValueError("patches are empty")
    dr = ref - ref.mean()
    dc = cur - cur.mean()
    numerator = float(dr @ dc)
    return numerator / math.sqrt(float(dr @ dr) * float(dc @ dc) + 1e-10)


def get_best_search_level(a_cur_ref, max_level: int) -> int:
    """Pyramid level at which the affine warp's area scale drops to at most 3."""
    det = float(np.linalg.det(np.asarray(a_cur_ref, dtype=float)))
    level = 0
    while det > 3.0 and level < max_level:
        level += 1
        det *= 0.25
    return level


def interpolate(img, u: float, v: float) -> float:
    """Bilinear intensity of a grey image at column ``u``, row ``v``."""
    image = np.asarray(img, dtype=float)
    x = math.floor(u)
    y = math.floor(v)
    height, width = image.shape[:2]
    if x < 0 or y < 0 or x + 1 >= width or y + 1 >= height:
        raise ValueError("coordinates outside the image")
    sx = u - x
    sy = v - y
    return float(
        (1.0 - sx) * (1.0 - sy) * image[y, x]
        + sx * (1.0 - sy) * image[y, x + 1]
        + (1.0 - sx) * sy * image[y + 1, x]
        + sx * sy * image[y + 1, x + 1]
    )


def interpolated_pixel(img, pc) -> np.ndarray:
    """Bilinear three-channel value of a colour image at ``pc`` (channel order kept)."""
    image = np.asarray(img, dtype=float)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError("expected an image with three channels")
    u, v = float(pc[0]), float(pc[1])
    x = math.floor(u)
    y = math.floor(v)
    height, width = image.shape[:2]
    if x < 0 or y < 0 or x + 1 >= width or y + 1 >= height:
        raise ValueError("coordinates outside the image")
    sx = u - x
    sy = v - y
    return (
        (1.0 - sx) * (1.0 - sy) * image[y, x]
        + sx * (1.0 - sy) * image[y, x + 1]
        + (1.0 - sx) * sy * image[y + 1, x]
        + sx * sy * image[y + 1, x + 1]
    )


def image_gradient(img, pc, patch_size: int, level: int = 0) -> Tuple[np.ndarray, np.ndarray]:
    """Central-difference gradients (du, dv) over a patch, per pixel at ``level``.

    Both arrays are flattened row-major like :func:`get_image_patch`, and are
    divided by the pyramid scale so they are in units of the sampled grid.
    """
    image = np.asarray(img, dtype=float)
    rows, cols, weights, scale = _patch_grid(pc, patch_size, level)
    right = _sample(image, rows, cols, weights, scale, dc=scale)
    left = _sample(image, rows, cols, weights, scale, dc=-scale)
    down = _sample(image, rows, cols, weights, scale, dr=scale)
    up = _sample(image, rows, cols, weights, scale, dr=-scale)
    du = 0.5 * (right - left) / scale
    dv = 0.5 * (down - up) / scale
    return du.reshape(-1), dv.reshape(-1)