"""Photometric residuals, their Jacobians and the iterated EKF update of the camera pose."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from lidarvio.patch import compute_projection_jacobian, get_image_patch, image_gradient

_RAD_TO_DEG = 57.3
_M_TO_CM = 100.0
_STEP_LIMIT = 0.001


@dataclass
class PatchResidual:
    """Residuals of one patch against its reference, with the sampled intensities."""

    residuals: np.ndarray
    cur_values: np.ndarray

    @property
    def error(self) -> float:
        """Sum of squared residuals."""
        return float(self.residuals @ self.residuals)


def _skew(vec: np.ndarray) -> np.ndarray:
    x, y, z = vec
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def patch_residuals(
    img, pc, ref_patch, level: int, patch_size: int, inv_expo_cur: float, inv_expo_ref: float
) -> PatchResidual:
    """Exposure-compensated difference between the patch at ``pc`` and ``ref_patch``.

    The current patch is sampled at pyramid ``level``; ``ref_patch`` is the flat
    reference patch for that level. Each residual is
    ``inv_expo_cur * current - inv_expo_ref * reference``.
    """
    ref = np.asarray(ref_patch, dtype=float).reshape(-1)
    if ref.size != patch_size * patch_size:
        raise ValueError("reference patch does not match the patch size")
    cur = get_image_patch(img, pc, patch_size, level)
    residuals = inv_expo_cur * cur - inv_expo_ref * ref
    return PatchResidual(residuals=residuals, cur_values=cur)


def patch_jacobian(
    img,
    pc,
    point_cam,
    fx: float,
    fy: float,
    level: int,
    patch_size: int,
    inv_expo: float,
    jdphi_dr,
    jdp_dr,
    jdp_dt,
) -> np.ndarray:
    """Jacobian of every pixel residual of a patch with respect to rotation and translation.

    Returns an array of shape ``(patch_size**2, 6)``: three rotation columns
    followed by three translation columns, one row per pixel in row-major order.
    """
    point = np.asarray(point_cam, dtype=float).reshape(3)
    jdpi = compute_projection_jacobian(fx, fy, point)
    p_hat = _skew(point)
    du, dv = image_gradient(img, pc, patch_size, level)
    jimg = np.column_stack((du, dv)) * inv_expo
    a = jimg @ jdpi
    jdphi = a @ p_hat
    jdp = -a
    jdr = jdphi @ np.asarray(jdphi_dr, dtype=float).reshape(3, 3) + jdp @ np.asarray(
        jdp_dr, dtype=float
    ).reshape(3, 3)
    jdt = jdp @ np.asarray(jdp_dt, dtype=float).reshape(3, 3)
    return np.hstack((jdr, jdt))


def ekf_update(h_sub, z, cov, state_delta, img_point_cov: float) -> Tuple[np.ndarray, np.ndarray]:
    """One iterated-EKF step for measurements that touch the leading state entries.

    ``h_sub`` (N x k) is the measurement Jacobian for the first k state entries,
    ``z`` the residuals, ``cov`` the state covariance and ``state_delta`` the
    propagated state minus the current estimate. Returns ``(solution, G)``,
    where ``solution`` is the state increment and ``G`` the gain times Jacobian
    used to shrink the covariance afterwards (``cov - G @ cov``).
    """
    h = np.asarray(h_sub, dtype=float)
    if h.ndim != 2:
        raise ValueError("measurement Jacobian must be two-dimensional")
    meas = np.asarray(z, dtype=float).reshape(-1)
    p = np.asarray(cov, dtype=float)
    delta = np.asarray(state_delta, dtype=float).reshape(-1)
    dim = delta.size
    k = h.shape[1]
    if p.shape != (dim, dim):
        raise ValueError("covariance does not match the state size")
    if meas.size != h.shape[0]:
        raise ValueError("residuals do not match the Jacobian rows")
    if k > dim:
        raise ValueError("Jacobian has more columns than the state has entries")
    if img_point_cov <= 0:
        raise ValueError("measurement covariance must be positive")

    h_t = h.T
    hth = np.zeros((dim, dim))
    hth[:k, :k] = h_t @ h
    try:
        k_1 = np.linalg.inv(hth + np.linalg.inv(p / img_point_cov))
    except np.linalg.LinAlgError:
        raise ValueError("information matrix is singular") from None
    htz = h_t @ meas
    gain = np.zeros((dim, dim))
    gain[:, :k] = k_1[:, :k] @ hth[:k, :k]
    solution = -k_1[:, :k] @ htz + delta - gain[:, :k] @ delta[:k]
    return solution, gain


def converged(solution) -> bool:
    """Whether the rotation and translation parts of an increment are negligible."""
    step = np.asarray(solution, dtype=float).reshape(-1)
    if step.size < 6:
        raise ValueError("increment must hold rotation and translation")
    rot = float(np.linalg.norm(step[:3]))
    trans = float(np.linalg.norm(step[3:6]))
    return rot * _RAD_TO_DEG < _STEP_LIMIT and trans * _M_TO_CM < _STEP_LIMIT


def photometric_error(ref_patch, cur_patch, inv_expo_ref: float, inv_expo_cur: float) -> float:
    """Sum of squared exposure-compensated differences between two patches."""
    ref = np.asarray(ref_patch, dtype=float).reshape(-1)
    cur = np.asarray(cur_patch, dtype=float).reshape(-1)
    if ref.shape != cur.shape:
        raise ValueError("patches differ in size")
    diff = inv_expo_ref * ref - inv_expo_cur * cur
    result = float(diff @ diff)
    if math.isnan(result):
        raise ValueError("patches contain NaN values")
    return result