"""Pinhole camera model and affine patch warping between camera frames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from lidarvio.patch import interpolate
from lidarvio.visual_point import Pose

_HOMOGRAPHY_HALF_PATCH = 4


@dataclass(frozen=True)
class PinholeModel:
    """An undistorted pinhole camera with intrinsics and image size."""

    width: int
    height: int
    fx: float
    fy: float
    cx: float
    cy: float

    def cam2world(self, px) -> np.ndarray:
        """Unit bearing vector through pixel ``px``."""
        u, v = float(px[0]), float(px[1])
        ray = np.array([(u - self.cx) / self.fx, (v - self.cy) / self.fy, 1.0])
        return ray / np.linalg.norm(ray)

    def world2cam(self, point) -> np.ndarray:
        """Pixel onto which the camera-frame ``point`` projects."""
        x, y, z = (float(c) for c in point)
        return np.array([self.fx * x / z + self.cx, self.fy * y / z + self.cy])

    def is_in_frame(self, px, border: int = 0) -> bool:
        """Whether the pixel, truncated to integers, lies ``border`` pixels inside the image."""
        u, v = int(px[0]), int(px[1])
        return border <= u < self.width - border and border <= v < self.height - border


def _affine_from_projections(px_cur, px_du, px_dv, step: float) -> np.ndarray:
    a_cur_ref = np.empty((2, 2))
    a_cur_ref[:, 0] = (px_du - px_cur) / step
    a_cur_ref[:, 1] = (px_dv - px_cur) / step
    return a_cur_ref


def warp_matrix_affine_homography(
    cam: PinholeModel, px_ref, xyz_ref, normal_ref, t_cur_ref: Pose, level_ref: int
) -> np.ndarray:
    """Affine warp (2x2) from reference to current image induced by a local plane.

    ``xyz_ref`` is the point and ``normal_ref`` the plane normal, both in the
    reference camera frame; ``t_cur_ref`` maps reference to current frame.
    """
    px_ref = np.asarray(px_ref, dtype=float).reshape(2)
    xyz_ref = np.asarray(xyz_ref, dtype=float).reshape(3)
    normal_ref = np.asarray(normal_ref, dtype=float).reshape(3)

    t = t_cur_ref.inverse().translation
    h_cur_ref = t_cur_ref.rotation @ (
        float(normal_ref @ xyz_ref) * np.eye(3) - np.outer(t, normal_ref)
    )
    step = _HOMOGRAPHY_HALF_PATCH * (1 << level_ref)
    f_du_ref = cam.cam2world(px_ref + np.array([step, 0.0]))
    f_dv_ref = cam.cam2world(px_ref + np.array([0.0, step]))

    px_cur = cam.world2cam(h_cur_ref @ xyz_ref)
    px_du_cur = cam.world2cam(h_cur_ref @ f_du_ref)
    px_dv_cur = cam.world2cam(h_cur_ref @ f_dv_ref)
    return _affine_from_projections(px_cur, px_du_cur, px_dv_cur, _HOMOGRAPHY_HALF_PATCH)


def warp_matrix_affine(
    cam: PinholeModel,
    px_ref,
    f_ref,
    depth_ref: float,
    t_cur_ref: Pose,
    level_ref: int,
    pyramid_level: int,
    halfpatch_size: int,
) -> np.ndarray:
    """Affine warp (2x2) assuming the patch lies at constant depth in the reference frame."""
    px_ref = np.asarray(px_ref, dtype=float).reshape(2)
    xyz_ref = np.asarray(f_ref, dtype=float).reshape(3) * depth_ref
    step = halfpatch_size * (1 << level_ref) * (1 << pyramid_level)
    xyz_du_ref = cam.cam2world(px_ref + np.array([step, 0.0]))
    xyz_dv_ref = cam.cam2world(px_ref + np.array([0.0, step]))
    xyz_du_ref = xyz_du_ref * (xyz_ref[2] / xyz_du_ref[2])
    xyz_dv_ref = xyz_dv_ref * (xyz_ref[2] / xyz_dv_ref[2])

    px_cur = cam.world2cam(t_cur_ref.transform(xyz_ref))
    px_du = cam.world2cam(t_cur_ref.transform(xyz_du_ref))
    px_dv = cam.world2cam(t_cur_ref.transform(xyz_dv_ref))
    return _affine_from_projections(px_cur, px_du, px_dv, halfpatch_size)


def warp_affine(
    a_cur_ref, img_ref, px_ref, search_level: int, pyramid_level: int, halfpatch_size: int
) -> np.ndarray:
    """Sample a square patch of the reference image warped into the current view.

    Returns a flat row-major patch of side ``2 * halfpatch_size``; samples that
    fall outside the reference image are zero.
    """
    a = np.asarray(a_cur_ref, dtype=float).reshape(2, 2)
    try:
        a_ref_cur = np.linalg.inv(a)
    except np.linalg.LinAlgError:
        raise ValueError("affine warp is singular") from None
    if not np.all(np.isfinite(a_ref_cur)):
        raise ValueError("affine warp is not finite")

    image = np.asarray(img_ref, dtype=float)
    rows, cols = image.shape[:2]
    origin = np.asarray(px_ref, dtype=float).reshape(2)
    patch_size = halfpatch_size * 2
    scale = (1 << search_level) * (1 << pyramid_level)

    patch = np.zeros(patch_size * patch_size)
    for y in range(patch_size):
        for x in range(patch_size):
            offset = np.array([x - halfpatch_size, y - halfpatch_size], dtype=float) * scale
            u, v = a_ref_cur @ offset + origin
            if u < 0 or v < 0 or u >= cols - 1 or v >= rows - 1:
                continue
            patch[y * patch_size + x] = interpolate(image, u, v)
    return patch


def _skew(vec: np.ndarray) -> np.ndarray:
    x, y, z = vec
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def camera_extrinsics(
    rot_imu_lidar, transl_imu_lidar, rot_cam_lidar, transl_cam_lidar
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Camera-from-IMU transform and the fixed parts of the pose Jacobian.

    The IMU-to-LiDAR extrinsic is inverted to LiDAR-from-IMU and chained with
    the camera-from-LiDAR extrinsic. Returns ``(rci, pci, jdphi_dr, jdp_dr)``.
    """
    rot = np.asarray(rot_imu_lidar, dtype=float).reshape(3, 3)
    transl = np.asarray(transl_imu_lidar, dtype=float).reshape(3)
    rcl = np.asarray(rot_cam_lidar, dtype=float).reshape(3, 3)
    pcl = np.asarray(transl_cam_lidar, dtype=float).reshape(3)

    rli = rot.T
    pli = -rot.T @ transl
    rci = rcl @ rli
    pci = rcl @ pli + pcl

    jdphi_dr = rci.copy()
    pic = -rci.T @ pci
    jdp_dr = -rci @ _skew(pic)
    return rci, pci, jdphi_dr, jdp_dr