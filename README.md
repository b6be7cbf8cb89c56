# lidarvio

Building blocks for LiDAR-inertial-visual odometry, written in plain Python and NumPy.

| Module | What it holds |
| --- | --- |
| `lidarvio.features` | Labels the points of one LiDAR scan line as plane, edge or wire points, and collects surface and corner points. |
| `lidarvio.visual_point` | Rigid `Pose` transforms, image `Feature` observations and `VisualPoint` map points. |
| `lidarvio.patch` | Bilinear patch sampling, NCC, image gradients, the projection Jacobian and the choice of search level. |
| `lidarvio.warp` | The `PinholeModel` camera, affine patch warps between views and camera extrinsics. |
| `lidarvio.photometric` | Patch residuals, their pose Jacobians, one iterated-EKF update step and a convergence test. |

## Installation

```
pip install .
```

To run the tests, install the `test` extra and run pytest:

```
pip install .[test]
pytest
```

## Scan-line feature extraction

A scan line is a list of `Point` records taken from one laser ring, in firing
order. `Point.curvature` holds the point's time offset.
`FeatureExtractor.compute_point_info` finds the range of each point and the
squared gap to the next point. `give_feature` then labels every point with a
`FeatureType` and returns the surface points and the corner points:

```python
from lidarvio.features import FeatureExtractor, Point

line = [Point(x=5.0, y=0.05 * i, z=0.0, curvature=0.1 * i) for i in range(40)]

extractor = FeatureExtractor(blind=0.5, point_filter_num=1, is_avia=False)
infos = extractor.compute_point_info(line, planar_range=True)
surface, corners = extractor.give_feature(line, infos)
```

`give_feature` updates the `PointInfo` entries in place, so afterwards
`infos[i].ftype` holds the label of point `i`. The method raises `ValueError`
when the line is empty. The lower-level checks `plane_judge` and
`edge_jump_judge` are also public.

## Visual map points

A `Pose` maps a point `p` to `rotation @ p + translation`. It has `inverse`,
`transform` and `compose`. A `Feature` is one observation of a map point: the
patch, the pixel `px`, the bearing `f` and the camera `pose`. A `VisualPoint`
keeps its observations in `obs`, newest first.

```python
import numpy as np
from lidarvio.visual_point import Feature, Pose, VisualPoint

point = VisualPoint(np.array([0.0, 0.0, 5.0]))
feature = Feature(
    patch=np.zeros(64),
    px=np.array([320.0, 240.0]),
    f=np.array([0.0, 0.0, 1.0]),
    pose=Pose(),
)
point.add_frame_ref(feature)

best = point.get_close_view_obs(np.array([0.0, 0.0, 0.0]))
```

`get_close_view_obs` returns the observation whose viewing direction is closest
to the given camera position. It returns `None` when there are no observations,
or when the best one is more than 60 degrees away. `find_min_score_feature`,
`delete_feature_ref` and `delete_non_ref_patch_features` maintain the list of
observations.

## Patches, cameras and warps

```python
import numpy as np
from lidarvio.patch import calculate_ncc, get_image_patch
from lidarvio.warp import PinholeModel

img = np.arange(100 * 100, dtype=float).reshape(100, 100) % 251
patch = get_image_patch(img, (50.3, 40.7), patch_size=8, level=0)
score = calculate_ncc(patch, patch)

cam = PinholeModel(width=640, height=480, fx=500.0, fy=500.0, cx=320.0, cy=240.0)
pixel = cam.world2cam([0.0, 0.0, 2.0])   # array([320., 240.])
ray = cam.cam2world(pixel)               # unit bearing vector
```

The helpers in `lidarvio.patch` work as follows:

- `get_image_patch` and `image_gradient` raise `ValueError` when the patch
  would reach outside the image.
- `interpolate` samples a grey image and `interpolated_pixel` a three-channel
  image.
- `get_best_search_level` picks a pyramid level from the determinant of an
  affine warp.

The warps in `lidarvio.warp` work as follows:

- `warp_matrix_affine_homography` builds the 2x2 affine warp from a local plane.
- `warp_matrix_affine` builds it from a constant reference depth.
- `warp_affine` samples the warped reference patch, and sets samples that fall
  outside the image to zero.
- `camera_extrinsics` chains the IMU-to-LiDAR and camera-from-LiDAR extrinsics.
  It returns `(rci, pci, jdphi_dr, jdp_dr)`.

## Photometric update

The module `lidarvio.photometric` provides:

- `patch_residuals`, which returns a `PatchResidual` with exposure-compensated
  residuals, the sampled values and `error`.
- `patch_jacobian`, which returns one 6-column row per pixel, for rotation and
  translation.
- `ekf_update(h_sub, z, cov, state_delta, img_point_cov)`, which returns the
  state increment and the matrix `G`. Shrink the covariance afterwards with
  `cov - G @ cov`.
- `converged`, which tests whether the rotation and translation parts of an
  increment are negligible.
- `photometric_error`, which is the sum of squared differences between two
  exposure-compensated patches.

## What this package does not do

- It does not read raw sensor scans or messages, and it has no handlers for
  particular LiDAR models. You build the scan lines of `Point` records yourself.
- It has no visual voxel map, no image grid and no per-frame pipeline that
  retrieves, tracks and adds map points. The functions above are the steps such
  a pipeline would call.
- It has no command-line program.
- It does not store maps or trajectories on disk.