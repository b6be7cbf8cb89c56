"""Map points seen by the camera and the image features that observe them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np


def _unit(vec: np.ndarray) -> np.ndarray:
    length = float(np.linalg.norm(vec))
    if length == 0.0:
        return np.zeros(3)
    return vec / length


@dataclass(eq=False)
class Pose:
    """A rigid transform ``p -> rotation @ p + translation``."""

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.rotation = np.asarray(self.rotation, dtype=float).reshape(3, 3)
        self.translation = np.asarray(self.translation, dtype=float).reshape(3)

    def inverse(self) -> "Pose":
        """The transform that undoes this one."""
        rot_t = self.rotation.T
        return Pose(rot_t, -rot_t @ self.translation)

    def transform(self, point) -> np.ndarray:
        """Apply the transform to a 3D point."""
        return self.rotation @ np.asarray(point, dtype=float) + self.translation

    def compose(self, other: "Pose") -> "Pose":
        """The transform applying ``other`` first, then this one."""
        return Pose(
            self.rotation @ other.rotation,
            self.rotation @ other.translation + self.translation,
        )


@dataclass(eq=False)
class Feature:
    """One observation of a visual point: a patch in one camera frame."""

    patch: np.ndarray
    px: np.ndarray
    f: np.ndarray
    pose: Pose
    level: int = 0
    point: Optional["VisualPoint"] = field(default=None, repr=False)
    img: Optional[np.ndarray] = field(default=None, repr=False)
    id: int = 0
    inv_expo_time: float = 1.0
    score: float = 0.0
    mean: float = 0.0

    def position(self) -> np.ndarray:
        """Position of the observing camera in the world frame."""
        return self.pose.inverse().translation


class VisualPoint:
    """A 3D map point with its list of observations, newest first."""

    def __init__(self, pos):
        self.pos = np.asarray(pos, dtype=float).reshape(3)
        self.previous_normal = np.zeros(3)
        self.normal = np.zeros(3)
        self.covariance = np.zeros((3, 3))
        self.is_converged = False
        self.is_normal_initialized = False
        self.has_ref_patch = False
        self.ref_patch: Optional[Feature] = None
        self.obs: List[Feature] = []

    def add_frame_ref(self, feature: Feature) -> None:
        """Record a new observation at the front of the list."""
        self.obs.insert(0, feature)

    def delete_feature_ref(self, feature: Feature) -> None:
        """Forget one observation, clearing the reference patch if it was that one."""
        if self.ref_patch is feature:
            self.ref_patch = None
            self.has_ref_patch = False
        for index, obs in enumerate(self.obs):
            if obs is feature:
                del self.obs[index]
                return

    def get_close_view_obs(self, frame_pos) -> Optional[Feature]:
        """The observation whose viewing direction is closest to ``frame_pos``.

        Returns None when there is no observation or the best one is seen at
        more than 60 degrees from the current viewing direction.
        """
        if not self.obs:
            return None
        obs_dir = _unit(np.asarray(frame_pos, dtype=float) - self.pos)
        best = self.obs[0]
        best_cos = 0.0
        for feature in self.obs:
            direction = _unit(feature.position() - self.pos)
            cos_angle = float(obs_dir @ direction)
            if cos_angle > best_cos:
                best_cos = cos_angle
                best = feature
        if best_cos < 0.5:
            return None
        return best

    def find_min_score_feature(self) -> Feature:
        """The observation with the lowest score (the first of equals)."""
        if not self.obs:
            raise ValueError("visual point has no observations")
        return min(self.obs, key=lambda feature: feature.score)

    def delete_non_ref_patch_features(self) -> None:
        """Drop every observation except the reference patch."""
        self.obs = [feature for feature in self.obs if feature is self.ref_patch]