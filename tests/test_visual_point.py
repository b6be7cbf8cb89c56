import math

import numpy as np
import pytest

from lidarvio.visual_point import Feature, Pose, VisualPoint


def _rot_z(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def _feature_at(camera_pos, score=0.0):
    # A camera at camera_pos in the world: T_f_w maps world -> camera.
    pose = Pose(np.eye(3), -np.asarray(camera_pos, dtype=float))
    return Feature(
        patch=np.zeros(4), px=np.zeros(2), f=np.array([0.0, 0.0, 1.0]), pose=pose, score=score
    )


def test_pose_inverse_round_trip():
    pose = Pose(_rot_z(0.7), np.array([1.0, -2.0, 0.5]))
    p = np.array([0.3, 4.0, -1.0])
    back = pose.inverse().transform(pose.transform(p))
    assert np.allclose(back, p)


def test_pose_compose_with_inverse_is_identity():
    pose = Pose(_rot_z(-1.2), np.array([3.0, 1.0, 2.0]))
    ident = pose.compose(pose.inverse())
    assert np.allclose(ident.rotation, np.eye(3))
    assert np.allclose(ident.translation, np.zeros(3))


def test_pose_compose_order():
    a = Pose(_rot_z(0.3), np.array([1.0, 0.0, 0.0]))
    b = Pose(_rot_z(0.5), np.array([0.0, 2.0, 0.0]))
    p = np.array([1.0, 1.0, 1.0])
    assert np.allclose(a.compose(b).transform(p), a.transform(b.transform(p)))


def test_feature_position_maps_to_camera_origin():
    pose = Pose(_rot_z(0.4), np.array([1.0, 2.0, 3.0]))
    feature = Feature(patch=np.zeros(4), px=np.zeros(2), f=np.zeros(3), pose=pose)
    assert np.allclose(pose.transform(feature.position()), np.zeros(3))


def test_add_frame_ref_puts_newest_first():
    point = VisualPoint([0.0, 0.0, 0.0])
    first = _feature_at([1.0, 0.0, 0.0])
    second = _feature_at([2.0, 0.0, 0.0])
    point.add_frame_ref(first)
    point.add_frame_ref(second)
    assert point.obs[0] is second
    assert point.obs[-1] is first


def test_delete_feature_ref_clears_reference():
    point = VisualPoint([0.0, 0.0, 0.0])
    keep = _feature_at([1.0, 0.0, 0.0])
    drop = _feature_at([2.0, 0.0, 0.0])
    point.add_frame_ref(keep)
    point.add_frame_ref(drop)
    point.ref_patch = drop
    point.has_ref_patch = True
    point.delete_feature_ref(drop)
    assert point.obs == [keep]
    assert point.ref_patch is None
    assert point.has_ref_patch is False


def test_delete_unknown_feature_leaves_list():
    point = VisualPoint([0.0, 0.0, 0.0])
    known = _feature_at([1.0, 0.0, 0.0])
    point.add_frame_ref(known)
    point.ref_patch = known
    point.delete_feature_ref(_feature_at([5.0, 0.0, 0.0]))
    assert point.obs == [known]
    assert point.ref_patch is known


def test_close_view_empty_is_none():
    assert VisualPoint([0.0, 0.0, 0.0]).get_close_view_obs([1.0, 0.0, 0.0]) is None


def test_close_view_picks_most_aligned():
    point = VisualPoint([0.0, 0.0, 0.0])
    near = _feature_at([10.0, 1.0, 0.0])
    far = _feature_at([0.0, 10.0, 0.0])
    point.add_frame_ref(far)
    point.add_frame_ref(near)
    assert point.get_close_view_obs([5.0, 0.0, 0.0]) is near


def test_close_view_rejects_wide_angle():
    point = VisualPoint([0.0, 0.0, 0.0])
    point.add_frame_ref(_feature_at([0.0, 10.0, 0.0]))
    assert point.get_close_view_obs([10.0, 0.0, 0.0]) is None


def test_find_min_score_feature():
    point = VisualPoint([0.0, 0.0, 0.0])
    a = _feature_at([1.0, 0.0, 0.0], score=0.5)
    b = _feature_at([1.0, 0.0, 0.0], score=-0.2)
    c = _feature_at([1.0, 0.0, 0.0], score=0.9)
    for feature in (a, b, c):
        point.add_frame_ref(feature)
    assert point.find_min_score_feature() is b


def test_find_min_score_feature_first_of_ties():
    point = VisualPoint([0.0, 0.0, 0.0])
    older = _feature_at([1.0, 0.0, 0.0], score=1.0)
    newer = _feature_at([1.0, 0.0, 0.0], score=1.0)
    point.add_frame_ref(older)
    point.add_frame_ref(newer)
    assert point.find_min_score_feature() is newer


def test_find_min_score_feature_empty_raises():
    with pytest.raises(ValueError):
        VisualPoint([0.0, 0.0, 0.0]).find_min_score_feature()


def test_delete_non_ref_patch_features_keeps_reference():
    point = VisualPoint([0.0, 0.0, 0.0])
    features = [_feature_at([float(i + 1), 0.0, 0.0]) for i in range(4)]
    for feature in features:
        point.add_frame_ref(feature)
    point.ref_patch = features[2]
    point.delete_non_ref_patch_features()
    assert point.obs == [features[2]]


def test_delete_non_ref_patch_features_without_reference_empties():
    point = VisualPoint([0.0, 0.0, 0.0])
    point.add_frame_ref(_feature_at([1.0, 0.0, 0.0]))
    point.delete_non_ref_patch_features()
    assert point.obs == []


def test_new_point_defaults():
    point = VisualPoint([1.0, 2.0, 3.0])
    assert np.allclose(point.pos, [1.0, 2.0, 3.0])
    assert np.allclose(point.normal, np.zeros(3))
    assert point.is_converged is False
    assert point.is_normal_initialized is False