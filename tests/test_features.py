import math

import pytest

from lidarvio.features import (
    FeatureExtractor,
    FeatureType,
    Point,
    PointInfo,
    Surround,
)


def make_wall(n=40, spacing=0.05, x=5.0):
    return [Point(x=x, y=-1.0 + spacing * k, z=0.0, curvature=0.1 * k) for k in range(n)]


def make_zigzag(n=40, spacing=0.05):
    return [
        Point(x=5.0, y=spacing * k, z=0.3 if k % 2 else 0.0) for k in range(n)
    ]


def test_point_info_lengths_and_last_gap():
    extractor = FeatureExtractor()
    line = make_wall(10)
    infos = extractor.compute_point_info(line, True)
    assert len(infos) == len(line)
    assert infos[-1].dista == 0.0
    assert all(info.ftype == FeatureType.NOR for info in infos)


def test_point_info_range_modes_agree():
    extractor = FeatureExtractor()
    line = make_wall(10)
    planar = extractor.compute_point_info(line, True)
    squared = extractor.compute_point_info(line, False)
    for a, b in zip(planar, squared):
        assert a.range ** 2 == pytest.approx(b.range)
        assert a.dista == pytest.approx(b.dista)


def test_point_info_gap_on_axis():
    extractor = FeatureExtractor()
    line = [Point(x=1.0), Point(x=2.0)]
    infos = extractor.compute_point_info(line, True)
    assert infos[0].dista == pytest.approx(1.0)


def test_empty_line_raises():
    extractor = FeatureExtractor()
    with pytest.raises(ValueError):
        extractor.give_feature([], [])


def test_all_blind_gives_nothing():
    extractor = FeatureExtractor(blind=10.0)
    line = [Point(x=0.5, y=0.5 + 0.01 * k) for k in range(20)]
    infos = extractor.compute_point_info(line, True)
    assert extractor.give_feature(line, infos) == ([], [])


@pytest.mark.parametrize("is_avia", [True, False])
@pytest.mark.parametrize("planar_range", [True, False])
def test_wall_gives_surface_points_from_input(is_avia, planar_range):
    extractor = FeatureExtractor(blind=0.1, point_filter_num=1, is_avia=is_avia)
    line = make_wall()
    infos = extractor.compute_point_info(line, planar_range)
    surf, corn = extractor.give_feature(line, infos)
    assert corn == []
    assert len(surf) > len(line) // 2
    originals = [(p.x, p.y, p.z, p.curvature) for p in line]
    picked = [(p.x, p.y, p.z, p.curvature) for p in surf]
    positions = [originals.index(p) for p in picked]
    assert positions == sorted(positions)


def test_wall_points_classified_as_plane():
    extractor = FeatureExtractor(blind=0.1)
    line = make_wall()
    infos = extractor.compute_point_info(line, False)
    extractor.give_feature(line, infos)
    assert all(
        info.ftype in (FeatureType.POSS_PLANE, FeatureType.REAL_PLANE) for info in infos
    )


def test_downsampled_surface_stays_on_wall():
    extractor = FeatureExtractor(blind=0.1, point_filter_num=3)
    line = make_wall()
    infos = extractor.compute_point_info(line, True)
    surf, _ = extractor.give_feature(line, infos)
    assert 0 < len(surf) < len(line)
    ys = [p.y for p in line]
    for p in surf:
        assert p.x == pytest.approx(5.0)
        assert min(ys) <= p.y <= max(ys)


def test_blind_point_is_excluded():
    extractor = FeatureExtractor(blind=0.1)
    line = make_wall()
    line[20] = Point()
    infos = extractor.compute_point_info(line, True)
    surf, _ = extractor.give_feature(line, infos)
    assert surf
    assert all(p.x == pytest.approx(5.0) for p in surf)
    assert infos[20].ftype == FeatureType.NOR


def test_plane_judge_collinear_points():
    extractor = FeatureExtractor(blind=0.1)
    line = make_wall()
    infos = extractor.compute_point_info(line, True)
    kind, i_nex, direction = extractor.plane_judge(line, infos, 0)
    assert kind == 1
    assert i_nex >= extractor.group_size
    assert math.sqrt(sum(c * c for c in direction)) == pytest.approx(1.0)
    assert direction[1] == pytest.approx(1.0)


def test_plane_judge_zigzag_is_not_plane():
    extractor = FeatureExtractor(blind=0.1)
    line = make_zigzag()
    infos = extractor.compute_point_info(line, True)
    kind, _, direction = extractor.plane_judge(line, infos, 0)
    assert kind == 0
    assert direction == (0.0, 0.0, 0.0)


def test_plane_judge_blind_in_group():
    extractor = FeatureExtractor(blind=0.1)
    line = make_wall()
    infos = extractor.compute_point_info(line, True)
    infos[3].range = 0.0
    assert extractor.plane_judge(line, infos, 0) == (2, 3, (0.0, 0.0, 0.0))


def test_plane_judge_too_few_points():
    extractor = FeatureExtractor()
    line = make_wall(5)
    infos = extractor.compute_point_info(line, True)
    with pytest.raises(ValueError):
        extractor.plane_judge(line, infos, 0)


def _infos(dists, rng=25.0):
    return [PointInfo(range=rng, dista=d) for d in dists]


def test_edge_jump_even_gaps_accepted():
    extractor = FeatureExtractor()
    infos = _infos([0.01, 0.01, 0.01, 0.01, 0.01])
    assert extractor.edge_jump_judge(infos, 2, Surround.PREV) is True
    assert extractor.edge_jump_judge(infos, 2, Surround.NEXT) is True


def test_edge_jump_uneven_gaps_rejected():
    extractor = FeatureExtractor()
    infos = _infos([0.01, 1.0, 0.01, 1.0, 0.01])
    assert extractor.edge_jump_judge(infos, 2, Surround.PREV) is False
    assert extractor.edge_jump_judge(infos, 2, Surround.NEXT) is False


def test_edge_jump_blind_neighbour_rejected():
    extractor = FeatureExtractor(blind=1.0)
    infos = _infos([0.01] * 5)
    infos[1].range = 0.0
    infos[3].range = 0.0
    assert extractor.edge_jump_judge(infos, 2, Surround.PREV) is False
    assert extractor.edge_jump_judge(infos, 2, Surround.NEXT) is False