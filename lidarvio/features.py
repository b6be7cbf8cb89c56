"""Per-scan-line feature classification of LiDAR points into planes and edges."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import List, Sequence, Tuple

Vector3 = Tuple[float, float, float]

_ZERO: Vector3 = (0.0, 0.0, 0.0)


@dataclass
class Point:
    """A LiDAR point; ``curvature`` carries the per-point time offset (ms)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    intensity: float = 0.0
    normal_x: float = 0.0
    normal_y: float = 0.0
    normal_z: float = 0.0
    curvature: float = 0.0

    @property
    def xyz(self) -> Vector3:
        return (self.x, self.y, self.z)


class FeatureType(IntEnum):
    """Classification of a point; order matters for comparisons."""

    NOR = 0
    POSS_PLANE = 1
    REAL_PLANE = 2
    EDGE_JUMP = 3
    EDGE_PLANE = 4
    WIRE = 5
    ZERO_POINT = 6


class EdgeNeighbor(IntEnum):
    """Relation of a point to one of its neighbours along the scan line."""

    NOR = 0
    ZERO = 1
    DEG_180 = 2
    INF = 3
    BLIND = 4


class Surround(IntEnum):
    """Which neighbour: the previous or the next point on the line."""

    PREV = 0
    NEXT = 1


@dataclass
class PointInfo:
    """Geometric bookkeeping for one point of a scan line."""

    range: float = 0.0
    dista: float = 0.0
    angle: List[float] = field(default_factory=lambda: [0.0, 0.0])
    intersect: float = 2.0
    edj: List[EdgeNeighbor] = field(default_factory=lambda: [EdgeNeighbor.NOR, EdgeNeighbor.NOR])
    ftype: FeatureType = FeatureType.NOR


def _sub(a: Point, b: Point) -> Vector3:
    return (a.x - b.x, a.y - b.y, a.z - b.z)


def _dot(a: Vector3, b: Vector3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def _cross(a: Vector3, b: Vector3) -> Vector3:
    return (
        a[1] * b[2] - b[1] * a[2],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - b[0] * a[1],
    )


def _norm(a: Vector3) -> float:
    return math.sqrt(_dot(a, a))


def _cosine(a: Vector3, b: Vector3) -> float:
    denom = _norm(a) * _norm(b)
    if denom == 0.0:
        return math.nan
    return _dot(a, b) / denom


class FeatureExtractor:
    """Splits one scan line into surface points and corner points."""

    def __init__(self, blind: float = 0.01, point_filter_num: int = 1, is_avia: bool = True):
        self.blind = blind
        self.point_filter_num = point_filter_num
        self.is_avia = is_avia

        self.inf_bound = 10.0
        self.group_size = 8
        self.dis_a = 0.1
        self.dis_b = 0.1
        self.p2l_ratio = 225.0
        self.limit_maxmid = 6.25
        self.limit_midmin = 6.25
        self.limit_maxmin = 3.24
        self.jump_up_limit = math.cos(math.radians(170.0))
        self.jump_down_limit = math.cos(math.radians(8.0))
        self.cos160 = math.cos(math.radians(160.0))
        self.edgea = 2.0
        self.edgeb = 0.1
        self.smallp_intersect = math.cos(math.radians(172.5))
        self.smallp_ratio = 1.2

    @property
    def blind_sqr(self) -> float:
        return self.blind * self.blind

    def compute_point_info(self, line: Sequence[Point], planar_range: bool) -> List[PointInfo]:
        """Range and gap to the next point for every point of ``line``.

        With ``planar_range`` the range is the horizontal distance sqrt(x²+y²);
        otherwise it is the squared horizontal distance x²+y².
        """
        infos = [PointInfo() for _ in line]
        for info, point in zip(infos, line):
            planar_sq = point.x * point.x + point.y * point.y
            info.range = math.sqrt(planar_sq) if planar_range else planar_sq
        for info, current, following in zip(infos, line, line[1:]):
            gap = _sub(current, following)
            info.dista = _dot(gap, gap)
        return infos

    def give_feature(
        self, line: Sequence[Point], infos: List[PointInfo]
    ) -> Tuple[List[Point], List[Point]]:
        """Classify ``infos`` in place and return (surface points, corner points)."""
        size = len(line)
        if size == 0:
            raise ValueError("cannot extract features from an empty scan line")

        surf: List[Point] = []
        corn: List[Point] = []
        blind_sqr = self.blind_sqr

        head = 0
        while head < size and infos[head].range < blind_sqr:
            head += 1
        if head == size:
            return surf, corn

        self._mark_planes(line, infos, head)
        self._mark_edges(line, infos, head)
        self._mark_small_planes(infos, head)

        last_surface = -1
        for j in range(head, size):
            ftype = infos[j].ftype
            if ftype in (FeatureType.POSS_PLANE, FeatureType.REAL_PLANE):
                if last_surface == -1:
                    last_surface = j
                if j == last_surface + self.point_filter_num - 1:
                    p = line[j]
                    surf.append(Point(x=p.x, y=p.y, z=p.z, curvature=p.curvature))
                    last_surface = -1
            else:
                if ftype in (FeatureType.EDGE_JUMP, FeatureType.EDGE_PLANE):
                    corn.append(replace(line[j]))
                if last_surface != -1:
                    run = line[last_surface:j]
                    count = len(run)
                    surf.append(
                        Point(
                            x=sum(p.x for p in run) / count,
                            y=sum(p.y for p in run) / count,
                            z=sum(p.z for p in run) / count,
                            curvature=sum(p.curvature for p in run) / count,
                        )
                    )
                last_surface = -1
        return surf, corn

    def _mark_planes(self, line: Sequence[Point], infos: List[PointInfo], head: int) -> None:
        size = len(line)
        end = size - self.group_size if size > self.group_size else 0
        last_direct: Vector3 = _ZERO
        last_state = 0
        i = head
        while i < end:
            if infos[i].range < self.blind_sqr:
                i += 1
                continue
            plane_type, i_nex, curr_direct = self.plane_judge(line, infos, i)
            if plane_type == 1:
                for j in range(i, min(i_nex, size - 1) + 1):
                    infos[j].ftype = (
                        FeatureType.REAL_PLANE if j not in (i, i_nex) else FeatureType.POSS_PLANE
                    )
                if last_state == 1 and _norm(last_direct) > 0.1:
                    mod = _dot(last_direct, curr_direct)
                    infos[i].ftype = (
                        FeatureType.EDGE_PLANE if -0.707 < mod < 0.707 else FeatureType.REAL_PLANE
                    )
                i = i_nex - 1
                last_state = 1
            else:
                i = i_nex
                last_state = 0
            last_direct = curr_direct
            i += 1

    def _mark_edges(self, line: Sequence[Point], infos: List[PointInfo], head: int) -> None:
        size = len(line)
        blind_sqr = self.blind_sqr
        end = size - 3 if size > 3 else 0
        for i in range(head + 3, end):
            info = infos[i]
            if info.range < blind_sqr or info.ftype >= FeatureType.REAL_PLANE:
                continue
            if infos[i - 1].dista < 1e-16 or info.dista < 1e-16:
                continue

            vec_a = line[i].xyz
            vecs: List[Vector3] = [_ZERO, _ZERO]
            for side, offset in ((Surround.PREV, -1), (Surround.NEXT, 1)):
                if infos[i + offset].range < blind_sqr:
                    info.edj[side] = (
                        EdgeNeighbor.INF if info.range > self.inf_bound else EdgeNeighbor.BLIND
                    )
                    continue
                vecs[side] = _sub(line[i + offset], line[i])
                info.angle[side] = _cosine(vec_a, vecs[side])
                if info.angle[side] < self.jump_up_limit:
                    info.edj[side] = EdgeNeighbor.DEG_180
                elif info.angle[side] > self.jump_down_limit:
                    info.edj[side] = EdgeNeighbor.ZERO

            info.intersect = _cosine(vecs[Surround.PREV], vecs[Surround.NEXT])
            prev_edj, next_edj = info.edj
            prev_dista = infos[i - 1].dista
            if (
                prev_edj == EdgeNeighbor.NOR
                and next_edj == EdgeNeighbor.ZERO
                and info.dista > 0.0225
                and info.dista > 4 * prev_dista
            ):
                if info.intersect > self.cos160 and self.edge_jump_judge(infos, i, Surround.PREV):
                    info.ftype = FeatureType.EDGE_JUMP
            elif (
                prev_edj == EdgeNeighbor.ZERO
                and next_edj == EdgeNeighbor.NOR
                and prev_dista > 0.0225
                and prev_dista > 4 * info.dista
            ):
                if info.intersect > self.cos160 and self.edge_jump_judge(infos, i, Surround.NEXT):
                    info.ftype = FeatureType.EDGE_JUMP
            elif prev_edj == EdgeNeighbor.NOR and next_edj == EdgeNeighbor.INF:
                if self.edge_jump_judge(infos, i, Surround.PREV):
                    info.ftype = FeatureType.EDGE_JUMP
            elif prev_edj == EdgeNeighbor.INF and next_edj == EdgeNeighbor.NOR:
                if self.edge_jump_judge(infos, i, Surround.NEXT):
                    info.ftype = FeatureType.EDGE_JUMP
            elif prev_edj > EdgeNeighbor.NOR and next_edj > EdgeNeighbor.NOR:
                if info.ftype == FeatureType.NOR:
                    info.ftype = FeatureType.WIRE

    def _mark_small_planes(self, infos: List[PointInfo], head: int) -> None:
        blind_sqr = self.blind_sqr
        for i in range(head + 1, len(infos) - 1):
            prev, info, nxt = infos[i - 1], infos[i], infos[i + 1]
            if info.range < blind_sqr or prev.range < blind_sqr or nxt.range < blind_sqr:
                continue
            if prev.dista < 1e-8 or info.dista < 1e-8:
                continue
            if info.ftype != FeatureType.NOR:
                continue
            ratio = max(prev.dista, info.dista) / min(prev.dista, info.dista)
            if info.intersect < self.smallp_intersect and ratio < self.smallp_ratio:
                if prev.ftype == FeatureType.NOR:
                    prev.ftype = FeatureType.REAL_PLANE
                if nxt.ftype == FeatureType.NOR:
                    nxt.ftype = FeatureType.REAL_PLANE
                info.ftype = FeatureType.REAL_PLANE

    def plane_judge(
        self, line: Sequence[Point], infos: List[PointInfo], i_cur: int
    ) -> Tuple[int, int, Vector3]:
        """Test whether the points from ``i_cur`` onward form a planar segment.

        Returns (kind, i_nex, direction): kind 1 for a plane, 0 for no plane,
        2 when a blind point interrupts the group; ``i_nex`` is the index where
        the segment ends and ``direction`` its unit direction (zero unless 1).
        """
        size = len(line)
        if i_cur + self.group_size > size:
            raise ValueError("not enough points after the start index to form a group")

        group_dis = (self.dis_a * infos[i_cur].range + self.dis_b) ** 2
        disarr: List[float] = []

        for i_nex in range(i_cur, i_cur + self.group_size):
            if infos[i_nex].range < self.blind_sqr:
                return 2, i_nex, _ZERO
            disarr.append(infos[i_nex].dista)
        i_nex = i_cur + self.group_size

        v: Vector3 = _ZERO
        two_dis = 0.0
        while i_nex < size:
            if infos[i_nex].range < self.blind_sqr:
                return 2, i_nex, _ZERO
            v = _sub(line[i_nex], line[i_cur])
            two_dis = _dot(v, v)
            if two_dis >= group_dis:
                break
            disarr.append(infos[i_nex].dista)
            i_nex += 1

        leng_wid = 0.0
        for j in range(i_cur + 1, min(i_nex, size)):
            v2 = _cross(_sub(line[j], line[i_cur]), v)
            leng_wid = max(leng_wid, _dot(v2, v2))

        if leng_wid > 0.0 and two_dis * two_dis / leng_wid < self.p2l_ratio:
            return 0, i_nex, _ZERO

        disarr.sort(reverse=True)
        count = len(disarr)
        if disarr[count - 2] < 1e-16:
            return 0, i_nex, _ZERO

        if self.is_avia:
            mid = disarr[count // 2]
            if disarr[0] / mid >= self.limit_maxmid or mid / disarr[count - 2] >= self.limit_midmin:
                return 0, i_nex, _ZERO
        elif disarr[0] / disarr[count - 2] >= self.limit_maxmin:
            return 0, i_nex, _ZERO

        length = _norm(v)
        if length == 0.0:
            return 1, i_nex, _ZERO
        return 1, i_nex, (v[0] / length, v[1] / length, v[2] / length)

    def edge_jump_judge(self, infos: List[PointInfo], i: int, direction: Surround) -> bool:
        """Check that the gaps on the ``direction`` side of point ``i`` are consistent."""
        blind_sqr = self.blind_sqr
        if direction == Surround.PREV:
            if infos[i - 1].range < blind_sqr or infos[i - 2].range < blind_sqr:
                return False
        else:
            if infos[i + 1].range < blind_sqr or infos[i + 2].range < blind_sqr:
                return False

        d1 = infos[i + direction - 1].dista
        d2 = infos[i + 3 * direction - 2].dista
        if d1 < d2:
            d1, d2 = d2, d1
        d1 = math.sqrt(d1)
        d2 = math.sqrt(d2)
        return not (d1 > self.edgea * d2 or (d1 - d2) > self.edgeb)