"""Planes fitted to map points, for placing virtual objects in the scene."""

from __future__ import annotations

import math
from typing import Any, Optional, Sequence

import numpy as np

_EPS = 1e-4
_MIN_POINTS = 50
_MIN_OBSERVATIONS = 5
_UP = np.array([0.0, 1.0, 0.0])

_RED = (255, 0, 0)
_GREEN = (0, 255, 0)


def exp_so3(x: float, y: float, z: float) -> np.ndarray:
    """Rotation matrix of the rotation vector (x, y, z)."""
    identity = np.eye(3)
    d2 = x * x + y * y + z * z
    d = math.sqrt(d2)
    w = np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])
    if d < _EPS:
        return identity + w + 0.5 * (w @ w)
    return identity + w * math.sin(d) / d + (w @ w) * (1.0 - math.cos(d)) / d2


def gl_matrix(transform: Any) -> list[float]:
    """The 16 column-major entries of a rigid 4x4 transform, last row 0 0 0 1."""
    matrix = np.asarray(transform, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise ValueError("transform must be a 4x4 matrix")
    entries: list[float] = []
    for col in range(4):
        entries.extend(float(matrix[row, col]) for row in range(3))
        entries.append(1.0 if col == 3 else 0.0)
    return entries


def _random_rang() -> float:
    return -3.14 / 2 + float(np.random.default_rng().random()) * 3.14


def _rotation_to(normal: np.ndarray, rang: float) -> np.ndarray:
    """Rotation taking the y axis to ``normal``, after a turn of ``rang`` about y."""
    v = np.cross(_UP, normal)
    sa = float(np.linalg.norm(v))
    ca = float(_UP @ normal)
    angle = math.atan2(sa, ca)
    if sa > 0.0:
        axis = v * angle / sa
    elif ca >= 0.0:
        axis = np.zeros(3)
    else:
        axis = np.array([math.pi, 0.0, 0.0])
    return exp_so3(*axis) @ exp_so3(*(_UP * rang))


class Plane:
    """A plane with its origin, normal and world-to-plane transform."""

    def __init__(self, points: Any, tcw: Any, rang: Optional[float] = None) -> None:
        pose = np.array(tcw, dtype=np.float64)
        if pose.shape != (4, 4):
            raise ValueError("pose must be a 4x4 matrix")
        self.tcw: Optional[np.ndarray] = pose
        self.rang = _random_rang() if rang is None else float(rang)
        self.xc: Optional[np.ndarray] = None
        self.indices: tuple[int, ...] = ()
        self.points = np.empty((0, 3))
        self.normal = np.zeros(3)
        self.origin = np.zeros(3)
        self.tpw = np.eye(4)
        self.gl_tpw = gl_matrix(self.tpw)
        self.recompute(points)

    @classmethod
    def from_normal(cls, normal: Any, origin: Any, rang: Optional[float] = None) -> "Plane":
        """A plane given directly by its normal and origin."""
        plane = cls.__new__(cls)
        plane.tcw = None
        plane.rang = _random_rang() if rang is None else float(rang)
        plane.xc = None
        plane.indices = ()
        plane.points = np.empty((0, 3))
        plane.normal = np.asarray(normal, dtype=np.float64).reshape(3).copy()
        plane.origin = np.asarray(origin, dtype=np.float64).reshape(3).copy()
        plane._set_transform()
        return plane

    def _set_transform(self) -> None:
        self.tpw = np.eye(4)
        self.tpw[:3, :3] = _rotation_to(self.normal, self.rang)
        self.tpw[:3, 3] = self.origin
        self.gl_tpw = gl_matrix(self.tpw)

    def recompute(self, points: Any) -> None:
        """Refit the plane to the current positions of its points.

        The normal is turned away from the camera centre seen when the
        plane was first fitted.
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        if len(pts) == 0:
            raise ValueError("a plane needs at least one point")
        self.points = pts.copy()
        a_matrix = np.hstack([pts, np.ones((len(pts), 1))])
        _, _, vt = np.linalg.svd(a_matrix, full_matrices=True)
        abc = vt[3, :3].copy()
        self.origin = pts.mean(axis=0)
        scale = 1.0 / float(np.linalg.norm(abc))

        if self.xc is None:
            if self.tcw is None:
                raise RuntimeError("plane has no camera pose to orient its normal")
            rot = self.tcw[:3, :3]
            centre = -rot.T @ self.tcw[:3, 3]
            self.xc = centre - self.origin

        if float(self.xc @ abc) > 0:
            abc = -abc
        self.normal = abc * scale
        self._set_transform()


def detect_plane(
    tcw: Any,
    points: Sequence[Any],
    observations: Sequence[int],
    iterations: int = 50,
    rng: Optional[np.random.Generator] = None,
) -> Optional[Plane]:
    """Fit a plane by RANSAC to well-observed tracked points.

    ``points[i]`` is the world position of a tracked map point or None,
    ``observations[i]`` how many keyframes observe it. Only points seen by
    more than five keyframes take part; with fewer than fifty of them, or
    too few inliers to fix a plane, None is returned.
    """
    if len(points) != len(observations):
        raise ValueError("points and observations must have the same length")
    if rng is None:
        rng = np.random.default_rng()

    selected = [
        (index, np.asarray(point, dtype=np.float64).reshape(3))
        for index, (point, count) in enumerate(zip(points, observations))
        if point is not None and count > _MIN_OBSERVATIONS
    ]
    n = len(selected)
    if n < _MIN_POINTS:
        return None

    positions = np.array([p for _, p in selected])
    homogeneous = np.hstack([positions, np.ones((n, 1))])
    nth = max(int(0.2 * n), 20)

    best_dist = 1e10
    best_distances: Optional[np.ndarray] = None
    for _ in range(iterations):
        sample = rng.choice(n, size=3, replace=False)
        _, _, vt = np.linalg.svd(homogeneous[sample], full_matrices=True)
        plane = vt[3]
        f = 1.0 / float(np.linalg.norm(plane))
        distances = np.abs(homogeneous @ plane) * f
        median = float(np.sort(distances)[nth])
        if median < best_dist:
            best_dist = median
            best_distances = distances

    if best_distances is None:
        return None
    inliers = best_distances < 1.4 * best_dist
    if int(inliers.sum()) < 3:
        return None

    result = Plane(positions[inliers], tcw)
    result.indices = tuple(
        index for (index, _), keep in zip(selected, inliers) if keep
    )
    return result


def status_label(
    status: int, localization_mode: bool
) -> Optional[tuple[str, tuple[int, int, int]]]:
    """Text and RGB colour shown for a tracking status, or None for other statuses."""
    mode = "LOCALIZATION" if localization_mode else "SLAM"
    if status == 1:
        return "SLAM NOT INITIALIZED", _RED
    if status == 2:
        return f"{mode} ON", _GREEN
    if status == 3:
        return f"{mode} LOST", _RED
    return None


def plane_grid_lines(
    ndivs: int, ndivsize: float
) -> list[tuple[tuple[float, float, float], tuple[float, float, float]]]:
    """Segments of a square grid in the x-z plane centred at the origin."""
    low = -ndivs * ndivsize
    high = ndivs * ndivsize
    lines = []
    for step in range(2 * ndivs + 1):
        offset = low + ndivsize * step
        lines.append(((offset, 0.0, low), (offset, 0.0, high)))
        lines.append(((low, 0.0, offset), (high, 0.0, offset)))
    return lines