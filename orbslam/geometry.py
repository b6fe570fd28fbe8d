"""Two-view geometry: normalisation, homography, fundamental matrix, triangulation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np

_PARALLAX_COS_LIMIT = 0.99998


@dataclass
class RTCheck:
    """Outcome of checking one motion hypothesis against the matches."""

    good: int
    points: np.ndarray
    triangulated: list[bool] = field(default_factory=list)
    parallax: float = 0.0


def _as_points(points: Any) -> np.ndarray:
    return np.asarray(points, dtype=np.float64).reshape(-1, 2)


def normalize(points: Any) -> tuple[np.ndarray, np.ndarray]:
    """Centre points and scale them to unit mean absolute deviation.

    Returns the normalised points and the 3x3 transform that produces them.
    """
    pts = _as_points(points)
    mean = pts.mean(axis=0)
    centred = pts - mean
    with np.errstate(divide="ignore", invalid="ignore"):
        scale = 1.0 / np.abs(centred).mean(axis=0)
    normalized = centred * scale
    transform = np.eye(3)
    transform[0, 0] = scale[0]
    transform[1, 1] = scale[1]
    transform[0, 2] = -mean[0] * scale[0]
    transform[1, 2] = -mean[1] * scale[1]
    return normalized, transform


def compute_h21(points1: Any, points2: Any) -> np.ndarray:
    """Estimate the homography mapping points1 onto points2 by DLT."""
    p1 = _as_points(points1)
    p2 = _as_points(points2)
    rows = []
    for (u1, v1), (u2, v2) in zip(p1, p2):
        rows.append([0.0, 0.0, 0.0, -u1, -v1, -1.0, v2 * u1, v2 * v1, v2])
        rows.append([u1, v1, 1.0, 0.0, 0.0, 0.0, -u2 * u1, -u2 * v1, -u2])
    _, _, vt = np.linalg.svd(np.array(rows), full_matrices=True)
    return vt[8].reshape(3, 3)


def compute_f21(points1: Any, points2: Any) -> np.ndarray:
    """Estimate a rank-2 fundamental matrix with the eight-point method."""
    p1 = _as_points(points1)
    p2 = _as_points(points2)
    rows = [
        [u2 * u1, u2 * v1, u2, v2 * u1, v2 * v1, v2, u1, v1, 1.0]
        for (u1, v1), (u2, v2) in zip(p1, p2)
    ]
    _, _, vt = np.linalg.svd(np.array(rows), full_matrices=True)
    f_pre = vt[8].reshape(3, 3)
    u, w, vt = np.linalg.svd(f_pre, full_matrices=True)
    w[2] = 0.0
    return u @ np.diag(w) @ vt


def triangulate(point1: Any, point2: Any, projection1: Any, projection2: Any) -> np.ndarray:
    """Triangulate a 3D point from two image points and projection matrices."""
    x1, y1 = np.asarray(point1, dtype=np.float64).reshape(2)
    x2, y2 = np.asarray(point2, dtype=np.float64).reshape(2)
    p1 = np.asarray(projection1, dtype=np.float64)
    p2 = np.asarray(projection2, dtype=np.float64)
    a = np.vstack(
        [
            x1 * p1[2] - p1[0],
            y1 * p1[2] - p1[1],
            x2 * p2[2] - p2[0],
            y2 * p2[2] - p2[1],
        ]
    )
    _, _, vt = np.linalg.svd(a, full_matrices=True)
    x = vt[3]
    with np.errstate(divide="ignore", invalid="ignore"):
        return x[:3] / x[3]


def decompose_essential(essential: Any) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Split an essential matrix into two rotations and a unit translation."""
    u, _, vt = np.linalg.svd(np.asarray(essential, dtype=np.float64))
    t = u[:, 2] / np.linalg.norm(u[:, 2])
    w = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    r1 = u @ w @ vt
    if np.linalg.det(r1) < 0:
        r1 = -r1
    r2 = u @ w.T @ vt
    if np.linalg.det(r2) < 0:
        r2 = -r2
    return r1, r2, t


def check_rt(
    rotation: Any,
    translation: Any,
    keys1: Any,
    keys2: Any,
    matches: Sequence[tuple[int, int]],
    inliers: Sequence[bool],
    camera_matrix: Any,
    th2: float,
) -> RTCheck:
    """Triangulate inlier matches under a motion hypothesis and count good points."""
    k = np.asarray(camera_matrix, dtype=np.float64)
    rot = np.asarray(rotation, dtype=np.float64).reshape(3, 3)
    trans = np.asarray(translation, dtype=np.float64).reshape(3)
    pts1 = _as_points(keys1)
    pts2 = _as_points(keys2)
    fx, fy, cx, cy = k[0, 0], k[1, 1], k[0, 2], k[1, 2]

    proj1 = np.zeros((3, 4))
    proj1[:, :3] = k
    proj2 = k @ np.hstack([rot, trans[:, None]])
    origin2 = -rot.T @ trans

    good_flags = [False] * len(pts1)
    points = np.zeros((len(pts1), 3))
    cos_parallaxes: list[float] = []
    n_good = 0

    with np.errstate(divide="ignore", invalid="ignore"):
        for (i1, i2), is_inlier in zip(matches, inliers):
            if not is_inlier:
                continue
            kp1, kp2 = pts1[i1], pts2[i2]
            p3d = triangulate(kp1, kp2, proj1, proj2)
            if not np.all(np.isfinite(p3d)):
                good_flags[i1] = False
                continue

            normal2 = p3d - origin2
            cos_parallax = float(
                p3d @ normal2 / (np.linalg.norm(p3d) * np.linalg.norm(normal2))
            )

            if p3d[2] <= 0 and cos_parallax < _PARALLAX_COS_LIMIT:
                continue
            p3d_c2 = rot @ p3d + trans
            if p3d_c2[2] <= 0 and cos_parallax < _PARALLAX_COS_LIMIT:
                continue

            inv_z1 = 1.0 / p3d[2]
            im1 = np.array([fx * p3d[0] * inv_z1 + cx, fy * p3d[1] * inv_z1 + cy])
            if np.sum((im1 - kp1) ** 2) > th2:
                continue

            inv_z2 = 1.0 / p3d_c2[2]
            im2 = np.array([fx * p3d_c2[0] * inv_z2 + cx, fy * p3d_c2[1] * inv_z2 + cy])
            if np.sum((im2 - kp2) ** 2) > th2:
                continue

            cos_parallaxes.append(cos_parallax)
            points[i1] = p3d
            n_good += 1
            if cos_parallax < _PARALLAX_COS_LIMIT:
                good_flags[i1] = True

    if n_good > 0:
        cos_parallaxes.sort()
        idx = min(50, len(cos_parallaxes) - 1)
        value = min(1.0, max(-1.0, cos_parallaxes[idx]))
        parallax = math.degrees(math.acos(value))
    else:
        parallax = 0.0

    return RTCheck(good=n_good, points=points, triangulated=good_flags, parallax=parallax)