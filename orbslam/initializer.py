"""Map initialisation from two views using a homography or a fundamental matrix."""

from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np

from .geometry import (
    check_rt,
    compute_f21,
    compute_h21,
    decompose_essential,
    normalize,
)

_HOMOGRAPHY_THRESHOLD = 5.991
_FUNDAMENTAL_THRESHOLD = 3.841
_FUNDAMENTAL_SCORE = 5.991
_SAMPLE_SIZE = 8


@dataclass
class Reconstruction:
    """Relative motion and triangulated structure found at initialisation."""

    rotation: np.ndarray
    translation: np.ndarray
    points: np.ndarray
    triangulated: list[bool] = field(default_factory=list)


def _keypoint_array(keys: Any) -> np.ndarray:
    """Return keypoint coordinates as an Nx2 array.

    Accepts an array of coordinates, pairs, points with x and y, or
    keypoints carrying such a point in a ``pt`` attribute.
    """
    if isinstance(keys, np.ndarray):
        return keys.astype(np.float64).reshape(-1, 2)
    coords = []
    for key in keys:
        point = getattr(key, "pt", key)
        if hasattr(point, "x") and hasattr(point, "y"):
            coords.append((float(point.x), float(point.y)))
        else:
            values = tuple(point)
            coords.append((float(values[0]), float(values[1])))
    return np.array(coords, dtype=np.float64).reshape(-1, 2)


def _transfer(h: np.ndarray, points: np.ndarray) -> np.ndarray:
    x, y = points[:, 0], points[:, 1]
    w_inv = 1.0 / (h[2, 0] * x + h[2, 1] * y + h[2, 2])
    u = (h[0, 0] * x + h[0, 1] * y + h[0, 2]) * w_inv
    v = (h[1, 0] * x + h[1, 1] * y + h[1, 2]) * w_inv
    return np.column_stack([u, v])


class Initializer:
    """Estimates the first relative pose from a reference view and a current view.

    The reference view is fixed at construction; each call to
    :meth:`initialize` tries a new current view.
    """

    def __init__(
        self,
        keys1: Any,
        camera_matrix: Any,
        sigma: float = 1.0,
        iterations: int = 200,
    ) -> None:
        self.camera_matrix = np.array(camera_matrix, dtype=np.float64).reshape(3, 3)
        self.keys1 = _keypoint_array(keys1)
        self.sigma = float(sigma)
        self.sigma2 = self.sigma * self.sigma
        self.max_iterations = int(iterations)
        self.keys2 = np.empty((0, 2))
        self.matches: list[tuple[int, int]] = []
        self.matched1: list[bool] = [False] * len(self.keys1)
        self.sets: list[np.ndarray] = []

    def _prepare(self, keys2: Any, matches12: Sequence[int]) -> None:
        self.keys2 = _keypoint_array(keys2)
        self.matched1 = [False] * len(self.keys1)
        self.matches = []
        for i1, i2 in enumerate(matches12):
            i2 = int(i2)
            if i2 >= 0:
                self.matches.append((i1, i2))
                self.matched1[i1] = True
        n = len(self.matches)
        if n < _SAMPLE_SIZE:
            raise ValueError(
                f"at least {_SAMPLE_SIZE} matches are needed, got {n}"
            )
        rng = np.random.default_rng(0)
        self.sets = [
            rng.choice(n, size=_SAMPLE_SIZE, replace=False)
            for _ in range(self.max_iterations)
        ]

    def _require_matches(self) -> None:
        if not self.sets:
            raise RuntimeError("no matches prepared; call initialize first")

    def _matched_points(self) -> tuple[np.ndarray, np.ndarray]:
        if not self.matches:
            return np.empty((0, 2)), np.empty((0, 2))
        idx1 = [m[0] for m in self.matches]
        idx2 = [m[1] for m in self.matches]
        return self.keys1[idx1], self.keys2[idx2]

    def initialize(self, keys2: Any, matches12: Sequence[int]) -> Reconstruction | None:
        """Try to initialise from the current view.

        ``matches12[i]`` is the index in ``keys2`` matched to ``keys1[i]``,
        or negative when unmatched. Returns the reconstruction, or None if
        neither model gives an acceptable one.
        """
        self._prepare(keys2, matches12)

        with ThreadPoolExecutor(max_workers=2) as pool:
            homography_job = pool.submit(self.find_homography)
            fundamental_job = pool.submit(self.find_fundamental)
            h21, score_h, inliers_h = homography_job.result()
            f21, score_f, inliers_f = fundamental_job.result()

        total = score_h + score_f
        ratio = score_h / total if total != 0 else math.nan

        if ratio > 0.40:
            return self.reconstruct_h(inliers_h, h21, 1.0, 50)
        return self.reconstruct_f(inliers_f, f21, 1.0, 50)

    def find_homography(self) -> tuple[np.ndarray | None, float, list[bool]]:
        """Run RANSAC for a homography; return (H21, score, inlier flags)."""
        self._require_matches()
        pn1, t1 = normalize(self.keys1)
        pn2, t2 = normalize(self.keys2)
        t2_inv = np.linalg.inv(t2)
        idx1 = np.array([m[0] for m in self.matches])
        idx2 = np.array([m[1] for m in self.matches])

        best_h: np.ndarray | None = None
        best_score = 0.0
        best_inliers = [False] * len(self.matches)

        for sample in self.sets:
            hn = compute_h21(pn1[idx1[sample]], pn2[idx2[sample]])
            h21 = t2_inv @ hn @ t1
            try:
                h12 = np.linalg.inv(h21)
            except np.linalg.LinAlgError:
                continue
            score, inliers = self.check_homography(h21, h12)
            if score > best_score:
                best_h = h21.copy()
                best_inliers = inliers
                best_score = score

        return best_h, best_score, best_inliers

    def find_fundamental(self) -> tuple[np.ndarray | None, float, list[bool]]:
        """Run RANSAC for a fundamental matrix; return (F21, score, inlier flags)."""
        self._require_matches()
        pn1, t1 = normalize(self.keys1)
        pn2, t2 = normalize(self.keys2)
        t2_t = t2.T
        idx1 = np.array([m[0] for m in self.matches])
        idx2 = np.array([m[1] for m in self.matches])

        best_f: np.ndarray | None = None
        best_score = 0.0
        best_inliers = [False] * len(self.matches)

        for sample in self.sets:
            fn = compute_f21(pn1[idx1[sample]], pn2[idx2[sample]])
            f21 = t2_t @ fn @ t1
            score, inliers = self.check_fundamental(f21)
            if score > best_score:
                best_f = f21.copy()
                best_inliers = inliers
                best_score = score

        return best_f, best_score, best_inliers

    def check_homography(self, h21: Any, h12: Any) -> tuple[float, list[bool]]:
        """Score a homography pair by symmetric transfer error; return (score, inliers)."""
        h21 = np.asarray(h21, dtype=np.float64).reshape(3, 3)
        h12 = np.asarray(h12, dtype=np.float64).reshape(3, 3)
        p1, p2 = self._matched_points()
        inv_sigma2 = 1.0 / self.sigma2
        th = _HOMOGRAPHY_THRESHOLD

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            chi1 = np.sum((p1 - _transfer(h12, p2)) ** 2, axis=1) * inv_sigma2
            chi2 = np.sum((p2 - _transfer(h21, p1)) ** 2, axis=1) * inv_sigma2
            in1 = ~(chi1 > th)
            in2 = ~(chi2 > th)
            score = float(np.sum(np.where(in1, th - chi1, 0.0)))
            score += float(np.sum(np.where(in2, th - chi2, 0.0)))

        return score, [bool(v) for v in in1 & in2]

    def check_fundamental(self, f21: Any) -> tuple[float, list[bool]]:
        """Score a fundamental matrix by epipolar distances; return (score, inliers)."""
        f = np.asarray(f21, dtype=np.float64).reshape(3, 3)
        p1, p2 = self._matched_points()
        inv_sigma2 = 1.0 / self.sigma2
        th = _FUNDAMENTAL_THRESHOLD
        th_score = _FUNDAMENTAL_SCORE
        u1, v1 = p1[:, 0], p1[:, 1]
        u2, v2 = p2[:, 0], p2[:, 1]

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            a2 = f[0, 0] * u1 + f[0, 1] * v1 + f[0, 2]
            b2 = f[1, 0] * u1 + f[1, 1] * v1 + f[1, 2]
            c2 = f[2, 0] * u1 + f[2, 1] * v1 + f[2, 2]
            num2 = a2 * u2 + b2 * v2 + c2
            chi1 = num2 * num2 / (a2 * a2 + b2 * b2) * inv_sigma2

            a1 = f[0, 0] * u2 + f[1, 0] * v2 + f[2, 0]
            b1 = f[0, 1] * u2 + f[1, 1] * v2 + f[2, 1]
            c1 = f[0, 2] * u2 + f[1, 2] * v2 + f[2, 2]
            num1 = a1 * u1 + b1 * v1 + c1
            chi2 = num1 * num1 / (a1 * a1 + b1 * b1) * inv_sigma2

            in1 = ~(chi1 > th)
            in2 = ~(chi2 > th)
            score = float(np.sum(np.where(in1, th_score - chi1, 0.0)))
            score += float(np.sum(np.where(in2, th_score - chi2, 0.0)))

        return score, [bool(v) for v in in1 & in2]

    def reconstruct_f(
        self,
        inliers: Sequence[bool],
        f21: Any,
        min_parallax: float,
        min_triangulated: int,
    ) -> Reconstruction | None:
        """Recover motion from a fundamental matrix, choosing among four hypotheses."""
        if f21 is None:
            return None
        n_inliers = sum(1 for flag in inliers if flag)
        k = self.camera_matrix
        e21 = k.T @ np.asarray(f21, dtype=np.float64) @ k
        r1, r2, t = decompose_essential(e21)
        th2 = 4.0 * self.sigma2

        hypotheses = [(r1, t), (r2, t), (r1, -t), (r2, -t)]
        checks = [
            check_rt(r, tt, self.keys1, self.keys2, self.matches, inliers, k, th2)
            for r, tt in hypotheses
        ]
        goods = [c.good for c in checks]
        max_good = max(goods)
        min_good = max(int(0.9 * n_inliers), min_triangulated)
        similar = sum(1 for g in goods if g > 0.7 * max_good)

        if max_good < min_good or similar > 1:
            return None

        best = goods.index(max_good)
        check = checks[best]
        if check.parallax > min_parallax:
            rotation, translation = hypotheses[best]
            return Reconstruction(
                rotation=rotation.copy(),
                translation=translation.copy(),
                points=check.points,
                triangulated=check.triangulated,
            )
        return None

    def reconstruct_h(
        self,
        inliers: Sequence[bool],
        h21: Any,
        min_parallax: float,
        min_triangulated: int,
    ) -> Reconstruction | None:
        """Recover motion from a homography, choosing among eight hypotheses."""
        if h21 is None:
            return None
        n_inliers = sum(1 for flag in inliers if flag)
        k = self.camera_matrix
        a = np.linalg.inv(k) @ np.asarray(h21, dtype=np.float64) @ k

        u, w, vt = np.linalg.svd(a, full_matrices=True)
        s = float(np.linalg.det(u) * np.linalg.det(vt))
        d1, d2, d3 = (float(v) for v in w)

        if d2 == 0.0 or d3 == 0.0 or d1 / d2 < 1.00001 or d2 / d3 < 1.00001:
            return None

        aux1 = math.sqrt((d1 * d1 - d2 * d2) / (d1 * d1 - d3 * d3))
        aux3 = math.sqrt((d2 * d2 - d3 * d3) / (d1 * d1 - d3 * d3))
        x1 = [aux1, aux1, -aux1, -aux1]
        x3 = [aux3, -aux3, aux3, -aux3]

        rotations: list[np.ndarray] = []
        translations: list[np.ndarray] = []

        # Case d' = d2
        aux_stheta = math.sqrt((d1 * d1 - d2 * d2) * (d2 * d2 - d3 * d3)) / ((d1 + d3) * d2)
        ctheta = (d2 * d2 + d1 * d3) / ((d1 + d3) * d2)
        stheta = [aux_stheta, -aux_stheta, -aux_stheta, aux_stheta]
        for i in range(4):
            rp = np.eye(3)
            rp[0, 0] = ctheta
            rp[0, 2] = -stheta[i]
            rp[2, 0] = stheta[i]
            rp[2, 2] = ctheta
            rotations.append(s * u @ rp @ vt)
            tp = np.array([x1[i], 0.0, -x3[i]]) * (d1 - d3)
            t = u @ tp
            translations.append(t / np.linalg.norm(t))

        # Case d' = -d2
        aux_sphi = math.sqrt((d1 * d1 - d2 * d2) * (d2 * d2 - d3 * d3)) / ((d1 - d3) * d2)
        cphi = (d1 * d3 - d2 * d2) / ((d1 - d3) * d2)
        sphi = [aux_sphi, -aux_sphi, -aux_sphi, aux_sphi]
        for i in range(4):
            rp = np.eye(3)
            rp[0, 0] = cphi
            rp[0, 2] = sphi[i]
            rp[1, 1] = -1.0
            rp[2, 0] = sphi[i]
            rp[2, 2] = -cphi
            rotations.append(s * u @ rp @ vt)
            tp = np.array([x1[i], 0.0, x3[i]]) * (d1 + d3)
            t = u @ tp
            translations.append(t / np.linalg.norm(t))

        th2 = 4.0 * self.sigma2
        best_good = 0
        second_best_good = 0
        best_index = -1
        best_check = None

        for index, (rotation, translation) in enumerate(zip(rotations, translations)):
            check = check_rt(
                rotation, translation, self.keys1, self.keys2,
                self.matches, inliers, k, th2,
            )
            if check.good > best_good:
                second_best_good = best_good
                best_good = check.good
                best_index = index
                best_check = check
            elif check.good > second_best_good:
                second_best_good = check.good

        if (
            best_check is not None
            and second_best_good < 0.75 * best_good
            and best_check.parallax >= min_parallax
            and best_good > min_triangulated
            and best_good > 0.9 * n_inliers
        ):
            return Reconstruction(
                rotation=rotations[best_index].copy(),
                translation=translations[best_index].copy(),
                points=best_check.points,
                triangulated=best_check.triangulated,
            )
        return None