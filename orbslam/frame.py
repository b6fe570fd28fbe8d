"""A camera frame: keypoints, their undistorted positions, depth and pose."""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import numpy as np

GRID_COLS = 64
GRID_ROWS = 48

_UNDISTORT_ITERATIONS = 5
_frame_ids = itertools.count()


def _round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass(frozen=True)
class KeyPoint:
    """An image feature at (x, y) detected at a pyramid level."""

    x: float
    y: float
    octave: int = 0

    @property
    def pt(self) -> tuple[float, float]:
        """The position as an (x, y) pair."""
        return (self.x, self.y)


@dataclass(frozen=True)
class Camera:
    """Pinhole intrinsics, distortion (k1, k2, p1, p2[, k3]) and stereo baseline."""

    fx: float
    fy: float
    cx: float
    cy: float
    distortion: tuple[float, ...] = (0.0, 0.0, 0.0, 0.0)
    bf: float = 0.0
    th_depth: float = 0.0

    def matrix(self) -> np.ndarray:
        """Return the 3x3 calibration matrix."""
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]]
        )

    @property
    def is_distorted(self) -> bool:
        """True when the first distortion coefficient is non-zero."""
        return bool(self.distortion) and self.distortion[0] != 0.0


@dataclass(frozen=True)
class ImageBounds:
    """Extent of the undistorted image."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def grid_element_width_inv(self) -> float:
        return GRID_COLS / (self.max_x - self.min_x)

    @property
    def grid_element_height_inv(self) -> float:
        return GRID_ROWS / (self.max_y - self.min_y)


def undistort_points(points: Any, camera: Camera) -> np.ndarray:
    """Remove lens distortion from pixel points, keeping the same calibration.

    The normalised coordinates are refined by a fixed number of
    fixed-point iterations of the radial-tangential model.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    coeffs = list(camera.distortion[:5]) + [0.0] * (5 - min(5, len(camera.distortion)))
    k1, k2, p1, p2, k3 = coeffs
    x0 = (pts[:, 0] - camera.cx) / camera.fx
    y0 = (pts[:, 1] - camera.cy) / camera.fy
    x, y = x0.copy(), y0.copy()
    for _ in range(_UNDISTORT_ITERATIONS):
        r2 = x * x + y * y
        icdist = 1.0 / (1.0 + ((k3 * r2 + k2) * r2 + k1) * r2)
        delta_x = 2.0 * p1 * x * y + p2 * (r2 + 2.0 * x * x)
        delta_y = p1 * (r2 + 2.0 * y * y) + 2.0 * p2 * x * y
        x = (x0 - delta_x) * icdist
        y = (y0 - delta_y) * icdist
    return np.column_stack([x * camera.fx + camera.cx, y * camera.fy + camera.cy])


def compute_image_bounds(width: float, height: float, camera: Camera) -> ImageBounds:
    """Bounds of an image of the given size after undistortion."""
    if not camera.is_distorted:
        return ImageBounds(0.0, float(width), 0.0, float(height))
    corners = undistort_points(
        [(0.0, 0.0), (width, 0.0), (0.0, height), (width, height)], camera
    )
    return ImageBounds(
        min_x=float(min(corners[0, 0], corners[2, 0])),
        max_x=float(max(corners[1, 0], corners[3, 0])),
        min_y=float(min(corners[0, 1], corners[1, 1])),
        max_y=float(max(corners[2, 1], corners[3, 1])),
    )


def _undistort_keypoints(keypoints: list[KeyPoint], camera: Camera) -> list[KeyPoint]:
    if not camera.is_distorted or not keypoints:
        return list(keypoints)
    moved = undistort_points([kp.pt for kp in keypoints], camera)
    return [
        KeyPoint(float(u), float(v), kp.octave) for kp, (u, v) in zip(keypoints, moved)
    ]


@dataclass
class Frame:
    """Features of one image with their stereo information and camera pose."""

    keypoints: list[KeyPoint]
    keypoints_un: list[KeyPoint]
    descriptors: np.ndarray
    timestamp: float
    camera: Camera
    bounds: ImageBounds
    u_right: list[float]
    depth: list[float]
    id: int = field(default_factory=lambda: next(_frame_ids))
    map_points: list[Any] = field(default_factory=list)
    outliers: list[bool] = field(default_factory=list)
    grid: list[list[list[int]]] = field(default_factory=list, repr=False)
    tcw: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        n = len(self.keypoints)
        if not self.map_points:
            self.map_points = [None] * n
        if not self.outliers:
            self.outliers = [False] * n
        if not self.grid:
            self._assign_features_to_grid()
        if self.tcw is not None:
            self.set_pose(self.tcw)

    @classmethod
    def monocular(
        cls,
        keypoints: Sequence[KeyPoint],
        descriptors: Any,
        timestamp: float,
        camera: Camera,
        image_size: tuple[int, int],
    ) -> "Frame":
        """Build a frame from a single image; image_size is (width, height)."""
        keys = list(keypoints)
        width, height = image_size
        n = len(keys)
        return cls(
            keypoints=keys,
            keypoints_un=_undistort_keypoints(keys, camera),
            descriptors=np.asarray(descriptors),
            timestamp=float(timestamp),
            camera=camera,
            bounds=compute_image_bounds(width, height, camera),
            u_right=[-1.0] * n,
            depth=[-1.0] * n,
        )

    @classmethod
    def rgbd(
        cls,
        keypoints: Sequence[KeyPoint],
        descriptors: Any,
        depth: Any,
        timestamp: float,
        camera: Camera,
    ) -> "Frame":
        """Build a frame from an image and its registered depth map (in metres)."""
        keys = list(keypoints)
        depth_map = np.asarray(depth, dtype=np.float64)
        if depth_map.ndim != 2:
            raise ValueError("depth map must be two-dimensional")
        keys_un = _undistort_keypoints(keys, camera)
        u_right = [-1.0] * len(keys)
        depths = [-1.0] * len(keys)
        for i, (kp, kp_un) in enumerate(zip(keys, keys_un)):
            d = float(depth_map[int(kp.y), int(kp.x)])
            if d > 0:
                depths[i] = d
                u_right[i] = kp_un.x - camera.bf / d
        height, width = depth_map.shape
        return cls(
            keypoints=keys,
            keypoints_un=keys_un,
            descriptors=np.asarray(descriptors),
            timestamp=float(timestamp),
            camera=camera,
            bounds=compute_image_bounds(width, height, camera),
            u_right=u_right,
            depth=depths,
        )

    @property
    def n(self) -> int:
        """Number of keypoints."""
        return len(self.keypoints)

    @property
    def baseline(self) -> float:
        """Stereo baseline in metres."""
        return self.camera.bf / self.camera.fx

    def _assign_features_to_grid(self) -> None:
        self.grid = [[[] for _ in range(GRID_ROWS)] for _ in range(GRID_COLS)]
        for index, kp in enumerate(self.keypoints_un):
            cell = self.pos_in_grid(kp)
            if cell is not None:
                self.grid[cell[0]][cell[1]].append(index)

    def pos_in_grid(self, keypoint: KeyPoint) -> Optional[tuple[int, int]]:
        """Grid cell of an undistorted keypoint, or None if outside the grid."""
        pos_x = _round_half_away((keypoint.x - self.bounds.min_x) * self.bounds.grid_element_width_inv)
        pos_y = _round_half_away((keypoint.y - self.bounds.min_y) * self.bounds.grid_element_height_inv)
        if pos_x < 0 or pos_x >= GRID_COLS or pos_y < 0 or pos_y >= GRID_ROWS:
            return None
        return pos_x, pos_y

    def features_in_area(
        self,
        x: float,
        y: float,
        r: float,
        min_level: int = -1,
        max_level: int = -1,
    ) -> list[int]:
        """Indices of undistorted keypoints within a square window around (x, y).

        Levels are checked when min_level > 0 or max_level >= 0.
        """
        b = self.bounds
        min_cell_x = max(0, math.floor((x - b.min_x - r) * b.grid_element_width_inv))
        if min_cell_x >= GRID_COLS:
            return []
        max_cell_x = min(GRID_COLS - 1, math.ceil((x - b.min_x + r) * b.grid_element_width_inv))
        if max_cell_x < 0:
            return []
        min_cell_y = max(0, math.floor((y - b.min_y - r) * b.grid_element_height_inv))
        if min_cell_y >= GRID_ROWS:
            return []
        max_cell_y = min(GRID_ROWS - 1, math.ceil((y - b.min_y + r) * b.grid_element_height_inv))
        if max_cell_y < 0:
            return []

        check_levels = min_level > 0 or max_level >= 0
        found: list[int] = []
        for column in self.grid[min_cell_x:max_cell_x + 1]:
            for cell in column[min_cell_y:max_cell_y + 1]:
                for index in cell:
                    kp = self.keypoints_un[index]
                    if check_levels:
                        if kp.octave < min_level:
                            continue
                        if max_level >= 0 and kp.octave > max_level:
                            continue
                    if abs(kp.x - x) < r and abs(kp.y - y) < r:
                        found.append(index)
        return found

    def set_pose(self, tcw: Any) -> None:
        """Set the world-to-camera transform (4x4)."""
        matrix = np.array(tcw, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError("pose must be a 4x4 matrix")
        self.tcw = matrix

    def _require_pose(self) -> np.ndarray:
        if self.tcw is None:
            raise RuntimeError("frame has no pose")
        return self.tcw

    @property
    def rcw(self) -> np.ndarray:
        """Rotation from world to camera."""
        return self._require_pose()[:3, :3].copy()

    @property
    def rwc(self) -> np.ndarray:
        """Rotation from camera to world."""
        return self.rcw.T

    @property
    def t_cw(self) -> np.ndarray:
        """Translation from world to camera."""
        return self._require_pose()[:3, 3].copy()

    @property
    def camera_center(self) -> np.ndarray:
        """Camera centre in world coordinates."""
        return -self.rcw.T @ self.t_cw

    def unproject_stereo(self, index: int) -> Optional[np.ndarray]:
        """World position of keypoint ``index`` from its depth, or None without depth."""
        z = self.depth[index]
        if z <= 0:
            return None
        kp = self.keypoints_un[index]
        cam = self.camera
        x = (kp.x - cam.cx) * z / cam.fx
        y = (kp.y - cam.cy) * z / cam.fy
        return self.rwc @ np.array([x, y, z]) + self.camera_center

    def copy(self) -> "Frame":
        """Return an independent copy with the same id and pose."""
        return Frame(
            keypoints=list(self.keypoints),
            keypoints_un=list(self.keypoints_un),
            descriptors=self.descriptors.copy(),
            timestamp=self.timestamp,
            camera=self.camera,
            bounds=self.bounds,
            u_right=list(self.u_right),
            depth=list(self.depth),
            id=self.id,
            map_points=list(self.map_points),
            outliers=list(self.outliers),
            grid=[[list(cell) for cell in column] for column in self.grid],
            tcw=None if self.tcw is None else self.tcw.copy(),
        )