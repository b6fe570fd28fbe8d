"""Conversions between pose representations used by the tracker."""

from __future__ import annotations

from typing import Any

import numpy as np


def to_descriptor_list(descriptors: Any) -> list[np.ndarray]:
    """Split a descriptor matrix into one array per row."""
    matrix = np.asarray(descriptors)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    return [row.copy() for row in matrix]


def to_se3(rotation: Any, translation: Any) -> np.ndarray:
    """Build a 4x4 homogeneous transform from a 3x3 block and a translation."""
    rot = np.asarray(rotation, dtype=np.float64).reshape(3, 3)
    trans = np.asarray(translation, dtype=np.float64).reshape(3)
    transform = np.eye(4, dtype=np.float32)
    transform[:3, :3] = rot
    transform[:3, 3] = trans
    return transform


def sim3_to_matrix(rotation: Any, translation: Any, scale: float) -> np.ndarray:
    """Build the 4x4 matrix of a similarity: scaled rotation plus translation."""
    rot = np.asarray(rotation, dtype=np.float64).reshape(3, 3)
    return to_se3(scale * rot, translation)


def to_vector3(value: Any) -> np.ndarray:
    """Return a 3-vector from a column matrix, a sequence or a point with x, y, z."""
    if all(hasattr(value, name) for name in ("x", "y", "z")):
        return np.array([value.x, value.y, value.z], dtype=np.float64)
    flat = np.asarray(value, dtype=np.float64).reshape(-1)
    if flat.size < 3:
        raise ValueError("a 3-vector needs at least three elements")
    return flat[:3].copy()


def to_matrix3(matrix: Any) -> np.ndarray:
    """Return the top-left 3x3 block of a matrix in double precision."""
    arr = np.asarray(matrix, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[0] < 3 or arr.shape[1] < 3:
        raise ValueError("matrix must be at least 3x3")
    return arr[:3, :3].copy()


def to_quaternion(rotation: Any) -> list[float]:
    """Convert a rotation matrix to a quaternion ordered x, y, z, w."""
    m = to_matrix3(rotation)
    q = [0.0, 0.0, 0.0]
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0.0:
        t = np.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        q = [
            (m[2, 1] - m[1, 2]) * t,
            (m[0, 2] - m[2, 0]) * t,
            (m[1, 0] - m[0, 1]) * t,
        ]
    else:
        i = 0
        if m[1, 1] > m[0, 0]:
            i = 1
        if m[2, 2] > m[i, i]:
            i = 2
        j = (i + 1) % 3
        k = (j + 1) % 3
        t = np.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
        q[i] = 0.5 * t
        t = 0.5 / t
        w = (m[k, j] - m[j, k]) * t
        q[j] = (m[j, i] + m[i, j]) * t
        q[k] = (m[k, i] + m[i, k]) * t
    return [float(np.float32(v)) for v in (q[0], q[1], q[2], w)]


def inverse_sim_transform(transform: Any) -> np.ndarray:
    """Invert a 4x4 transform whose 3x3 block may carry a uniform scale.

    The rotation block of the result is the transpose of the input block
    divided by the cube root of its determinant.
    """
    matrix = np.asarray(transform)
    if matrix.shape != (4, 4):
        raise ValueError("transform must be a 4x4 matrix")
    dtype = matrix.dtype if np.issubdtype(matrix.dtype, np.floating) else np.float64
    block = matrix[:3, :3].astype(np.float64)
    scale = np.cbrt(np.linalg.det(block))
    rot_inv = block.T / scale
    trans = matrix[:3, 3].astype(np.float64)
    trans_inv = -rot_inv @ trans
    result = np.eye(4, dtype=dtype)
    result[:3, :3] = rot_inv
    result[:3, 3] = trans_inv
    return result