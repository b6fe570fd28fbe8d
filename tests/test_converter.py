import math

import numpy as np
import pytest

from orbslam.converter import (
    inverse_sim_transform,
    sim3_to_matrix,
    to_descriptor_list,
    to_matrix3,
    to_quaternion,
    to_se3,
    to_vector3,
)


def _rot_z(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def test_descriptor_list_splits_rows():
    desc = np.arange(12, dtype=np.uint8).reshape(3, 4)
    rows = to_descriptor_list(desc)
    assert len(rows) == 3
    for i, row in enumerate(rows):
        assert np.array_equal(row, desc[i])


def test_to_se3_places_blocks():
    rot = _rot_z(0.3)
    trans = [1.0, 2.0, 3.0]
    t = to_se3(rot, trans)
    assert t.shape == (4, 4)
    assert t.dtype == np.float32
    assert np.allclose(t[:3, :3], rot, atol=1e-6)
    assert np.allclose(t[:3, 3], trans)
    assert np.allclose(t[3], [0.0, 0.0, 0.0, 1.0])


def test_sim3_scales_rotation():
    rot = _rot_z(0.5)
    m = sim3_to_matrix(rot, [0.5, -1.0, 2.0], 2.5)
    assert np.allclose(m[:3, :3], 2.5 * rot, atol=1e-5)
    assert np.allclose(m[:3, 3], [0.5, -1.0, 2.0])


def test_to_vector3_from_column_and_point():
    class P:
        x, y, z = 4.0, 5.0, 6.0

    assert np.allclose(to_vector3(np.array([[1.0], [2.0], [3.0]])), [1.0, 2.0, 3.0])
    assert np.allclose(to_vector3(P()), [4.0, 5.0, 6.0])
    with pytest.raises(ValueError):
        to_vector3([1.0, 2.0])


def test_to_matrix3_takes_top_left():
    m = np.arange(16, dtype=np.float32).reshape(4, 4)
    assert np.array_equal(to_matrix3(m), m[:3, :3].astype(np.float64))
    with pytest.raises(ValueError):
        to_matrix3(np.eye(2))


def test_quaternion_identity():
    assert to_quaternion(np.eye(3)) == pytest.approx([0.0, 0.0, 0.0, 1.0])


def test_quaternion_half_turn_about_x():
    rot = np.diag([1.0, -1.0, -1.0])
    assert to_quaternion(rot) == pytest.approx([1.0, 0.0, 0.0, 0.0])


def test_quaternion_quarter_turn_about_z():
    q = to_quaternion(_rot_z(math.pi / 2))
    half = math.sqrt(0.5)
    assert q == pytest.approx([0.0, 0.0, half, half], abs=1e-6)


@pytest.mark.parametrize("angle", [0.1, 1.0, 2.5, 3.1])
def test_quaternion_is_unit(angle):
    q = to_quaternion(_rot_z(angle))
    assert sum(v * v for v in q) == pytest.approx(1.0, abs=1e-6)


def test_inverse_of_rigid_transform():
    t = to_se3(_rot_z(0.7), [1.0, -2.0, 0.5])
    inv = inverse_sim_transform(t)
    assert inv.dtype == t.dtype
    assert np.allclose(inv @ t, np.eye(4), atol=1e-5)


def test_inverse_of_scaled_block_removes_scale():
    t = np.eye(4)
    t[:3, :3] = 2.0 * np.eye(3)
    t[:3, 3] = [1.0, 2.0, 3.0]
    inv = inverse_sim_transform(t)
    assert np.allclose(inv[:3, :3], np.eye(3))
    assert np.allclose(inv[:3, 3], [-1.0, -2.0, -3.0])


def test_inverse_rejects_wrong_shape():
    with pytest.raises(ValueError):
        inverse_sim_transform(np.eye(3))