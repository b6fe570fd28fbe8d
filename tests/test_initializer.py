import numpy as np
import pytest

from orbslam.initializer import Initializer, Reconstruction

K = np.array([[500.0, 0.0, 320.0], [0.0, 500.0, 240.0], [0.0, 0.0, 1.0]])


def _rot_y(angle):
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


R_TRUE = _rot_y(0.05)
T_TRUE = np.array([1.0, 0.0, 0.0])


def _project(points, rotation, translation):
    cam = points @ rotation.T + translation
    uv = cam[:, :2] / cam[:, 2:3]
    return uv * np.array([K[0, 0], K[1, 1]]) + np.array([K[0, 2], K[1, 2]])


def _scene(n=100, seed=7):
    rng = np.random.default_rng(seed)
    x = rng.uniform(-2.0, 2.0, n)
    y = rng.uniform(-1.5, 1.5, n)
    z = rng.uniform(4.0, 10.0, n)
    return np.column_stack([x, y, z])


def _planar_scene(n=100, seed=3):
    rng = np.random.default_rng(seed)
    x = rng.uniform(-2.0, 2.0, n)
    y = rng.uniform(-1.5, 1.5, n)
    z = 6.0 + 0.3 * x
    return np.column_stack([x, y, z])


def _skew(v):
    return np.array([[0.0, -v[2], v[1]], [v[2], 0.0, -v[0]], [-v[1], v[0], 0.0]])


@pytest.fixture
def general_views():
    points = _scene()
    keys1 = _project(points, np.eye(3), np.zeros(3))
    keys2 = _project(points, R_TRUE, T_TRUE)
    extra = np.random.default_rng(11).uniform(0.0, 400.0, (10, 2))
    keys1_all = np.vstack([keys1, extra])
    matches = list(range(len(points))) + [-1] * len(extra)
    return points, keys1_all, keys2, matches


def test_initialize_recovers_motion_from_general_scene(general_views):
    points, keys1, keys2, matches = general_views
    initializer = Initializer(keys1, K, 1.0, 50)
    result = initializer.initialize(keys2, matches)
    assert isinstance(result, Reconstruction)
    assert np.allclose(result.rotation, R_TRUE, atol=1e-4)
    assert np.allclose(result.translation, T_TRUE, atol=1e-4)
    assert np.allclose(result.points[: len(points)], points, atol=1e-3)


def test_initialize_marks_only_matched_points_triangulated(general_views):
    points, keys1, keys2, matches = general_views
    initializer = Initializer(keys1, K, 1.0, 50)
    result = initializer.initialize(keys2, matches)
    assert all(result.triangulated[: len(points)])
    assert not any(result.triangulated[len(points):])
    assert initializer.matched1 == [m >= 0 for m in matches]


def test_initialize_needs_eight_matches():
    keys = np.random.default_rng(1).uniform(0, 300, (20, 2))
    initializer = Initializer(keys, K)
    matches = [0, 1, 2, 3, 4, 5, 6] + [-1] * 13
    with pytest.raises(ValueError):
        initializer.initialize(keys, matches)


def test_find_homography_requires_matches():
    keys = np.random.default_rng(1).uniform(0, 300, (20, 2))
    initializer = Initializer(keys, K)
    with pytest.raises(RuntimeError):
        initializer.find_homography()


def test_check_fundamental_with_true_matrix_accepts_all(general_views):
    points, keys1, keys2, matches = general_views
    initializer = Initializer(keys1, K, 1.0, 10)
    initializer._prepare(keys2, matches)
    k_inv = np.linalg.inv(K)
    f_true = k_inv.T @ _skew(T_TRUE) @ R_TRUE @ k_inv
    score, inliers = initializer.check_fundamental(f_true)
    assert all(inliers)
    assert len(inliers) == len(points)
    assert score == pytest.approx(2 * 5.991 * len(points), rel=1e-6)


def test_find_fundamental_is_best_on_general_scene(general_views):
    points, keys1, keys2, matches = general_views
    initializer = Initializer(keys1, K, 1.0, 30)
    initializer._prepare(keys2, matches)
    _, score_h, _ = initializer.find_homography()
    f21, score_f, inliers_f = initializer.find_fundamental()
    assert f21.shape == (3, 3)
    assert all(inliers_f)
    assert score_h / (score_h + score_f) < 0.40


def test_find_homography_fits_planar_scene():
    points = _planar_scene()
    keys1 = _project(points, np.eye(3), np.zeros(3))
    keys2 = _project(points, R_TRUE, T_TRUE)
    initializer = Initializer(keys1, K, 1.0, 20)
    initializer._prepare(keys2, list(range(len(points))))
    h21, score, inliers = initializer.find_homography()
    assert all(inliers)
    maximum = 2 * 5.991 * len(points)
    assert 0.99 * maximum < score <= maximum + 1e-9
    check_score, check_inliers = initializer.check_homography(h21, np.linalg.inv(h21))
    assert check_score == pytest.approx(score)
    assert check_inliers == inliers


def test_check_homography_rejects_wrong_model():
    points = _planar_scene()
    keys1 = _project(points, np.eye(3), np.zeros(3))
    keys2 = _project(points, R_TRUE, T_TRUE)
    initializer = Initializer(keys1, K, 1.0, 5)
    initializer._prepare(keys2, list(range(len(points))))
    score, inliers = initializer.check_homography(np.eye(3), np.eye(3))
    assert not any(inliers)
    assert score < 2 * 5.991 * len(points)


def test_reconstruct_h_rejects_identity_homography(general_views):
    _, keys1, keys2, matches = general_views
    initializer = Initializer(keys1, K, 1.0, 5)
    initializer._prepare(keys2, matches)
    assert initializer.reconstruct_h([True] * 100, np.eye(3), 1.0, 50) is None


def test_reconstruct_f_missing_matrix_returns_none(general_views):
    _, keys1, keys2, matches = general_views
    initializer = Initializer(keys1, K, 1.0, 5)
    initializer._prepare(keys2, matches)
    assert initializer.reconstruct_f([True] * 100, None, 1.0, 50) is None


def test_reconstruct_f_requires_enough_points(general_views):
    points, keys1, keys2, matches = general_views
    initializer = Initializer(keys1, K, 1.0, 5)
    initializer._prepare(keys2, matches)
    k_inv = np.linalg.inv(K)
    f_true = k_inv.T @ _skew(T_TRUE) @ R_TRUE @ k_inv
    inliers = [True] * len(points)
    accepted = initializer.reconstruct_f(inliers, f_true, 1.0, 50)
    rejected = initializer.reconstruct_f(inliers, f_true, 1.0, len(points) + 1)
    assert np.allclose(accepted.rotation, R_TRUE, atol=1e-6)
    assert rejected is None