# orbslam

Building blocks for a feature-based visual SLAM pipeline, written on top of
NumPy. The package is a library; it has no command-line entry points.

## Modules

- **`orbslam.converter`** – pose conversions: `to_se3` and `sim3_to_matrix`
  build 4x4 homogeneous matrices, `to_quaternion` turns a rotation matrix into
  a quaternion ordered `x, y, z, w`, `to_vector3` and `to_matrix3` extract
  vectors and 3x3 blocks, `to_descriptor_list` splits a descriptor matrix into
  rows, and `inverse_sim_transform` inverts a 4x4 transform whose 3x3 block
  carries a uniform scale.
- **`orbslam.geometry`** – two-view geometry: `normalize` (centring and
  scaling of points), `compute_h21` (homography by DLT), `compute_f21`
  (rank-2 fundamental matrix by the eight-point method), `triangulate`,
  `decompose_essential` (two rotations and a unit translation) and `check_rt`,
  which triangulates the inlier matches under one motion hypothesis and
  returns an `RTCheck` with the number of good points, their positions, the
  triangulated flags and the parallax in degrees.
- **`orbslam.initializer`** – `Initializer`, which runs RANSAC for a
  homography and a fundamental matrix in two threads, scores both, and
  reconstructs the relative motion and initial 3D points as a
  `Reconstruction`.
- **`orbslam.frame`** – `KeyPoint`, `Camera`, `ImageBounds` and `Frame`.
  Frames are built with `Frame.monocular` or `Frame.rgbd` from keypoints and
  descriptors that you supply; they undistort the keypoints, sort them into a
  64x48 grid for `features_in_area` queries, take depth from a registered
  depth map, and back-project keypoints with known depth through
  `unproject_stereo` once a pose is set with `set_pose`.
  `undistort_points` and `compute_image_bounds` are available on their own.
- **`orbslam.status`** – the `TrackingState` values, `status_text` (the
  status line shown under a frame), `classify_matches` (map-point matches vs.
  visual-odometry matches, as `MatchFlags`) and `next_display_state`.
- **`orbslam.sequence`** – `Sensor`, the sequence containers
  `MonocularSequence`, `StereoSequence` and `RgbdSequence`, the EuRoC loaders
  `load_euroc_monocular` and `load_euroc_stereo`, `frame_wait_time` and
  `tracking_statistics` (returning `TrackingStats`).
- **`orbslam.datasets`** – KITTI and TUM loaders: `load_kitti_monocular`,
  `load_kitti_stereo`, `load_tum_monocular` and `load_tum_rgbd`.
- **`orbslam.plane`** – `detect_plane` fits a plane by RANSAC to map points,
  giving a `Plane` with its normal, origin and world-to-plane transform
  (`tpw`, and `gl_tpw` as 16 column-major values). Also `Plane.from_normal`,
  `Plane.recompute`, `exp_so3`, `gl_matrix`, `status_label` and
  `plane_grid_lines`.

## Loading a sequence

```python
from orbslam.sequence import load_euroc_monocular, frame_wait_time, tracking_statistics
from orbslam.datasets import load_kitti_stereo, load_tum_rgbd

euroc = load_euroc_monocular("mav0/cam0/data", "timestamps/MH01.txt")
kitti = load_kitti_stereo("sequences/00")
tum = load_tum_rgbd("rgbd_dataset_freiburg1_xyz/associations.txt")

for image, timestamp in euroc:
    ...
```

- EuRoC: each non-empty line of the times file is a timestamp in nanoseconds;
  the image name is the line with `.png` appended, and the timestamp is
  returned in seconds.
- KITTI: `times.txt` holds times in seconds; images are the zero-padded frame
  index (`000000.png`, ...) under `image_2` (monocular) or `image_0` and
  `image_1` (stereo).
- TUM monocular: `rgb.txt` after its three header lines, with names joined to
  the sequence folder. TUM RGB-D: lines of `t rgb t depth`; the colour
  timestamp is kept and names are returned as written.

Malformed lines raise `ValueError`.

When replaying a sequence in real time, `frame_wait_time(timestamps, index,
elapsed)` gives the seconds to wait after frame `index`, given how long it
took to process. `tracking_statistics(times)` returns the median (upper
middle for an even count) and the mean of the per-frame times; it raises
`ValueError` for an empty list.

## Two-view initialization

```python
import numpy as np
from orbslam.initializer import Initializer

K = np.array([[500.0, 0.0, 320.0],
              [0.0, 500.0, 240.0],
              [0.0, 0.0, 1.0]])

initializer = Initializer(reference_keypoints, K, 1.0, 200)
reconstruction = initializer.initialize(current_keypoints, matches12)
if reconstruction is not None:
    R, t = reconstruction.rotation, reconstruction.translation
```

Keypoints may be an Nx2 array, `(x, y)` pairs, or objects with `x`/`y` or a
`pt` attribute. `matches12[i]` is the index of the current keypoint matched
with reference keypoint `i`, or negative when there is none; at least eight
matches are required (otherwise `ValueError`). The homography is used when
its share of the combined score is above 0.40, the fundamental matrix
otherwise. `None` is returned when the chosen model gives no clear,
well-conditioned solution with enough parallax.

## Conversions

```python
import numpy as np
from orbslam.converter import to_se3, to_quaternion, inverse_sim_transform

T = to_se3(np.eye(3), [1.0, 2.0, 3.0])
qx, qy, qz, qw = to_quaternion(T[:3, :3])
T_inv = inverse_sim_transform(T)
```

## Planes

```python
import numpy as np
from orbslam.plane import detect_plane

plane = detect_plane(Tcw, points, observations, 50, np.random.default_rng(0))
```

`points[i]` is a world position or `None`, and `observations[i]` how many
keyframes observe it. Only points observed more than five times take part,
and at least fifty of them are needed; otherwise `None` is returned. The
plane's origin is the centroid of the inlier points, and its normal is turned
away from the camera centre of the pose it was first fitted with.

## What the package does not do

It does not read images, extract or match ORB features, compute stereo
matches between left and right images, or run a tracking, mapping or
loop-closing loop. There is no viewer or drawing, no saving of trajectories
or maps, and no program that processes a dataset end to end: the loaders
produce file names and timestamps, and the rest of the pipeline is left to
the caller.