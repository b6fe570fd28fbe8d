[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "orbslam"
version = "0.1.0"
description = "Building blocks of a feature-based visual SLAM pipeline: two-view initialization, frames, pose conversions, plane fitting and dataset loaders."
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "slam",
    "visual-odometry",
    "computer-vision",
    "homography",
    "fundamental-matrix",
    "triangulation",
    "euroc",
    "kitti",
    "tum",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Recognition",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["orbslam"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
