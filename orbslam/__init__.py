"""Building blocks for feature-based visual SLAM: pose conversions, two-view geometry and initialization, frames, tracking status, dataset loaders and plane fitting."""

__version__ = "0.1.0"

__all__ = [
    "converter",
    "datasets",
    "frame",
    "geometry",
    "initializer",
    "plane",
    "sequence",
    "status",
]