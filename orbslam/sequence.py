"""Sensor kinds, image sequences and the timing of a replayed run."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterator, Sequence, Union

PathLike = Union[str, "os.PathLike[str]"]

_NANOSECONDS_PER_SECOND = 1e9


class Sensor(IntEnum):
    """Kind of camera input fed to the tracker."""

    MONOCULAR = 0
    STEREO = 1
    RGBD = 2


@dataclass
class MonocularSequence:
    """Image file names of a single camera with their timestamps in seconds."""

    images: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.images)

    def __iter__(self) -> Iterator[tuple[str, float]]:
        return iter(zip(self.images, self.timestamps))


@dataclass
class StereoSequence:
    """Left and right image file names with their timestamps in seconds."""

    left: list[str] = field(default_factory=list)
    right: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.left)

    def __iter__(self) -> Iterator[tuple[str, str, float]]:
        return iter(zip(self.left, self.right, self.timestamps))


@dataclass
class RgbdSequence:
    """Colour and depth image file names with their timestamps in seconds."""

    rgb: list[str] = field(default_factory=list)
    depth: list[str] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rgb)

    def __iter__(self) -> Iterator[tuple[str, str, float]]:
        return iter(zip(self.rgb, self.depth, self.timestamps))


@dataclass(frozen=True)
class TrackingStats:
    """Median and mean time spent tracking one frame, in seconds."""

    median: float
    mean: float


def _read_time_lines(times_path: PathLike) -> Iterator[tuple[str, float]]:
    """Yield each non-empty line of a times file with its time in seconds.

    Lines hold a timestamp in nanoseconds, which also names the image.
    """
    with open(times_path, encoding="utf-8") as handle:
        for raw in handle:
            line = raw.rstrip("\n")
            if not line:
                continue
            tokens = line.split()
            if not tokens:
                raise ValueError(f"no timestamp in line {line!r}")
            try:
                nanoseconds = float(tokens[0])
            except ValueError as exc:
                raise ValueError(f"bad timestamp in line {line!r}") from exc
            yield line, nanoseconds / _NANOSECONDS_PER_SECOND


def load_euroc_monocular(image_path: PathLike, times_path: PathLike) -> MonocularSequence:
    """Read a EuRoC times file and name the image of each entry under image_path."""
    folder = os.fspath(image_path)
    sequence = MonocularSequence()
    for name, seconds in _read_time_lines(times_path):
        sequence.images.append(f"{folder}/{name}.png")
        sequence.timestamps.append(seconds)
    return sequence


def load_euroc_stereo(
    left_path: PathLike, right_path: PathLike, times_path: PathLike
) -> StereoSequence:
    """Read a EuRoC times file and name the left and right image of each entry."""
    left_folder = os.fspath(left_path)
    right_folder = os.fspath(right_path)
    sequence = StereoSequence()
    for name, seconds in _read_time_lines(times_path):
        sequence.left.append(f"{left_folder}/{name}.png")
        sequence.right.append(f"{right_folder}/{name}.png")
        sequence.timestamps.append(seconds)
    return sequence


def frame_wait_time(timestamps: Sequence[float], index: int, elapsed: float) -> float:
    """Seconds to wait after tracking frame ``index`` to keep the sequence's pace.

    The frame interval is the gap to the next timestamp, or to the previous
    one for the last frame; a lone frame has no interval. Nothing is waited
    when tracking took at least the interval.
    """
    count = len(timestamps)
    if not 0 <= index < count:
        raise IndexError(f"frame index {index} out of range for {count} frames")
    interval = 0.0
    if index < count - 1:
        interval = timestamps[index + 1] - timestamps[index]
    elif index > 0:
        interval = timestamps[index] - timestamps[index - 1]
    if elapsed < interval:
        return interval - elapsed
    return 0.0


def tracking_statistics(times: Sequence[float]) -> TrackingStats:
    """Median (upper middle when even) and mean of per-frame tracking times."""
    ordered = sorted(times)
    if not ordered:
        raise ValueError("no tracking times to summarise")
    return TrackingStats(
        median=ordered[len(ordered) // 2],
        mean=sum(ordered) / len(ordered),
    )