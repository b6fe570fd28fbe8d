"""Loaders for the KITTI and TUM image sequences."""

from __future__ import annotations

import os
from typing import Iterator

from .sequence import MonocularSequence, PathLike, RgbdSequence, StereoSequence

_TUM_HEADER_LINES = 3


def _content_lines(handle: Iterator[str]) -> Iterator[str]:
    """Yield the non-empty lines of a text stream without their line ends."""
    for raw in handle:
        line = raw.rstrip("\n")
        if line:
            yield line


def _fields(line: str, count: int) -> list[str]:
    tokens = line.split()
    if len(tokens) < count:
        raise ValueError(f"expected {count} fields in line {line!r}")
    return tokens


def _seconds(token: str, line: str) -> float:
    try:
        return float(token)
    except ValueError as exc:
        raise ValueError(f"bad timestamp in line {line!r}") from exc


def _read_kitti_times(sequence_path: PathLike) -> list[float]:
    times_file = os.path.join(os.fspath(sequence_path), "times.txt")
    with open(times_file, encoding="utf-8") as handle:
        return [
            _seconds(_fields(line, 1)[0], line) for line in _content_lines(handle)
        ]


def _kitti_name(folder: str, index: int) -> str:
    return f"{folder}{index:06d}.png"


def load_kitti_monocular(sequence_path: PathLike) -> MonocularSequence:
    """Read ``times.txt`` of a KITTI sequence and name its left colour images.

    Images are ``image_2/NNNNNN.png`` under the sequence folder, numbered
    from zero in the order of the timestamps.
    """
    folder = f"{os.fspath(sequence_path)}/image_2/"
    timestamps = _read_kitti_times(sequence_path)
    return MonocularSequence(
        images=[_kitti_name(folder, i) for i in range(len(timestamps))],
        timestamps=timestamps,
    )


def load_kitti_stereo(sequence_path: PathLike) -> StereoSequence:
    """Read ``times.txt`` of a KITTI sequence and name its grey stereo pairs.

    Left images are in ``image_0`` and right images in ``image_1``.
    """
    base = os.fspath(sequence_path)
    left_folder = f"{base}/image_0/"
    right_folder = f"{base}/image_1/"
    timestamps = _read_kitti_times(sequence_path)
    count = len(timestamps)
    return StereoSequence(
        left=[_kitti_name(left_folder, i) for i in range(count)],
        right=[_kitti_name(right_folder, i) for i in range(count)],
        timestamps=timestamps,
    )


def load_tum_monocular(sequence_path: PathLike) -> MonocularSequence:
    """Read ``rgb.txt`` of a TUM sequence, skipping its three header lines.

    Each entry holds a timestamp and an image name relative to the
    sequence folder; the returned names are joined to that folder.
    """
    base = os.fspath(sequence_path)
    sequence = MonocularSequence()
    with open(os.path.join(base, "rgb.txt"), encoding="utf-8") as handle:
        for _ in range(_TUM_HEADER_LINES):
            handle.readline()
        for line in _content_lines(handle):
            stamp, name = _fields(line, 2)[:2]
            sequence.timestamps.append(_seconds(stamp, line))
            sequence.images.append(f"{base}/{name}")
    return sequence


def load_tum_rgbd(association_path: PathLike) -> RgbdSequence:
    """Read a TUM association file of ``t rgb t depth`` lines.

    The timestamp kept is the colour image's; names are returned as
    written, relative to the sequence folder.
    """
    sequence = RgbdSequence()
    with open(association_path, encoding="utf-8") as handle:
        for line in _content_lines(handle):
            stamp, rgb, _depth_stamp, depth = _fields(line, 4)[:4]
            sequence.timestamps.append(_seconds(stamp, line))
            sequence.rgb.append(rgb)
            sequence.depth.append(depth)
    return sequence