"""Tracking states and the status line shown under the current frame."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Sequence


class TrackingState(IntEnum):
    """State of the tracker after processing a frame."""

    SYSTEM_NOT_READY = -1
    NO_IMAGES_YET = 0
    NOT_INITIALIZED = 1
    OK = 2
    LOST = 3


@dataclass
class MatchFlags:
    """Which current keypoints match map points and which match odometry points."""

    map_points: list[bool] = field(default_factory=list)
    visual_odometry: list[bool] = field(default_factory=list)

    @property
    def tracked(self) -> int:
        """Number of keypoints matched to map points."""
        return sum(self.map_points)

    @property
    def tracked_vo(self) -> int:
        """Number of keypoints matched to visual-odometry points."""
        return sum(self.visual_odometry)


def status_text(
    state: int,
    only_tracking: bool,
    keyframes: int,
    map_points: int,
    tracked: int,
    tracked_vo: int,
) -> str:
    """Return the status line for a tracking state; unknown states give ''."""
    if state == TrackingState.NO_IMAGES_YET:
        return " WAITING FOR IMAGES"
    if state == TrackingState.NOT_INITIALIZED:
        return " TRYING TO INITIALIZE "
    if state == TrackingState.OK:
        prefix = "LOCALIZATION | " if only_tracking else "SLAM MODE |  "
        text = f"{prefix}KFs: {keyframes}, MPs: {map_points}, Matches: {tracked}"
        if tracked_vo > 0:
            text += f", + VO matches: {tracked_vo}"
        return text
    if state == TrackingState.LOST:
        return " TRACK LOST. TRYING TO RELOCALIZE "
    if state == TrackingState.SYSTEM_NOT_READY:
        return " LOADING ORB VOCABULARY. PLEASE WAIT..."
    return ""


def classify_matches(
    observations: Sequence[Optional[int]],
    outliers: Sequence[bool],
) -> MatchFlags:
    """Split tracked keypoints into map matches and visual-odometry matches.

    ``observations[i]`` is None when keypoint i has no map point, otherwise
    the number of keyframes observing that point. Outliers are ignored.
    """
    if len(observations) != len(outliers):
        raise ValueError("observations and outliers must have the same length")
    flags = MatchFlags()
    for count, outlier in zip(observations, outliers):
        tracked = count is not None and not outlier
        flags.map_points.append(bool(tracked and count > 0))
        flags.visual_odometry.append(bool(tracked and count <= 0))
    return flags


def next_display_state(state: int) -> TrackingState:
    """State to keep after drawing: a not-ready system moves on to waiting for images."""
    current = TrackingState(state)
    if current is TrackingState.SYSTEM_NOT_READY:
        return TrackingState.NO_IMAGES_YET
    return current