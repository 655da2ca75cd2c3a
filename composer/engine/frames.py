#!/usr/bin/env python3
"""
Frame/Time Mapper

Maps project time to animation frame indices. The item's own authored duration is
always the time base, so every item scrubs its animation over exactly its span.
"""

import math
from typing import Any, Mapping, Optional

from composer.core import get_logger

from .sdk import TimelineItem

log = get_logger("frames")


def round_half_up(value: float) -> int:
    """round() in Python rounds half to even; frame mapping rounds half up."""
    return int(math.floor(value + 0.5))


def frame_for(
    current_time: float,
    item_duration: float,
    frame_rate: Optional[float] = None,
    frame_count: int = 1,
) -> int:
    """
    Map an item-local time to a frame index.

    frame = round((current_time / item_duration) * frame_count), clamped to
    [0, frame_count - 1]. frame_rate is accepted for call-site symmetry with the
    document header but does not influence the result.

    Args:
        current_time: Seconds since the item started
        item_duration: Authoritative item duration in seconds
        frame_rate: Document frame rate (unused)
        frame_count: Number of frames in the animation

    Returns:
        Frame index
    """
    if frame_count <= 1 or item_duration <= 0:
        return 0
    if current_time is None or not math.isfinite(current_time) or current_time <= 0:
        return 0
    frame = round_half_up((current_time / item_duration) * frame_count)
    return max(0, min(frame_count - 1, frame))


def frame_count(document: Mapping[str, Any]) -> int:
    """Frames between the document in-point and out-point (at least 1)."""
    try:
        ip = float(document.get("ip", 0) or 0)
        op = float(document.get("op", 0) or 0)
    except (TypeError, ValueError):
        log.debug(f"Malformed in/out points ({document.get('ip')!r}, {document.get('op')!r}), using 1 frame")
        return 1
    return max(1, int(round(op - ip)))


def frame_rate(document: Mapping[str, Any], default: float = 30.0) -> float:
    try:
        fr = float(document.get("fr", default))
    except (TypeError, ValueError):
        log.debug(f"Malformed frame rate {document.get('fr')!r}, using {default}")
        return default
    return fr if fr > 0 else default


def local_time(item: TimelineItem, project_time: float) -> float:
    """Seconds since the item started (negative before its start)."""
    return project_time - item.start_time


def document_frame(item: TimelineItem, project_time: float, document: Mapping[str, Any]) -> float:
    """Absolute frame number inside the document (offset by its in-point)."""
    index = frame_for(local_time(item, project_time), item.duration, frame_rate(document), frame_count(document))
    return float(document.get("ip", 0) or 0) + index


def progress(frame: int, total_frames: int) -> float:
    """Overall progress fraction p = frame / total_frames, clamped to [0, 1]."""
    if total_frames <= 0:
        return 0.0
    return max(0.0, min(1.0, frame / float(total_frames)))
