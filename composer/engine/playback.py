#!/usr/bin/env python3
"""
Playback Clock

Fixed-tick playback clock driving the preview.
"""

import math
from typing import Callable, Union

from composer.core import get_logger

log = get_logger("playback")

DurationSource = Union[float, Callable[[], float]]


class PlaybackClock:
    """
    Advances current time by a fixed tick while playing.

    Playback stops at the end of the timeline; playing again from the end restarts at 0.
    The duration may be a number or a callable, so a live timeline can be followed.
    """

    def __init__(self, duration: DurationSource, tick_seconds: float = 0.033):
        if tick_seconds <= 0:
            raise ValueError("tick_seconds must be positive")
        self._duration = duration
        self.tick_seconds = tick_seconds
        self.current_time = 0.0
        self.playing = False

    @property
    def duration(self) -> float:
        value = self._duration() if callable(self._duration) else self._duration
        return max(0.0, float(value))

    def play(self) -> bool:
        total = self.duration
        if total <= 0:
            return False
        if self.current_time >= total:
            self.current_time = 0.0
        self.playing = True
        return True

    def pause(self) -> None:
        self.playing = False

    def toggle(self) -> bool:
        if self.playing:
            self.pause()
        else:
            self.play()
        return self.playing

    def seek(self, t: float) -> float:
        if t is None or not math.isfinite(t):
            return self.current_time
        self.current_time = max(0.0, min(self.duration, float(t)))
        return self.current_time

    def tick(self) -> float:
        """Advance one tick; stops (and pins to the end) when the timeline runs out."""
        if not self.playing:
            return self.current_time
        total = self.duration
        self.current_time += self.tick_seconds
        if self.current_time >= total:
            self.current_time = total
            self.playing = False
            log.info(f"Playback reached end at {total:.3f}s")
        return self.current_time
