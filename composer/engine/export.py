#!/usr/bin/env python3
"""
Timeline Exporter

Renders a whole timeline (main tab, all layers) frame by frame through the
deterministic compositor and writes a PNG sequence or a video file via moviepy.
Every item renders inside its own error boundary; no item failure stops the export.
"""

import math
import time
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
from moviepy import VideoClip
from PIL import Image

from composer.core import RenderCfg, get_logger

from .color import hex_to_rgb, normalize_hex
from .compositor import FrameCompositor, with_opacity
from .frames import local_time
from .placeholders import ERRORED, UNSUPPORTED, placeholder
from .sdk import MAIN_TAB_ID
from .timeline import Timeline

log = get_logger("export")

VIDEO_SUFFIXES = {".mp4", ".mov", ".webm", ".mkv"}


class TimelineExporter:
    def __init__(self, timeline: Timeline, compositor: FrameCompositor, render_cfg: Optional[RenderCfg] = None):
        self.timeline = timeline
        self.compositor = compositor
        self.cfg = render_cfg or RenderCfg()
        self.size = (self.cfg.width, self.cfg.height)

    @property
    def fps(self) -> int:
        return self.compositor.fps

    def frame_count(self) -> int:
        return int(math.ceil(self.timeline.total_duration() * self.fps - 1e-9))

    def frame_time(self, index: int) -> float:
        return index / float(self.fps)

    def render_frame(self, t: float) -> Image.Image:
        """Composite every active item of the main tab at time t into an RGB frame."""
        background = normalize_hex(self.cfg.background) or "#000000"
        canvas = Image.new("RGBA", self.size, hex_to_rgb(background) + (255,))
        layers = {l.id: l for l in self.timeline.layers()}
        for item in self.timeline.items_at(t, MAIN_TAB_ID):
            definition = self.timeline.catalog.lookup(item.asset_type)
            if definition is None:
                img = placeholder(self.size, UNSUPPORTED, item.asset_type)
            else:
                try:
                    img = self.compositor.render_item(item, definition, local_time(item, t), self.size)
                except Exception as e:
                    log.warning(f"[{item.id}] export render failed at {t:.3f}s: {e}")
                    img = placeholder(self.size, ERRORED, item.asset_type, str(e))
            if img is None:
                continue
            if img.size != self.size:
                img = img.resize(self.size, Image.Resampling.LANCZOS)
            canvas.alpha_composite(with_opacity(img.convert("RGBA"), layers[item.layer_id].opacity))
        return canvas.convert("RGB")

    def export_frames(self, out_dir: Union[str, Path]) -> List[Path]:
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        total = self.frame_count()
        start = time.time()
        for index in range(total):
            path = out_dir / f"frame_{index:05d}.png"
            self.render_frame(self.frame_time(index)).save(path, "PNG")
            paths.append(path)
        log.info(f"Exported {total} frames to {out_dir} in {time.time() - start:.1f}s")
        return paths

    def export_video(self, out_path: Union[str, Path], codec: Optional[str] = None) -> Path:
        """
        Raises:
            ValueError: If the timeline is empty
        """
        out_path = Path(out_path)
        total = self.frame_count()
        if total <= 0:
            raise ValueError("Timeline is empty, nothing to export")
        out_path.parent.mkdir(parents=True, exist_ok=True)

        def make_frame(t: float) -> np.ndarray:
            index = min(total - 1, max(0, int(round(t * self.fps))))
            return np.asarray(self.render_frame(self.frame_time(index)))

        start = time.time()
        # frames are rendered on demand while the encoder pulls them
        clip = VideoClip(make_frame, duration=total / float(self.fps))
        try:
            clip.write_videofile(str(out_path), fps=self.fps, codec=codec or self.cfg.codec, audio=False, logger=None)
        finally:
            clip.close()
        log.info(f"Exported {total} frames to {out_path} in {time.time() - start:.1f}s")
        return out_path

    def export(self, out: Union[str, Path]) -> Union[Path, List[Path]]:
        """Video for a known video suffix, PNG sequence directory otherwise."""
        out = Path(out)
        if out.suffix.lower() in VIDEO_SUFFIXES:
            return self.export_video(out)
        return self.export_frames(out)
