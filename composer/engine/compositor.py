#!/usr/bin/env python3
"""
Deterministic Frame Compositor

Export-time renderer that synthesizes animation families procedurally with Pillow from
an item's property set. It does not use the vector document, the property injector or
the interactive rasterizer: every parameter is a closed-form function of the overall
progress p = frame / total_frames.

Because the interactive preview draws the vector document while this module draws its
own approximation, preview and export only match approximately.

Families:
    logo_split      enter (p <= 1/3) scale in, hold, exit (p > 2/3) translate off-frame
    animated_logo   fadeIn / slideInLeft / scaleIn / bounceIn, right logo delayed
    fade_in         black overlay fading out
    fade_out        black overlay fading in
    sms_thread      chat bubbles revealed one by one
Media images, video frames and text items are drawn directly.
"""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from moviepy import VideoFileClip
from PIL import Image, ImageDraw

from composer.core import GlobalCfg, get_logger

from .color import hex_to_rgb, hex_to_rgba, normalize_hex
from .media import load_image
from .placeholders import draw_centered, get_font
from .sdk import DEFAULT_BACKGROUND, TRANSPARENT, VIDEO_W, AssetDefinition, Paths, TimelineItem

log = get_logger("compositor")

ENTER = "enter"
HOLD = "hold"
EXIT = "exit"

ENTER_END = 1.0 / 3.0
HOLD_END = 2.0 / 3.0

Size = Tuple[int, int]


@dataclass(frozen=True)
class PhaseParams:
    phase: str
    radius: float  # fraction of the full circle radius
    offset_x: float  # fraction of the distance needed to leave the frame
    opacity: float


def phase_params(p: float) -> PhaseParams:
    """
    Closed-form logo_split parameters at overall progress p.

    enter: radius grows linearly 0 -> 1; hold: static; exit: elements slide apart
    (offset 0 -> 1) while fading out.
    """
    p = max(0.0, min(1.0, p))
    if p <= ENTER_END:
        return PhaseParams(ENTER, p / ENTER_END, 0.0, 1.0)
    if p <= HOLD_END:
        return PhaseParams(HOLD, 1.0, 0.0, 1.0)
    local = (p - HOLD_END) / (1.0 - HOLD_END)
    return PhaseParams(EXIT, 1.0, local, 1.0 - local)


@dataclass(frozen=True)
class LogoMotion:
    alpha: float = 1.0
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0


def logo_motion(animation_type: str, progress: float, width: float, delayed: bool = False) -> LogoMotion:
    """Per-logo motion for animated_logo. The delayed (right) logo never slides."""
    progress = max(0.0, min(1.0, progress))
    if animation_type == "fadeIn":
        return LogoMotion(alpha=progress)
    if animation_type == "slideInLeft":
        return LogoMotion() if delayed else LogoMotion(offset_x=-width * (1 - progress))
    if animation_type == "scaleIn":
        return LogoMotion(scale=progress)
    if animation_type == "bounceIn":
        scale = progress * 2 if progress < 0.5 else 1.0
        bounce = -20 * (1 - progress * 2) if progress < 0.5 and not delayed else 0.0
        return LogoMotion(scale=scale, offset_y=bounce)
    return LogoMotion()


def with_opacity(img: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1.0:
        return img
    img = img.convert("RGBA")
    alpha = img.getchannel("A").point(lambda v: int(v * max(0.0, opacity)))
    img.putalpha(alpha)
    return img


def fit_within(img: Image.Image, box: Tuple[float, float]) -> Image.Image:
    ratio = min(box[0] / img.width, box[1] / img.height)
    w, h = max(1, int(img.width * ratio)), max(1, int(img.height * ratio))
    return img.resize((w, h), Image.Resampling.LANCZOS)


def _background(size: Size, color: Optional[str]) -> Image.Image:
    if color is None or str(color).strip().lower() == TRANSPARENT:
        return Image.new("RGBA", size, (0, 0, 0, 0))
    hex_color = normalize_hex(str(color)) or DEFAULT_BACKGROUND
    return Image.new("RGBA", size, hex_to_rgba(hex_color))


def _number(value: Any, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _image_source(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, Mapping):
        return value.get("data") or value.get("url") or None
    return None


class FrameCompositor:
    """Procedural per-item frame synthesis at a fixed output size and frame rate."""

    def __init__(
        self,
        width: int = 1920,
        height: int = 1080,
        fps: int = 30,
        base_dir: Optional[Union[str, Path]] = None,
    ):
        self.size: Size = (width, height)
        self.fps = fps
        self.base_dir = Path(base_dir) if base_dir else Paths.data_dir()
        self._images: Dict[str, Optional[Image.Image]] = {}
        self._clips: Dict[str, Any] = {}
        self.families: Dict[str, Callable[[Mapping[str, Any], float, Size], Image.Image]] = {
            "logo_split": self.logo_split,
            "animated_logo": self.animated_logo,
            "fade_in": self.fade_in,
            "fade_out": self.fade_out,
            "sms_thread": self.sms_thread,
        }

    @classmethod
    def from_config(cls, cfg: GlobalCfg) -> "FrameCompositor":
        return cls(cfg.render.width, cfg.render.height, cfg.render.fps, cfg.storage.data_dir)

    # -------------------------------------------------------------- dispatch

    def item_progress(self, item: TimelineItem, local_time: float) -> Tuple[int, int, float]:
        """(frame, total_frames, p) of an item at item-local time."""
        total = max(1, int(round(item.duration * self.fps)))
        frame = int(math.floor(max(0.0, local_time) * self.fps + 1e-9))
        frame = max(0, min(total - 1, frame))
        return frame, total, frame / float(total)

    def render_family(self, family: str, properties: Mapping[str, Any], frame: int, total_frames: int, size: Optional[Size] = None) -> Image.Image:
        """
        Raises:
            KeyError: If the family is unknown
        """
        renderer = self.families[family]
        p = frame / float(total_frames) if total_frames > 0 else 0.0
        return renderer(properties, max(0.0, min(1.0, p)), size or self.size)

    def render_item(
        self,
        item: TimelineItem,
        definition: Optional[AssetDefinition],
        local_time: float,
        size: Optional[Size] = None,
    ) -> Optional[Image.Image]:
        """
        Draw one item at item-local time. None means the item draws nothing (audio).

        Raises:
            ValueError: If a media item has no usable source
            OSError: If a media source cannot be read
        """
        size = size or self.size
        family = definition.metadata.family if definition else None
        if family in self.families:
            frame, total, _ = self.item_progress(item, local_time)
            return self.render_family(family, item.properties, frame, total, size)
        if item.asset_type == "image":
            return self.media_image(item.properties, size)
        if item.asset_type == "video":
            return self.video_frame(item.properties, local_time, size)
        if item.asset_type == "text":
            return self.text(item.properties, size)
        return None

    # -------------------------------------------------------------- families

    def logo_split(self, props: Mapping[str, Any], p: float, size: Size) -> Image.Image:
        w, h = size
        canvas = _background(size, props.get("backgroundColor") or DEFAULT_BACKGROUND)
        params = phase_params(p)
        full_radius = min(w, h) * 0.22
        radius = full_radius * params.radius
        if radius < 1 or params.opacity <= 0:
            return canvas

        travel = (w / 4.0 + radius) * params.offset_x
        centers = ((w / 4.0 - travel, h / 2.0), (w * 3 / 4.0 + travel, h / 2.0))
        layer = Image.new("RGBA", size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for cx, cy in centers:
            draw.ellipse([cx - radius, cy - radius, cx + radius, cy + radius], fill=(255, 255, 255, 255))

        logo = self._load(_image_source(props.get("customerLogo")))
        if logo is not None:
            side = max(1.0, radius * math.sqrt(2) * max(0.0, _number(props.get("logoScale"), 1.0)))
            fitted = fit_within(logo, (side, side))
            cx, cy = centers[0]
            layer.paste(fitted, (int(cx - fitted.width / 2), int(cy - fitted.height / 2)), fitted)

        canvas.alpha_composite(with_opacity(layer, params.opacity))
        return canvas

    def animated_logo(self, props: Mapping[str, Any], p: float, size: Size) -> Image.Image:
        w, h = size
        canvas = _background(size, props.get("backgroundColor") or "#ffffff")
        animation = props.get("animationType") or "fadeIn"
        margin = w * 0.05
        box = (w * 0.3, h * 0.4)

        left = self._load(_image_source(props.get("customerLogo")))
        left = fit_within(left, box) if left is not None else Image.new("RGBA", (int(box[0]), int(box[1] / 2)), (24, 76, 180, 255))
        motion = logo_motion(animation, p, left.width)
        self._paste_logo(canvas, left, (margin + left.width / 2, h / 2), motion)

        right = self._load(_image_source(props.get("partnerLogo")))
        if right is None:
            right = Image.new("RGBA", (left.height * 2, left.height), (0, 161, 224, 255))
        else:
            right = fit_within(right, box)
        delayed = logo_motion(animation, max(0.0, (p - 0.5) * 2), right.width, delayed=True)
        self._paste_logo(canvas, right, (w - margin - right.width / 2, h / 2), delayed)
        return canvas

    def _paste_logo(self, canvas: Image.Image, logo: Image.Image, center: Tuple[float, float], motion: LogoMotion) -> None:
        if motion.scale <= 0 or motion.alpha <= 0:
            return
        w = max(1, int(logo.width * motion.scale))
        h = max(1, int(logo.height * motion.scale))
        scaled = with_opacity(logo.resize((w, h), Image.Resampling.LANCZOS), motion.alpha)
        x = int(center[0] + motion.offset_x - w / 2)
        y = int(center[1] + motion.offset_y - h / 2)
        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        layer.paste(scaled, (x, y), scaled)
        canvas.alpha_composite(layer)

    def fade_in(self, props: Mapping[str, Any], p: float, size: Size) -> Image.Image:
        return Image.new("RGBA", size, (0, 0, 0, int(round(255 * (1.0 - p)))))

    def fade_out(self, props: Mapping[str, Any], p: float, size: Size) -> Image.Image:
        return Image.new("RGBA", size, (0, 0, 0, int(round(255 * p))))

    def sms_thread(self, props: Mapping[str, Any], p: float, size: Size) -> Image.Image:
        w, h = size
        canvas = Image.new("RGBA", size, (0, 0, 0, 0))
        messages = [m for m in props.get("messages") or [] if isinstance(m, Mapping)]
        if not messages:
            return canvas
        shown = min(len(messages), int(math.floor(p * len(messages))) + 1)
        k = w / float(VIDEO_W) * _number(props.get("scale"), 1.0)
        font = get_font(max(10, int(28 * k)))
        draw = ImageDraw.Draw(canvas)
        y = h * 0.1
        for message in messages[:shown]:
            text = str(message.get("text") or "")
            left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
            bw, bh = right - left + 40 * k, bottom - top + 24 * k
            agent = message.get("sender") == "agent"
            x = w * 0.7 - bw if agent else w * 0.3
            fill = (0, 122, 255, 255) if agent else (229, 229, 234, 255)
            ink = (255, 255, 255, 255) if agent else (0, 0, 0, 255)
            draw.rounded_rectangle([x, y, x + bw, y + bh], radius=18 * k, fill=fill)
            draw.text((x + 20 * k - left, y + 12 * k - top), text, fill=ink, font=font)
            y += bh + 16 * k
        return canvas

    # ----------------------------------------------------------------- media

    def _load(self, source: Optional[str], required: bool = False) -> Optional[Image.Image]:
        """
        Decode (once) an image source. Failures are cached as None.

        Raises:
            ValueError: If required and the source is missing or not loadable
        """
        if not source:
            if required:
                raise ValueError("item has no image source")
            return None
        if source not in self._images:
            try:
                self._images[source] = load_image(source, self.base_dir)
            except (OSError, ValueError) as e:
                log.warning(f"Image not loadable ({source[:60]}): {e}")
                self._images[source] = None
        image = self._images[source]
        if image is None and required:
            raise ValueError(f"image not loadable: {source[:60]}")
        return image

    def _place(self, img: Image.Image, props: Mapping[str, Any], size: Size) -> Image.Image:
        """Contain-fit into the frame, then apply scale, rotation, x/y offset (reference pixels) and opacity."""
        k = size[0] / float(VIDEO_W)
        canvas = Image.new("RGBA", size, (0, 0, 0, 0))
        scale = _number(props.get("scale"), 1.0)
        if scale <= 0:
            return canvas
        fitted = fit_within(img, size)
        fitted = fitted.resize((max(1, int(fitted.width * scale)), max(1, int(fitted.height * scale))), Image.Resampling.LANCZOS)
        rotation = _number(props.get("rotation"), 0.0)
        if rotation:
            fitted = fitted.rotate(-rotation, expand=True, resample=Image.Resampling.BICUBIC)
        x = int((size[0] - fitted.width) / 2 + _number(props.get("x"), 0.0) * k)
        y = int((size[1] - fitted.height) / 2 + _number(props.get("y"), 0.0) * k)
        canvas.paste(fitted, (x, y), fitted)
        return with_opacity(canvas, _number(props.get("opacity"), 1.0))

    def media_image(self, props: Mapping[str, Any], size: Size) -> Image.Image:
        source = _image_source(props.get("src") or props.get("file"))
        return self._place(self._load(source, required=True), props, size)

    def video_frame(self, props: Mapping[str, Any], local_time: float, size: Size) -> Image.Image:
        source = _image_source(props.get("src") or props.get("file"))
        if source is None:
            raise ValueError("video item has no source")
        clip = self._clips.get(source)
        if clip is None:
            path = Path(source)
            if not path.is_absolute():
                path = self.base_dir / path
            clip = VideoFileClip(str(path), audio=False)
            self._clips[source] = clip
        t = max(0.0, min(local_time, clip.duration - 1.0 / self.fps))
        return self._place(Image.fromarray(clip.get_frame(t)).convert("RGBA"), props, size)

    def text(self, props: Mapping[str, Any], size: Size) -> Image.Image:
        canvas = Image.new("RGBA", size, (0, 0, 0, 0))
        content = str(props.get("text") or "")
        if not content:
            return canvas
        k = size[0] / float(VIDEO_W)
        font_size = max(6, int(_number(props.get("fontSize"), 48.0) * _number(props.get("scale"), 1.0) * k))
        color = normalize_hex(str(props.get("color") or "")) or "#ffffff"
        layer = Image.new("RGBA", size, (0, 0, 0, 0))
        draw_centered(ImageDraw.Draw(layer), size, content, get_font(font_size), hex_to_rgb(color) + (255,))
        dx = int(_number(props.get("x"), 0.0) * k)
        dy = int(_number(props.get("y"), 0.0) * k)
        canvas.paste(layer, (dx, dy), layer)
        return with_opacity(canvas, _number(props.get("opacity"), 1.0))

    def close(self) -> None:
        for clip in self._clips.values():
            clip.close()
        self._clips.clear()
        self._images.clear()
