#!/usr/bin/env python3
"""
Minimal Vector Document Rasterizer

Draws a derived vector animation document at one frame with Pillow, for the interactive
preview of vector-canvas items. Supported subset:

- layer types: precomp (0), solid (1), image (2), shape (4); null layers are skipped
- layer in/out points, precomp start offsets
- transform channels (anchor, position, scale, rotation, opacity), static or keyframed
  with linear interpolation (easing curves are ignored)
- shapes: groups with their own transform, rect, ellipse, path vertices, solid fill

Parenting, masks, mattes, strokes, gradients and text are not drawn. This is not a
general vector engine; export goes through the procedural compositor instead.
"""

import hashlib
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from PIL import Image, ImageDraw, UnidentifiedImageError

from composer.core import get_logger

from .color import hex_to_rgb, normalize_hex, unit_rgba_to_rgba
from .media import load_image
from .sdk import Paths

log = get_logger("vector_raster")

# 2x3 affine: x' = a*x + b*y + c, y' = d*x + e*y + f
Matrix = Tuple[float, float, float, float, float, float]
IDENTITY: Matrix = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0)
ELLIPSE_SEGMENTS = 48


def multiply(m: Matrix, n: Matrix) -> Matrix:
    """m after n."""
    a, b, c, d, e, f = m
    p, q, r, s, t, u = n
    return (
        a * p + b * s, a * q + b * t, a * r + b * u + c,
        d * p + e * s, d * q + e * t, d * r + e * u + f,
    )


def invert(m: Matrix) -> Optional[Matrix]:
    a, b, c, d, e, f = m
    det = a * e - b * d
    if abs(det) < 1e-12:
        return None
    ia, ib, id_, ie = e / det, -b / det, -d / det, a / det
    return (ia, ib, -(ia * c + ib * f), id_, ie, -(id_ * c + ie * f))


def apply(m: Matrix, x: float, y: float) -> Tuple[float, float]:
    a, b, c, d, e, f = m
    return (a * x + b * y + c, d * x + e * y + f)


# ---------------------------------------------------------------- channels


def _as_list(value: Any) -> List[float]:
    if isinstance(value, (list, tuple)):
        return [float(v) for v in value if isinstance(v, (int, float))]
    if isinstance(value, (int, float)):
        return [float(value)]
    return []


def channel_value(channel: Any, frame: float, default: Sequence[float]) -> List[float]:
    """
    Value of an animatable channel at frame.

    Static channels hold the value in "k"; keyframed ones hold a list of {t, s, e?}
    records. Between keyframes the value is interpolated linearly.
    """
    if not isinstance(channel, Mapping):
        return list(default)
    k = channel.get("k")
    if not (isinstance(k, list) and k and isinstance(k[0], Mapping)):
        value = _as_list(k)
        return value or list(default)

    frames = [kf for kf in k if isinstance(kf, Mapping) and "t" in kf]
    if not frames:
        return list(default)
    first = _as_list(frames[0].get("s")) or list(default)
    if frame <= float(frames[0]["t"]):
        return first
    for current, following in zip(frames, frames[1:]):
        t0, t1 = float(current["t"]), float(following["t"])
        if t0 <= frame < t1:
            start = _as_list(current.get("s")) or list(default)
            end = _as_list(current.get("e")) or _as_list(following.get("s")) or start
            span = t1 - t0
            ratio = (frame - t0) / span if span > 0 else 1.0
            return [s + (e - s) * ratio for s, e in zip(start, end)]
    last = frames[-1]
    previous = frames[-2] if len(frames) > 1 else None
    value = _as_list(last.get("s"))
    if not value and previous is not None:
        value = _as_list(previous.get("e")) or _as_list(previous.get("s"))
    return value or list(default)


def _pair(values: List[float], fallback: float) -> Tuple[float, float]:
    if not values:
        return fallback, fallback
    if len(values) == 1:
        return values[0], values[0]
    return values[0], values[1]


def transform_matrix(ks: Any, frame: float) -> Tuple[Matrix, float]:
    """Layer (or group) transform at frame: (matrix, opacity 0..1)."""
    if not isinstance(ks, Mapping):
        return IDENTITY, 1.0
    ax, ay = _pair(channel_value(ks.get("a"), frame, [0, 0]), 0.0)
    px, py = _pair(channel_value(ks.get("p"), frame, [0, 0]), 0.0)
    sx, sy = _pair(channel_value(ks.get("s"), frame, [100, 100]), 100.0)
    rotation = channel_value(ks.get("r"), frame, [0])[0]
    opacity = channel_value(ks.get("o"), frame, [100])[0]

    sx, sy = sx / 100.0, sy / 100.0
    cos, sin = math.cos(math.radians(rotation)), math.sin(math.radians(rotation))
    a, b = cos * sx, -sin * sy
    d, e = sin * sx, cos * sy
    matrix = (a, b, px - a * ax - b * ay, d, e, py - d * ax - e * ay)
    return matrix, max(0.0, min(1.0, opacity / 100.0))


# ---------------------------------------------------------------- geometry


def _rect_points(shape: Mapping[str, Any], frame: float) -> List[Tuple[float, float]]:
    cx, cy = _pair(channel_value(shape.get("p"), frame, [0, 0]), 0.0)
    w, h = _pair(channel_value(shape.get("s"), frame, [0, 0]), 0.0)
    return [(cx - w / 2, cy - h / 2), (cx + w / 2, cy - h / 2), (cx + w / 2, cy + h / 2), (cx - w / 2, cy + h / 2)]


def _ellipse_points(shape: Mapping[str, Any], frame: float) -> List[Tuple[float, float]]:
    cx, cy = _pair(channel_value(shape.get("p"), frame, [0, 0]), 0.0)
    w, h = _pair(channel_value(shape.get("s"), frame, [0, 0]), 0.0)
    return [
        (cx + math.cos(2 * math.pi * i / ELLIPSE_SEGMENTS) * w / 2, cy + math.sin(2 * math.pi * i / ELLIPSE_SEGMENTS) * h / 2)
        for i in range(ELLIPSE_SEGMENTS)
    ]


def _path_points(shape: Mapping[str, Any]) -> List[Tuple[float, float]]:
    # Vertices only; bezier tangents are ignored
    data = (shape.get("ks") or {}).get("k")
    if isinstance(data, list) and data and isinstance(data[0], Mapping):
        data = data[0].get("s")
        data = data[0] if isinstance(data, list) and data else data
    if not isinstance(data, Mapping):
        return []
    return [(float(v[0]), float(v[1])) for v in data.get("v") or [] if isinstance(v, list) and len(v) >= 2]


def _fill_color(shape: Mapping[str, Any], frame: float) -> Tuple[int, int, int, int]:
    r, g, b, _ = unit_rgba_to_rgba(channel_value(shape.get("c"), frame, [0, 0, 0, 1]))
    opacity = channel_value(shape.get("o"), frame, [100])[0] / 100.0
    return r, g, b, int(round(max(0.0, min(1.0, opacity)) * 255))


class VectorRasterizer:
    """Draws one frame of a vector animation document to an RGBA image."""

    def __init__(self, base_dir: Optional[Union[str, Path]] = None, max_depth: int = 32):
        self.base_dir = Path(base_dir) if base_dir else Paths.data_dir()
        self.max_depth = max_depth
        self._images: Dict[str, Optional[Image.Image]] = {}

    def render(self, document: Mapping[str, Any], frame: float, size: Optional[Tuple[int, int]] = None) -> Image.Image:
        """
        Args:
            document: Derived vector animation document
            frame: Absolute document frame
            size: Output size; defaults to the document size

        Returns:
            RGBA image
        """
        doc_w = int(document.get("w") or 1)
        doc_h = int(document.get("h") or 1)
        size = size or (doc_w, doc_h)
        canvas = Image.new("RGBA", size, (0, 0, 0, 0))
        root = (size[0] / doc_w, 0.0, 0.0, 0.0, size[1] / doc_h, 0.0)
        assets = {a.get("id"): a for a in document.get("assets") or [] if isinstance(a, Mapping)}
        self._draw_layers(canvas, document.get("layers") or [], frame, root, assets, 0)
        return canvas

    def _draw_layers(self, canvas, layers, frame, matrix, assets, depth) -> None:
        if depth > self.max_depth:
            log.debug(f"Layer nesting deeper than {self.max_depth}, subtree skipped")
            return
        # Layer lists are top-to-bottom; paint bottom-up
        for layer in reversed(layers):
            if not isinstance(layer, Mapping) or layer.get("hd"):
                continue
            ip = float(layer.get("ip", -math.inf))
            op = float(layer.get("op", math.inf))
            if not ip <= frame < op:
                continue
            local, opacity = transform_matrix(layer.get("ks"), frame)
            if opacity <= 0:
                continue
            layer_matrix = multiply(matrix, local)
            surface = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
            kind = layer.get("ty")
            if kind == 0:
                self._draw_precomp(surface, layer, frame, layer_matrix, assets, depth)
            elif kind == 1:
                self._draw_solid(surface, layer, layer_matrix)
            elif kind == 2:
                self._draw_image(surface, layer, layer_matrix, assets)
            elif kind == 4:
                self._draw_shapes(surface, layer.get("shapes") or [], frame, layer_matrix, None, depth)
            else:
                continue
            if opacity < 1.0:
                alpha = surface.getchannel("A").point(lambda v: int(v * opacity))
                surface.putalpha(alpha)
            canvas.alpha_composite(surface)

    def _draw_solid(self, surface, layer, matrix) -> None:
        color = normalize_hex(str(layer.get("sc") or "")) or "#000000"
        w, h = float(layer.get("sw") or 0), float(layer.get("sh") or 0)
        points = [apply(matrix, x, y) for x, y in ((0, 0), (w, 0), (w, h), (0, h))]
        ImageDraw.Draw(surface).polygon(points, fill=hex_to_rgb(color) + (255,))

    def _draw_image(self, surface, layer, matrix, assets) -> None:
        asset = assets.get(layer.get("refId"))
        if asset is None:
            return
        image = self._asset_image(asset)
        if image is None:
            return
        self._paste_transformed(surface, image, matrix)

    def _draw_precomp(self, surface, layer, frame, matrix, assets, depth) -> None:
        asset = assets.get(layer.get("refId"))
        if asset is None or not isinstance(asset.get("layers"), list):
            return
        w = int(layer.get("w") or asset.get("w") or surface.size[0])
        h = int(layer.get("h") or asset.get("h") or surface.size[1])
        inner = Image.new("RGBA", (max(1, w), max(1, h)), (0, 0, 0, 0))
        self._draw_layers(inner, asset["layers"], frame - float(layer.get("st", 0) or 0), IDENTITY, assets, depth + 1)
        self._paste_transformed(surface, inner, matrix)

    def _paste_transformed(self, surface: Image.Image, image: Image.Image, matrix: Matrix) -> None:
        inverse = invert(matrix)
        if inverse is None:
            return
        warped = image.convert("RGBA").transform(surface.size, Image.Transform.AFFINE, inverse, resample=Image.Resampling.BILINEAR)
        surface.alpha_composite(warped)

    def _draw_shapes(self, surface, shapes, frame, matrix, inherited_fill, depth) -> None:
        if depth > self.max_depth:
            return
        fill = inherited_fill
        group_matrix = matrix
        for shape in shapes:
            if not isinstance(shape, Mapping):
                continue
            if shape.get("ty") == "fl" and fill is inherited_fill:
                fill = _fill_color(shape, frame)
            elif shape.get("ty") == "tr":
                local, _ = transform_matrix(shape, frame)
                group_matrix = multiply(matrix, local)

        draw = ImageDraw.Draw(surface)
        for shape in shapes:
            if not isinstance(shape, Mapping) or shape.get("hd"):
                continue
            kind = shape.get("ty")
            if kind == "gr":
                self._draw_shapes(surface, shape.get("it") or [], frame, group_matrix, fill, depth + 1)
                continue
            if kind == "rc":
                points = _rect_points(shape, frame)
            elif kind == "el":
                points = _ellipse_points(shape, frame)
            elif kind == "sh":
                points = _path_points(shape)
            else:
                continue
            if fill is not None and len(points) >= 3:
                draw.polygon([apply(group_matrix, x, y) for x, y in points], fill=fill)

    # ------------------------------------------------------------------ assets

    def _asset_image(self, asset: Mapping[str, Any]) -> Optional[Image.Image]:
        payload = str(asset.get("p") or "")
        if not payload:
            return None
        key = hashlib.sha1(f"{asset.get('u', '')}{payload}".encode()).hexdigest()
        if key not in self._images:
            self._images[key] = self._decode(asset, payload)
        return self._images[key]

    def _decode(self, asset: Mapping[str, Any], payload: str) -> Optional[Image.Image]:
        try:
            image = load_image(payload, self.base_dir / str(asset.get("u") or ""))
        except (OSError, ValueError, UnidentifiedImageError) as e:
            log.debug(f"Image asset {asset.get('id')} not drawable: {e}")
            return None
        w, h = asset.get("w"), asset.get("h")
        if w and h and image.size != (int(w), int(h)):
            image = image.resize((int(w), int(h)), Image.Resampling.LANCZOS)
        return image
