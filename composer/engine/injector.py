#!/usr/bin/env python3
"""
Animation Property Injector

Derives a per-instance vector animation document from a cached source document and a
merge-field property set (background color, embedded image, scale).

The source is deep-copied before anything is touched, so cached documents shared by many
instances are never mutated. The layer tree is walked depth-first with an explicit depth
bound; a missing sub-structure skips that one patch (recorded as PatchSkipped) and the
walk continues.

Marker names are matched exactly and are not namespaced: every layer carrying a marker
name is patched, including unrelated layers that happen to share it.
"""

import copy
from dataclasses import dataclass, field
from numbers import Number
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from composer.core import InjectorCfg, get_logger

from .color import hex_to_unit_rgba, normalize_hex
from .errors import PatchSkipped

log = get_logger("injector")


@dataclass(frozen=True)
class PropertySet:
    background_color: Optional[str] = None
    embedded_image: Optional[str] = None
    scale: Optional[float] = None


@dataclass
class InjectionResult:
    document: Dict[str, Any]
    skipped: List[PatchSkipped] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _is_vector(value: Any) -> bool:
    return isinstance(value, list) and len(value) >= 2 and _is_number(value[0]) and _is_number(value[1])


def uniform_rescale(value: List[float], factor: float) -> List[float]:
    """
    Collapse a two-axis scale to one magnitude and multiply it by factor.

    Both axes become (|x| + |y|) / 2 * factor (never negative). Any anisotropy or
    mirroring in the original value is lost. Components past the second (z) are kept.
    """
    magnitude = (abs(value[0]) + abs(value[1])) / 2.0
    scaled = max(0.0, magnitude * factor)
    return [scaled, scaled] + list(value[2:])


def property_set_from_item(properties: Mapping[str, Any], default_background: Optional[str] = None) -> PropertySet:
    """
    Map timeline item merge fields to an injector property set.

    customerLogo may be a URI string or an upload record {name, data}.
    """
    background = properties.get("backgroundColor") or default_background

    logo = properties.get("customerLogo")
    image = None
    if isinstance(logo, str) and logo:
        image = logo
    elif isinstance(logo, Mapping):
        image = logo.get("data") or logo.get("url") or None

    scale = properties.get("logoScale")
    if not _is_number(scale):
        scale = None

    return PropertySet(background_color=background, embedded_image=image, scale=scale)


class _Walk:
    """Per-call state: the property set, the asset index and the skip log."""

    def __init__(self, props: PropertySet, assets: Dict[Any, Dict[str, Any]]):
        self.props = props
        self.assets = assets
        self.visited_assets: Set[Any] = set()
        self.skipped: List[PatchSkipped] = []

    def skip(self, path: str, reason: str, layer_name: Optional[str] = None) -> None:
        entry = PatchSkipped(path=path, reason=reason, layer_name=layer_name)
        log.debug(f"Patch skipped: {entry}")
        self.skipped.append(entry)


class AnimationPropertyInjector:
    """Pure transformer: (source document, property set) -> derived document."""

    def __init__(
        self,
        background_markers: Iterable[str] = ("CustomerBg",),
        image_markers: Iterable[str] = ("CustomerLogo",),
        transparent_sentinel: str = "transparent",
        max_depth: int = 32,
    ):
        self.background_markers = frozenset(background_markers)
        self.image_markers = frozenset(image_markers)
        self.transparent_sentinel = transparent_sentinel.lower()
        self.max_depth = max_depth

    @classmethod
    def from_config(cls, cfg: InjectorCfg) -> "AnimationPropertyInjector":
        return cls(
            background_markers=cfg.background_markers,
            image_markers=cfg.image_markers,
            transparent_sentinel=cfg.transparent_sentinel,
            max_depth=cfg.max_depth,
        )

    def inject(self, source: Mapping[str, Any], props: PropertySet) -> InjectionResult:
        """
        Derive a patched copy of ``source``.

        Args:
            source: Cached vector animation document (read only)
            props: Values to inject

        Returns:
            InjectionResult with the derived document and the skipped patches
        """
        document = copy.deepcopy(dict(source))

        assets: Dict[Any, Dict[str, Any]] = {}
        raw_assets = document.get("assets")
        if isinstance(raw_assets, list):
            for asset in raw_assets:
                if isinstance(asset, dict) and "id" in asset:
                    assets.setdefault(asset["id"], asset)

        walk = _Walk(props, assets)
        layers = document.get("layers")
        if isinstance(layers, list):
            self._walk_layers(layers, "layers", 0, walk)
        else:
            walk.skip("layers", "document has no layer list")

        return InjectionResult(document=document, skipped=walk.skipped)

    # ------------------------------------------------------------------ walk

    def _walk_layers(self, layers: List[Any], path: str, depth: int, walk: _Walk) -> None:
        if depth > self.max_depth:
            walk.skip(path, f"maximum depth {self.max_depth} exceeded")
            return
        for index, layer in enumerate(layers):
            layer_path = f"{path}[{index}]"
            if not isinstance(layer, dict):
                walk.skip(layer_path, "layer is not an object")
                continue

            name = layer.get("nm")
            if name in self.background_markers and walk.props.background_color is not None:
                self._patch_background(layer, layer_path, walk)
            if name in self.image_markers:
                self._patch_image(layer, layer_path, walk)

            nested = layer.get("layers")
            if isinstance(nested, list):
                self._walk_layers(nested, f"{layer_path}.layers", depth + 1, walk)

            # Precompositions: walk each referenced layer list once
            ref = layer.get("refId")
            asset = walk.assets.get(ref) if ref is not None else None
            if asset is not None and isinstance(asset.get("layers"), list) and ref not in walk.visited_assets:
                walk.visited_assets.add(ref)
                self._walk_layers(asset["layers"], f"assets[{ref}].layers", depth + 1, walk)

    # ------------------------------------------------------------ background

    def _set_opacity(self, layer: Dict[str, Any], value: float) -> bool:
        ks = layer.get("ks")
        opacity = ks.get("o") if isinstance(ks, dict) else None
        if not isinstance(opacity, dict):
            return False
        opacity["k"] = value
        if opacity.get("a") == 1:
            opacity["a"] = 0
        return True

    def _patch_background(self, layer: Dict[str, Any], path: str, walk: _Walk) -> None:
        name = layer.get("nm")
        color = str(walk.props.background_color).strip()

        if color.lower() == self.transparent_sentinel:
            if not self._set_opacity(layer, 0):
                walk.skip(f"{path}.ks.o", "no opacity channel", name)
            return

        try:
            rgba = hex_to_unit_rgba(color)
        except ValueError:
            walk.skip(path, f"invalid color {color!r}", name)
            return

        if not self._set_opacity(layer, 100):
            walk.skip(f"{path}.ks.o", "no opacity channel", name)

        patched = 0
        shapes = layer.get("shapes")
        if isinstance(shapes, list):
            patched += self._patch_fills(shapes, f"{path}.shapes", 0, rgba, walk, name)
        if "sc" in layer:
            layer["sc"] = normalize_hex(color)
            patched += 1
        if not patched and not isinstance(shapes, list):
            walk.skip(path, "no shape tree", name)

    def _patch_fills(
        self,
        shapes: List[Any],
        path: str,
        depth: int,
        rgba: List[float],
        walk: _Walk,
        layer_name: Optional[str],
    ) -> int:
        if depth > self.max_depth:
            walk.skip(path, f"maximum depth {self.max_depth} exceeded", layer_name)
            return 0
        patched = 0
        for index, shape in enumerate(shapes):
            shape_path = f"{path}[{index}]"
            if not isinstance(shape, dict):
                continue
            kind = shape.get("ty")
            if kind == "gr":
                items = shape.get("it")
                if isinstance(items, list):
                    patched += self._patch_fills(items, f"{shape_path}.it", depth + 1, rgba, walk, layer_name)
                else:
                    walk.skip(shape_path, "group without items", layer_name)
            elif kind == "fl":
                channel = shape.get("c")
                if isinstance(channel, dict):
                    channel["k"] = list(rgba)
                    if channel.get("a") == 1:
                        channel["a"] = 0
                    patched += 1
                else:
                    walk.skip(shape_path, "fill without color channel", layer_name)
        return patched

    # ----------------------------------------------------------------- image

    def _patch_image(self, layer: Dict[str, Any], path: str, walk: _Walk) -> None:
        name = layer.get("nm")
        image = walk.props.embedded_image
        if image is not None:
            ref = layer.get("refId")
            asset = walk.assets.get(ref) if ref is not None else None
            if asset is None:
                walk.skip(path, f"no asset linked by refId {ref!r}", name)
            else:
                asset["p"] = image
                if "u" in asset:
                    asset["u"] = ""
                asset["e"] = 1 if image.startswith("data:") else 0

        if walk.props.scale is not None:
            self._patch_scale(layer, path, walk)

    def _patch_scale(self, layer: Dict[str, Any], path: str, walk: _Walk) -> None:
        name = layer.get("nm")
        factor = float(walk.props.scale)
        ks = layer.get("ks")
        scale = ks.get("s") if isinstance(ks, dict) else None
        if not isinstance(scale, dict):
            walk.skip(f"{path}.ks.s", "no scale property", name)
            return

        value = scale.get("k")
        if _is_vector(value):
            scale["k"] = uniform_rescale(value, factor)
        elif isinstance(value, list) and value and all(isinstance(kf, dict) for kf in value):
            for keyframe in value:
                for key in ("s", "e"):
                    if _is_vector(keyframe.get(key)):
                        keyframe[key] = uniform_rescale(keyframe[key], factor)
        else:
            walk.skip(f"{path}.ks.s", "unrecognized scale value", name)
