#!/usr/bin/env python3
"""
Color helpers for the composition engine

Hex parsing for merge-field colors, conversion to the normalized float tuples used by
vector animation documents, and the small HSL helpers used to tint timeline groups.
"""

import hashlib
import re
from typing import List, Optional, Tuple

from composer.core import get_logger

log = get_logger("color")

# Normalized channels are rounded to this many decimals. Round-trip tests compare
# against component/255.0 with a 1e-4 tolerance, far above the rounding error.
COLOR_PRECISION = 6

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def normalize_hex(hex_color: str) -> Optional[str]:
    """Return '#rrggbb' in lower case, or None when the string is not a hex color."""
    if not isinstance(hex_color, str):
        return None
    match = _HEX_RE.match(hex_color.strip())
    if not match:
        return None
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return f"#{digits.lower()}"


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """Convert hex color to RGB tuple."""
    normalized = normalize_hex(hex_color)
    if normalized is None:
        raise ValueError(f"Invalid hex color: {hex_color!r}")
    digits = normalized[1:]
    return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))


def rgb_to_hex(r: int, g: int, b: int) -> str:
    """Convert RGB tuple to hex color."""
    return f"#{r:02x}{g:02x}{b:02x}"


def hex_to_unit_rgba(hex_color: str, alpha: float = 1.0) -> List[float]:
    """
    Convert a hex color to the [r, g, b, a] float tuple used by animation fills.

    Each channel is component/255.0 rounded to COLOR_PRECISION decimals.

    Raises:
        ValueError: If hex_color is not a valid hex color
    """
    r, g, b = hex_to_rgb(hex_color)
    return [
        round(r / 255.0, COLOR_PRECISION),
        round(g / 255.0, COLOR_PRECISION),
        round(b / 255.0, COLOR_PRECISION),
        alpha,
    ]


def unit_rgba_to_rgba(channels) -> Tuple[int, int, int, int]:
    """Convert a normalized float color tuple back to 8-bit RGBA."""
    values = list(channels) + [1.0] * (4 - len(channels))
    return tuple(max(0, min(255, int(round(float(c) * 255)))) for c in values[:4])


def hex_to_rgba(hex_color: str, opacity: float = 1.0) -> Tuple[int, int, int, int]:
    """8-bit RGBA for Pillow drawing."""
    r, g, b = hex_to_rgb(hex_color)
    a = max(0, min(255, int(round(opacity * 255))))
    return (r, g, b, a)


def hsl_to_hex(h: float, s: float, l: float) -> str:
    """Convert HSL tuple (0-1 range) to hex color."""
    def hue_to_rgb(m1: float, m2: float, h: float) -> float:
        h = h % 1.0
        if h < 1/6:
            return m1 + (m2 - m1) * 6 * h
        elif h < 1/2:
            return m2
        elif h < 2/3:
            return m1 + (m2 - m1) * 6 * (2/3 - h)
        else:
            return m1

    if s == 0:
        r = g = b = l
    else:
        m2 = l * (1 + s) if l <= 0.5 else l + s - l * s
        m1 = 2 * l - m2
        r = hue_to_rgb(m1, m2, h + 1/3)
        g = hue_to_rgb(m1, m2, h)
        b = hue_to_rgb(m1, m2, h - 1/3)

    r_clamped = max(0, min(255, int(r * 255)))
    g_clamped = max(0, min(255, int(g * 255)))
    b_clamped = max(0, min(255, int(b * 255)))

    return rgb_to_hex(r_clamped, g_clamped, b_clamped)


def stable_hue_color(key: str, saturation: float = 0.7, lightness: float = 0.5) -> str:
    """Deterministic tint for a key (used for group colors)."""
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
    hue = int(digest[:8], 16) / float(0xFFFFFFFF)
    return hsl_to_hex(hue, saturation, lightness)
