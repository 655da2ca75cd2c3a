"""Labeled placeholder images for loading, failed and unsupported items."""

from functools import lru_cache
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from composer.core import get_logger

log = get_logger("placeholders")

LOADING = "loading"
ERRORED = "error"
UNSUPPORTED = "unsupported"

_STYLES = {
    LOADING: ((40, 40, 48, 200), (140, 140, 160, 255)),
    ERRORED: ((90, 20, 20, 200), (255, 120, 120, 255)),
    UNSUPPORTED: ((60, 60, 20, 200), (240, 220, 120, 255)),
}

FONT_CANDIDATES = ("DejaVuSans.ttf", "Arial.ttf", "Helvetica.ttc")


@lru_cache(maxsize=32)
def get_font(size: int = 16) -> ImageFont.ImageFont:
    """First available TrueType candidate at size, else Pillow's bitmap font."""
    for name in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size=size)
        except OSError:
            continue
    log.debug(f"No TrueType font found, using the bitmap font at size {size}")
    return ImageFont.load_default()


def placeholder(
    size: Tuple[int, int],
    kind: str,
    asset_type: str,
    reason: Optional[str] = None,
) -> Image.Image:
    """
    A boxed label carrying the asset type and, when known, the failure reason.

    Args:
        size: Image size in pixels
        kind: LOADING, ERRORED or UNSUPPORTED
        asset_type: Asset type key shown in the label
        reason: Optional failure reason (second line)
    """
    fill, ink = _STYLES.get(kind, _STYLES[UNSUPPORTED])
    img = Image.new("RGBA", size, fill)
    draw = ImageDraw.Draw(img)
    w, h = size
    draw.rectangle([0, 0, w - 1, h - 1], outline=ink, width=max(1, min(w, h) // 100))

    lines = [f"{kind}: {asset_type}"]
    if reason:
        lines.append(reason if len(reason) <= 80 else reason[:77] + "...")
    font = get_font(max(10, min(w, h) // 20))
    draw_centered(draw, size, "\n".join(lines), font, ink)
    return img


def draw_centered(draw: ImageDraw.ImageDraw, size: Tuple[int, int], text: str, font, fill) -> None:
    left, top, right, bottom = draw.multiline_textbbox((0, 0), text, font=font)
    x = (size[0] - (right - left)) / 2 - left
    y = (size[1] - (bottom - top)) / 2 - top
    draw.multiline_text((x, y), text, fill=fill, font=font, align="center")
