#!/usr/bin/env python3
"""
Media Loading

Image decoding shared by the interactive rasterizer and the export compositor.
Sources are base64 data URIs or file paths, relative paths resolving against a base dir.
"""

import base64
import binascii
import io
from pathlib import Path
from typing import Optional

from PIL import Image

from composer.core import get_logger

log = get_logger("media")


def load_image(source: str, base_dir: Optional[Path] = None) -> Image.Image:
    """
    Open an image from a data URI or a file path.

    Raises:
        ValueError: For a malformed data URI
        OSError: If the file cannot be read or decoded
    """
    if source.startswith("data:"):
        header, _, data = source.partition(",")
        if ";base64" not in header:
            raise ValueError("only base64 data URIs are supported")
        try:
            raw = base64.b64decode(data, validate=False)
        except binascii.Error as e:
            raise ValueError(f"bad base64 payload: {e}") from e
        image = Image.open(io.BytesIO(raw))
    else:
        path = Path(source)
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        log.debug(f"Loading image {path}")
        image = Image.open(path)
    image.load()
    return image.convert("RGBA")
