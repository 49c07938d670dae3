"""Red circle markup on stored photos (Pillow)"""
import io
from typing import Optional, Tuple

from PIL import Image, ImageDraw

MARK_COLOR = (239, 68, 68)
MIN_LINE_WIDTH = 5


def draw_circle(
    content: bytes,
    center: Optional[Tuple[float, float]] = None,
    radius: Optional[float] = None,
) -> bytes:
    """
    Draw a red circle and return the result as JPEG

    `center` and `radius` are fractions of the image width/height and of the
    shorter side; the default marks the middle with a quarter-side radius.
    """
    image = Image.open(io.BytesIO(content)).convert("RGB")
    width, height = image.size
    shorter = min(width, height)

    cx, cy = center or (0.5, 0.5)
    cx, cy = cx * width, cy * height
    r = (radius if radius is not None else 0.25) * shorter
    line_width = max(MIN_LINE_WIDTH, int(shorter * 0.015))

    draw = ImageDraw.Draw(image)
    draw.ellipse((cx - r, cy - r, cx + r, cy + r), outline=MARK_COLOR, width=line_width)

    out = io.BytesIO()
    image.save(out, format="JPEG", quality=90)
    return out.getvalue()
