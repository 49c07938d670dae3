"""Red circle markup"""
import io

from PIL import Image

from application.image_annotation import draw_circle


def pixel(content: bytes, xy):
    return Image.open(io.BytesIO(content)).convert("RGB").getpixel(xy)


def test_default_circle_is_centered(png_bytes):
    marked = draw_circle(png_bytes)

    image = Image.open(io.BytesIO(marked))
    assert image.format == "JPEG"
    assert image.size == (400, 300)

    # Radius is a quarter of the shorter side: 75px around (200, 150)
    r, g, b = pixel(marked, (273, 150))
    assert r > 200 and g < 120 and b < 120
    assert min(pixel(marked, (200, 150))) > 230


def test_custom_center_and_radius(png_bytes):
    marked = draw_circle(png_bytes, center=(0.25, 0.5), radius=0.1)

    # 30px radius around (100, 150)
    r, g, b = pixel(marked, (128, 150))
    assert r > 200 and g < 120 and b < 120
    assert min(pixel(marked, (273, 150))) > 230
