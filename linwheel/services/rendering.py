"""Pillow helpers: headline overlays, fallback slides and PDF assembly."""
import io
import textwrap
from typing import List, Tuple

from PIL import Image, ImageDraw, ImageFont

COVER_SIZE = (1200, 628)
SLIDE_SIZE = (1080, 1080)

# (top, bottom) gradient colours per preset for slides without a background
PRESET_GRADIENTS = {
    "typographic_minimal": ((248, 250, 252), (226, 232, 240)),
    "gradient_text": ((124, 58, 237), (236, 72, 153)),
    "dark_mode": ((26, 26, 46), (22, 33, 62)),
    "accent_bar": ((255, 255, 255), (241, 245, 249)),
    "abstract_shapes": ((30, 64, 175), (14, 165, 233)),
}
DARK_TEXT_PRESETS = {"typographic_minimal", "accent_bar"}


def _font(size: int) -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype("DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default(size=size)


def _cover_crop(img: Image.Image, size: Tuple[int, int]) -> Image.Image:
    tw, th = size
    scale = max(tw / img.width, th / img.height)
    resized = img.resize((max(tw, int(img.width * scale)), max(th, int(img.height * scale))))
    left = (resized.width - tw) // 2
    top = (resized.height - th) // 2
    return resized.crop((left, top, left + tw, top + th))


def _draw_headline(img: Image.Image, headline: str, fill, band: bool) -> None:
    w, h = img.size
    font_size = max(28, w // 18)
    font = _font(font_size)
    lines = textwrap.wrap(headline, width=max(12, int(w / (font_size * 0.62))))[:4]
    line_h = int(font_size * 1.25)
    block_h = line_h * len(lines)
    y = (h - block_h) // 2
    if band:
        overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
        ImageDraw.Draw(overlay).rectangle((0, y - line_h // 2, w, y + block_h + line_h // 2), fill=(0, 0, 0, 140))
        img.alpha_composite(overlay)
    draw = ImageDraw.Draw(img)
    for line in lines:
        tw = draw.textlength(line, font=font)
        draw.text(((w - tw) / 2, y), line, font=font, fill=fill)
        y += line_h


def _png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="PNG")
    return buf.getvalue()


def overlay_headline(image_bytes: bytes, headline: str, size: Tuple[int, int] = COVER_SIZE) -> bytes:
    img = _cover_crop(Image.open(io.BytesIO(image_bytes)).convert("RGBA"), size)
    if headline:
        _draw_headline(img, headline, fill=(255, 255, 255, 255), band=True)
    return _png(img)


def fallback_slide(headline: str, style_preset: str = "typographic_minimal", size: Tuple[int, int] = SLIDE_SIZE) -> bytes:
    top, bottom = PRESET_GRADIENTS.get(style_preset, PRESET_GRADIENTS["typographic_minimal"])
    w, h = size
    img = Image.new("RGBA", size)
    draw = ImageDraw.Draw(img)
    for y in range(h):
        t = y / max(1, h - 1)
        color = tuple(int(top[i] + (bottom[i] - top[i]) * t) for i in range(3))
        draw.line([(0, y), (w, y)], fill=color + (255,))
    if style_preset == "accent_bar":
        draw.rectangle((0, 0, w // 40, h), fill=(249, 115, 22, 255))
    fill = (15, 23, 42, 255) if style_preset in DARK_TEXT_PRESETS else (255, 255, 255, 255)
    _draw_headline(img, headline, fill=fill, band=False)
    return _png(img)


def images_to_pdf(pages: List[bytes]) -> bytes:
    if not pages:
        raise ValueError("cannot build a PDF without pages")
    frames = [Image.open(io.BytesIO(p)).convert("RGB") for p in pages]
    buf = io.BytesIO()
    frames[0].save(buf, format="PDF", save_all=True, append_images=frames[1:], resolution=150.0)
    return buf.getvalue()
