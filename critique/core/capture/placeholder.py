"""Placeholder image used when no real pixels can be captured."""

from datetime import datetime

from PIL import Image, ImageDraw, ImageFont

GRADIENT_STOPS: list[tuple[float, tuple[int, int, int]]] = [
    (0.0, (0xF8, 0xF9, 0xFA)),
    (0.7, (0xE9, 0xEC, 0xEF)),
    (1.0, (0xDE, 0xE2, 0xE6)),
]
PANEL_FILL = (255, 255, 255, 242)
NOTICE_COLOR = (0xDC, 0x35, 0x45)
MUTED_COLOR = (0x66, 0x66, 0x66)
TITLE_COLOR = (0x33, 0x33, 0x33)
BORDER_COLOR = (0x00, 0x7B, 0xFF)
BORDER_WIDTH = 3
DASH_ON = 8
DASH_OFF = 4
PANEL_HEIGHT = 70
MIN_PANEL_WIDTH = 60


def _font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def _gradient_lut(channel: int) -> list[int]:
    lut = []
    for value in range(256):
        t = value / 255
        for (t0, c0), (t1, c1) in zip(GRADIENT_STOPS, GRADIENT_STOPS[1:]):
            if t <= t1:
                ratio = 0.0 if t1 == t0 else (t - t0) / (t1 - t0)
                lut.append(round(c0[channel] + (c1[channel] - c0[channel]) * ratio))
                break
    return lut


def radial_background(size: tuple[int, int]) -> Image.Image:
    """Neutral radial gradient, lightest in the centre."""
    distance = Image.radial_gradient("L").resize(size)
    channels = [distance.point(_gradient_lut(i)) for i in range(3)]
    return Image.merge("RGB", channels)


def _centered_text(
    draw: ImageDraw.ImageDraw,
    width: int,
    top: int,
    text: str,
    font: ImageFont.FreeTypeFont | ImageFont.ImageFont,
    fill: tuple[int, int, int],
) -> None:
    left = max((width - draw.textlength(text, font=font)) / 2, 0)
    draw.text((left, top), text, font=font, fill=fill)


def dashed_rectangle(
    draw: ImageDraw.ImageDraw,
    box: tuple[int, int, int, int],
    fill: tuple[int, int, int] = BORDER_COLOR,
    width: int = BORDER_WIDTH,
    dash: int = DASH_ON,
    gap: int = DASH_OFF,
) -> None:
    """Stroke a rectangle outline with a dash pattern."""
    x0, y0, x1, y1 = box
    edges = [
        ((x0, y0), (x1, y0)),
        ((x1, y0), (x1, y1)),
        ((x1, y1), (x0, y1)),
        ((x0, y1), (x0, y0)),
    ]
    for (sx, sy), (ex, ey) in edges:
        length = max(abs(ex - sx), abs(ey - sy))
        if length == 0:
            continue
        dx, dy = (ex - sx) / length, (ey - sy) / length
        position = 0
        while position < length:
            end = min(position + dash, length)
            draw.line(
                [(sx + dx * position, sy + dy * position), (sx + dx * end, sy + dy * end)],
                fill=fill,
                width=width,
            )
            position += dash + gap


def render_placeholder(
    size: tuple[int, int],
    model_label: str,
    captured_at: datetime,
) -> Image.Image:
    """
    Build a placeholder of exactly ``size`` pixels.

    Contains a gradient background, a notice that the model content could not
    be captured, the model label, the selection dimensions and capture time,
    and a dashed border. Panels are left out when the image is too small to hold
    them; the border is always drawn.
    """
    width, height = size
    canvas = radial_background(size).convert("RGBA")

    overlay = Image.new("RGBA", size, (0, 0, 0, 0))
    overlay_draw = ImageDraw.Draw(overlay)
    show_info = width >= MIN_PANEL_WIDTH and height >= PANEL_HEIGHT + 20
    show_notice = show_info and height >= 2 * PANEL_HEIGHT + 40
    if show_notice:
        overlay_draw.rectangle((10, 10, width - 10, 10 + PANEL_HEIGHT), fill=PANEL_FILL)
    if show_info:
        overlay_draw.rectangle(
            (10, height - 10 - PANEL_HEIGHT, width - 10, height - 10), fill=PANEL_FILL
        )
    canvas = Image.alpha_composite(canvas, overlay).convert("RGB")

    draw = ImageDraw.Draw(canvas)
    if show_notice:
        _centered_text(draw, width, 20, "MODEL VIEWER CONTENT PROTECTED", _font(14), NOTICE_COLOR)
        _centered_text(draw, width, 40, "Rendered content could not be captured", _font(12), MUTED_COLOR)
        _centered_text(draw, width, 56, "This marks the selected area of the 3D model", _font(12), MUTED_COLOR)
    if show_info:
        top = height - 10 - PANEL_HEIGHT
        draw.text((20, top + 4), "Screenshot Area Selected", font=_font(16), fill=TITLE_COLOR)
        draw.text((20, top + 24), f"Model: {model_label}", font=_font(12), fill=MUTED_COLOR)
        draw.text((20, top + 38), f"Selected Area: {width}x{height}px", font=_font(12), fill=MUTED_COLOR)
        draw.text(
            (20, top + 52), f"Time: {captured_at.strftime('%H:%M:%S')}", font=_font(12), fill=MUTED_COLOR
        )

    inset = 5 if width > 20 and height > 20 else 1
    dashed_rectangle(draw, (inset, inset, width - 1 - inset, height - 1 - inset))
    return canvas
