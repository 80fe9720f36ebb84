"""Image encoding helpers shared by capture, storage and the API."""

import base64
import binascii
import io
import re

from PIL import Image

DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<payload>.*)$", re.DOTALL)


def encode_jpeg(image: Image.Image, quality: int = 80) -> bytes:
    """Encode a Pillow image as JPEG bytes, flattening any alpha channel."""
    if image.mode not in ("RGB", "L"):
        background = Image.new("RGB", image.size, "white")
        if "A" in image.getbands():
            background.paste(image, mask=image.getchannel("A"))
        else:
            background.paste(image.convert("RGB"))
        image = background
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def to_data_uri(data: bytes, mime_type: str = "image/jpeg") -> str:
    """Embed bytes as a base64 data URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def from_data_uri(uri: str) -> tuple[str, bytes]:
    """
    Split a base64 image data URI into mime type and bytes.

    Raises:
        ValueError: If the string is not a base64 image data URI
    """
    match = DATA_URI_PATTERN.match(uri.strip())
    if not match:
        raise ValueError("Not a base64 image data URI")
    try:
        payload = base64.b64decode(match.group("payload"), validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e
    return match.group("mime"), payload


def decode_image(data: bytes) -> Image.Image:
    """Open image bytes and load them fully into memory."""
    image = Image.open(io.BytesIO(data))
    image.load()
    return image
