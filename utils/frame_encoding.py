"""Camera frame encoding helpers.

Frames from the client may arrive as PNG, WebP or JPEG (raw bytes or
base64). They are normalized to RGB JPEG at the configured quality before
being streamed to the model and kept as the latest snapshot.

Example:
    jpeg = encode_jpeg(decode_frame(payload["image_b64"]), quality=50)
"""
from __future__ import annotations

import base64
import binascii
import io

from PIL import Image


def decode_frame(data: str | bytes) -> bytes:
    """Return raw image bytes from base64 text (a data URL prefix is allowed).

    Raises:
        ValueError: If the payload is not valid base64.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Invalid base64 frame data provided") from exc


def encode_jpeg(raw: bytes, quality: int = 50, background: tuple[int, int, int] = (255, 255, 255)) -> bytes:
    """Re-encode image bytes as JPEG at `quality`.

    Raises:
        ValueError: If the bytes cannot be opened as an image.
    """
    try:
        src = Image.open(io.BytesIO(raw))
        src.load()
    except Exception as exc:
        raise ValueError("Frame bytes are not a supported image format") from exc

    # Flatten alpha against the background color; JPEG has no alpha channel.
    if src.mode in ("RGBA", "LA", "P"):
        src = src.convert("RGBA")
        flattened = Image.new("RGB", src.size, background)
        flattened.paste(src, mask=src.split()[3])
        src = flattened
    elif src.mode != "RGB":
        src = src.convert("RGB")

    out_io = io.BytesIO()
    src.save(out_io, format="JPEG", quality=max(1, min(int(quality), 95)))
    return out_io.getvalue()
