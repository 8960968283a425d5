"""Drawing surfaces backed by Pillow images.

A canvas exports its pixels as a PNG data URL (lossless) and can draw a data
URL back at the origin. A canvas that has been painted with cross-origin
content is *tainted*; exporting it raises :class:`SecurityError`, exactly the
failure the capture bridge has to tolerate.
"""

from __future__ import annotations

import base64
import binascii
import io

from PIL import Image

from framekeep.core.errors import SecurityError

PNG_PREFIX = "data:image/png;base64,"
TRANSPARENT = (0, 0, 0, 0)


def encode_png(image: Image.Image) -> str:
    """Encode ``image`` as a PNG data URL."""
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return PNG_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def decode_data_url(url: str) -> Image.Image:
    """Decode a base64 image data URL into an RGBA image.

    Raises
    ------
    ValueError
        If ``url`` is not a base64 data URL or does not hold a readable image.
    """
    if not url.startswith("data:") or ";base64," not in url:
        raise ValueError("expected a base64 data URL")
    _, encoded = url.split(";base64,", 1)
    try:
        raw = base64.b64decode(encoded, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"bad base64 payload: {exc}") from exc
    try:
        with Image.open(io.BytesIO(raw)) as img:
            return img.convert("RGBA")
    except OSError as exc:
        raise ValueError(f"unreadable image: {exc}") from exc


class Canvas:
    """An RGBA pixel surface with an id and class name."""

    def __init__(
        self,
        width: int = 160,
        height: int = 100,
        *,
        id: str = "",
        class_name: str = "",
        tainted: bool = False,
    ) -> None:
        self.id = id
        self.class_name = class_name
        self.tainted = tainted
        self.image = Image.new("RGBA", (width, height), TRANSPARENT)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def to_data_url(self) -> str:
        if self.tainted:
            raise SecurityError("the canvas has been tainted by cross-origin data")
        return encode_png(self.image)

    def clear(self) -> None:
        """Reset every pixel to transparent."""
        self.image = Image.new("RGBA", self.image.size, TRANSPARENT)

    def draw_data_url(self, url: str) -> None:
        """Draw the image in ``url`` at (0, 0), clipped to the canvas."""
        self.image.alpha_composite(_clip(decode_data_url(url), self.image.size))

    def fill(self, color: tuple[int, int, int, int]) -> None:
        self.image.paste(color, (0, 0, self.width, self.height))

    def pixel(self, x: int, y: int) -> tuple[int, ...]:
        value = self.image.getpixel((x, y))
        return tuple(value) if isinstance(value, tuple) else (int(value or 0),)


def _clip(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    width = min(image.width, size[0])
    height = min(image.height, size[1])
    if (width, height) == image.size:
        return image
    return image.crop((0, 0, width, height))


__all__ = ["PNG_PREFIX", "Canvas", "decode_data_url", "encode_png"]
