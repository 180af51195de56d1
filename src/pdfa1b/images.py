# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Raster image embedding for the merge stage.

Images are identified by content, not by file extension. JPEG data in
DeviceGray or DeviceRGB is embedded unchanged with ``/DCTDecode``;
everything else is decoded with Pillow, flattened onto a white
background (PDF/A-1 forbids image soft masks) and stored as raw 8-bit
samples that pikepdf compresses with FlateDecode on save.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from pikepdf import Name, Pdf, Stream
from PIL import Image

from .exceptions import ConversionError

logger = logging.getLogger(__name__)

# JPEG modes that map directly onto a PDF device color space
_PASSTHROUGH_JPEG_MODES = frozenset({"L", "RGB"})

_COLORSPACE_FOR_MODE = {
    "L": Name.DeviceGray,
    "RGB": Name.DeviceRGB,
}

_SCALE_16_TO_8 = 255 / 65535


@dataclass
class EmbeddedImage:
    """An Image XObject created from a raster file.

    Attributes:
        xobject: The indirect Image XObject stream.
        width: Width in pixels.
        height: Height in pixels.
        passthrough: True if the original JPEG bytes were embedded as-is.
    """

    xobject: Stream
    width: int
    height: int
    passthrough: bool = False


def _flatten_alpha(img: Image.Image) -> Image.Image:
    """Composite any transparency onto white and return an L or RGB image."""
    if img.mode == "P":
        img = img.convert("RGBA" if "transparency" in img.info else "RGB")
    elif img.mode == "1":
        img = img.convert("L")

    if img.mode in ("RGBA", "LA", "PA"):
        base_mode = "L" if img.mode == "LA" else "RGB"
        white = 255 if base_mode == "L" else (255, 255, 255)
        background = Image.new(base_mode, img.size, white)
        alpha = img.getchannel("A")
        background.paste(img.convert(base_mode + "A"), mask=alpha)
        return background

    if img.mode in _COLORSPACE_FOR_MODE:
        return img

    # 16-bit grayscale PNGs open as I;16 (older Pillow: I) with 0..65535
    if img.mode.startswith("I"):
        scaled = img.convert("I").point(lambda v: v * _SCALE_16_TO_8 + 0.5)
        return scaled.convert("L")
    if img.mode == "F":
        return img.convert("L")
    # CMYK, YCbCr
    return img.convert("RGB")


def _make_image_stream(
    pdf: Pdf, width: int, height: int, colorspace: Name
) -> Stream:
    stream = pdf.make_stream(b"")
    stream[Name.Type] = Name.XObject
    stream[Name.Subtype] = Name.Image
    stream[Name.Width] = width
    stream[Name.Height] = height
    stream[Name.ColorSpace] = colorspace
    stream[Name.BitsPerComponent] = 8
    return stream


def embed_image(pdf: Pdf, path: Path) -> EmbeddedImage:
    """Create an Image XObject in *pdf* from a raster image file.

    Args:
        pdf: Document that will own the XObject.
        path: Path to a JPEG or PNG file (any format Pillow reads works).

    Returns:
        EmbeddedImage describing the new XObject.

    Raises:
        ConversionError: If the file cannot be read or decoded.
    """
    try:
        with Image.open(path) as img:
            width, height = img.size
            if width <= 0 or height <= 0:
                raise ConversionError(f"Image has no pixels: {path}")

            if img.format == "JPEG" and img.mode in _PASSTHROUGH_JPEG_MODES:
                stream = _make_image_stream(
                    pdf, width, height, _COLORSPACE_FOR_MODE[img.mode]
                )
                stream.write(path.read_bytes(), filter=Name.DCTDecode)
                logger.debug(
                    "Embedded JPEG %s unchanged (%dx%d, %s)",
                    path.name,
                    width,
                    height,
                    img.mode,
                )
                return EmbeddedImage(stream, width, height, passthrough=True)

            source_mode = img.mode
            flat = _flatten_alpha(img)
            stream = _make_image_stream(
                pdf, width, height, _COLORSPACE_FOR_MODE[flat.mode]
            )
            stream.write(flat.tobytes())
            logger.debug(
                "Embedded %s %s as %s samples (%dx%d, source mode %s)",
                img.format,
                path.name,
                flat.mode,
                width,
                height,
                source_mode,
            )
            return EmbeddedImage(stream, width, height)
    except ConversionError:
        raise
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ConversionError(f"Could not read image {path}: {e}") from e
