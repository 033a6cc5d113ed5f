"""Image decoding, aspect-preserving nearest-neighbor resizing and re-encoding."""
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from PIL import Image as PILImage, ImageOps

from errors import DecodeError, IOFailure

# Modes that can be sampled and saved as-is; anything else goes through RGBA
_SAMPLE_MODES = {"RGB", "RGBA", "L"}


class ImageFormat(str, Enum):
    """Encodings a thumbnail can be written in."""
    JPEG = "JPEG"
    PNG = "PNG"
    GIF = "GIF"
    OTHER = "OTHER"

    @classmethod
    def from_pil(cls, name: Optional[str]) -> "ImageFormat":
        """Map a Pillow format name onto the supported variants."""
        name = (name or "").upper()
        if name in ("JPEG", "MPO"):
            return cls.JPEG
        if name == "PNG":
            return cls.PNG
        if name == "GIF":
            return cls.GIF
        return cls.OTHER


def decode_image(path: Path) -> Tuple[PILImage.Image, ImageFormat]:
    """Decode an image file with its EXIF orientation applied."""
    try:
        f = open(path, "rb")
    except OSError as e:
        raise IOFailure(f"Cannot open {path.name}: {e}", path) from e

    with f:
        try:
            with PILImage.open(f) as im:
                fmt = ImageFormat.from_pil(im.format)
                im.load()
                image = ImageOps.exif_transpose(im)
        except (OSError, ValueError, SyntaxError, PILImage.DecompressionBombError) as e:
            raise DecodeError(f"Cannot decode {path.name}: {e}") from e

    if image.width == 0 or image.height == 0:
        raise DecodeError(f"{path.name} has no pixels")
    return image, fmt


def target_dimensions(width: int, height: int, target: int) -> Tuple[int, int]:
    """
    Scale (width, height) so the longest side equals target.

    The other side is floor(other * target / longest), at least 1 pixel.
    """
    if width <= 0 or height <= 0:
        raise DecodeError(f"Degenerate image dimensions {width}x{height}")
    if width > height:
        return target, max(1, height * target // width)
    return max(1, width * target // height), target


def resize_nearest(src: PILImage.Image, width: int, height: int) -> PILImage.Image:
    """Nearest-neighbor resample: dst(x, y) = src(x * sw // width, y * sh // height)."""
    src_w, src_h = src.size
    if src_w == 0 or src_h == 0:
        raise DecodeError(f"Degenerate image dimensions {src_w}x{src_h}")
    if src.mode not in _SAMPLE_MODES:
        src = src.convert("RGBA")

    pixels = src.load()
    xs = [x * src_w // width for x in range(width)]
    data = [pixels[sx, y * src_h // height] for y in range(height) for sx in xs]

    dst = PILImage.new(src.mode, (width, height))
    dst.putdata(data)
    return dst


def encode_image(
    image: PILImage.Image,
    fmt: ImageFormat,
    dest: Union[Path, BinaryIO],
    quality: int,
) -> None:
    """Write image in the source's format; unsupported formats fall back to JPEG."""
    if fmt is ImageFormat.PNG:
        image.save(dest, format="PNG")
    elif fmt is ImageFormat.GIF:
        image.save(dest, format="GIF")
    else:
        image.convert("RGB").save(dest, format="JPEG", quality=quality)
