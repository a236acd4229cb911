"""Image decoding with fallbacks for mislabeled files and legacy JPEG variants.

decode_image is the only place where faults raised by the decoding
dependencies are caught wholesale: a corrupt or adversarial file must turn
into a DecodeError for that file and never take the whole batch down.
"""
import logging
from pathlib import Path
from typing import Callable, Optional

import cv2
import numpy as np
from PIL import Image

from imgc.conversion.errors import DecodeError

logger = logging.getLogger("imgc.decoder")

JPEG_EXTENSIONS = {"jpg", "jpeg", "pjpeg"}

# Codec implied by an extension when forcing the decoder
FORCED_CODECS = {
    "pjpeg": "JPEG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "x-png": "PNG",
    "png": "PNG",
}

# (offset, magic bytes, Pillow plugin)
SIGNATURES = [
    (0, b"\x89PNG\r\n\x1a\n", "PNG"),
    (0, b"\xff\xd8\xff", "JPEG"),
    (0, b"GIF87a", "GIF"),
    (0, b"GIF89a", "GIF"),
    (8, b"WEBP", "WEBP"),
    (0, b"II*\x00", "TIFF"),
    (0, b"MM\x00*", "TIFF"),
    (4, b"ftypavif", "AVIF"),
    (4, b"ftypavis", "AVIF"),
    (0, b"BM", "BMP"),
]

Strategy = Callable[[Path], Image.Image]


def _open(path: Path, formats: Optional[list[str]] = None) -> Image.Image:
    with Image.open(path, formats=formats) as img:
        img.load()
        return img


def guess_format(header: bytes) -> Optional[str]:
    """Pillow plugin name for the first matching signature, if any."""
    for offset, magic, plugin in SIGNATURES:
        if header[offset:offset + len(magic)] == magic:
            return plugin
    return None


def _open_guessed(path: Path) -> Image.Image:
    with open(path, "rb") as f:
        header = f.read(32)
    plugin = guess_format(header)
    if plugin is None:
        raise DecodeError(path, ValueError("no known image signature"))
    return _open(path, formats=[plugin])


def _decode_jpeg_samples(path: Path) -> Image.Image:
    """Decode with libjpeg-turbo and rebuild an RGB image from the raw samples."""
    data = np.fromfile(str(path), dtype=np.uint8)
    pixels = cv2.imdecode(data, cv2.IMREAD_COLOR)
    if pixels is None:
        raise DecodeError(path, ValueError("libjpeg-turbo could not decode the file"))
    height, width = pixels.shape[:2]
    rgb = cv2.cvtColor(pixels, cv2.COLOR_BGR2RGB)
    return Image.frombytes("RGB", (width, height), rgb.tobytes())


def _open_forced(path: Path) -> Image.Image:
    codec = FORCED_CODECS[_extension(path)]
    return _open(path, formats=[codec])


def _extension(path: Path) -> str:
    return path.suffix.lstrip(".").lower()


def fallback_strategies(path: Path) -> list[tuple[str, Strategy]]:
    ext = _extension(path)
    strategies: list[tuple[str, Strategy]] = [("guessed format", _open_guessed)]
    if ext in JPEG_EXTENSIONS:
        strategies.append(("jpeg samples", _decode_jpeg_samples))
    if ext in FORCED_CODECS:
        strategies.append((f"forced {FORCED_CODECS[ext]}", _open_forced))
    return strategies


def decode_image(path: Path) -> Image.Image:
    """Open and fully decode an image, trying each strategy in order.

    Raises DecodeError chained from the first (auto-detection) error when
    every strategy fails; later errors are only logged.
    """
    try:
        return _open(path)
    except Exception as e:
        first_error = e
    logger.debug("Auto-detected decode failed for %s: %s", path, first_error)

    for name, strategy in fallback_strategies(path):
        try:
            img = strategy(path)
        except Exception as e:
            logger.debug("Fallback %r failed for %s: %s", name, path, e)
            continue
        logger.info("Decoded %s via fallback %r", path, name)
        return img

    raise DecodeError(path, first_error) from first_error
