"""Format encoders built on Pillow. Each takes a decoded image and an option mapping."""
import io
import logging
from typing import Any, Callable, Mapping, Optional

import PIL
from PIL import Image, features

from imgc.config import DEFAULT_AVIF_SPEED, DEFAULT_QUALITY, DEFAULT_WEBP_METHOD
from imgc.conversion.errors import EncodeError
from imgc.conversion.models import ImageFormat

logger = logging.getLogger("imgc.encoders")

Options = Mapping[str, Any]
Encoder = Callable[[Image.Image, Options], bytes]

PNG_COMPRESSION_LEVELS = {"default": 6, "fast": 1, "best": 9}
AVIF_SUBSAMPLING = ("4:2:0", "4:2:2", "4:4:4", "4:0:0")
AVIF_RANGES = ("full", "limited")
JPEG_BACKGROUND = (255, 255, 255)
PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}

# Pillow feature name of the codec library behind each format
CODEC_FEATURES = {
    ImageFormat.WEBP: "webp",
    ImageFormat.AVIF: "avif",
    ImageFormat.PNG: "zlib",
    ImageFormat.JPEG: "jpg",
}


def _number(options: Options, key: str, default: float, low: float, high: float) -> float:
    value = options.get(key)
    if value is None:
        return default
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise EncodeError(f"{key} must be a number, got {value!r}")
    if not low <= value <= high:
        raise EncodeError(f"{key} must be between {low:g} and {high:g}, got {value:g}")
    return value


def _flag(options: Options, key: str, default: bool) -> bool:
    value = options.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise EncodeError(f"{key} must be a boolean, got {value!r}")
    return value


def _choice(options: Options, key: str, default: str, choices) -> str:
    value = options.get(key)
    if value is None:
        return default
    value = str(value).lower()
    if value not in choices:
        raise EncodeError(f"{key} must be one of {', '.join(choices)}, got {value!r}")
    return value


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _to_rgb_or_rgba(img: Image.Image) -> Image.Image:
    """Widen luma/palette/other modes to what the webp and avif encoders accept."""
    if img.mode in ("RGB", "RGBA"):
        return img
    return img.convert("RGBA" if _has_alpha(img) else "RGB")


def _save(img: Image.Image, pillow_format: str, **save_kw) -> bytes:
    buf = io.BytesIO()
    try:
        img.save(buf, format=pillow_format, **save_kw)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"{pillow_format} encoding failed: {e}") from e
    return buf.getvalue()


def normalize_options(target: ImageFormat, options: Optional[Options] = None) -> dict[str, Any]:
    """Validate the option bundle for a target format and fill in defaults."""
    options = options or {}
    if target == ImageFormat.WEBP:
        return {
            "quality": _number(options, "quality", DEFAULT_QUALITY, 0, 100),
            "lossless": _flag(options, "lossless", False),
            "method": int(_number(options, "method", DEFAULT_WEBP_METHOD, 0, 6)),
        }
    if target == ImageFormat.AVIF:
        if not features.check("avif"):
            raise EncodeError("AVIF encoding is not available in this Pillow build")
        return {
            "quality": _number(options, "quality", DEFAULT_QUALITY, 0, 100),
            "speed": int(_number(options, "speed", DEFAULT_AVIF_SPEED, 0, 10)),
            "subsampling": _choice(options, "subsampling", "4:2:0", AVIF_SUBSAMPLING),
            "range": _choice(options, "range", "full", AVIF_RANGES),
            "alpha_premultiplied": _flag(options, "alpha_premultiplied", False),
        }
    if target == ImageFormat.PNG:
        return {
            "compression_type": _choice(options, "compression_type", "default", PNG_COMPRESSION_LEVELS),
            "optimize": _flag(options, "optimize", False),
        }
    if target == ImageFormat.JPEG:
        return {
            "quality": _number(options, "quality", DEFAULT_QUALITY, 0, 100),
            "progressive": _flag(options, "progressive", True),
        }
    raise EncodeError(f"Unsupported output format: {target.value}")


def encode_webp(image: Image.Image, options: Options) -> bytes:
    return _save(
        _to_rgb_or_rgba(image),
        "WEBP",
        quality=options["quality"],
        lossless=options["lossless"],
        method=options["method"],
    )


def encode_avif(image: Image.Image, options: Options) -> bytes:
    return _save(
        _to_rgb_or_rgba(image),
        "AVIF",
        quality=int(round(options["quality"])),
        speed=options["speed"],
        subsampling=options["subsampling"],
        range=options["range"],
        alpha_premultiplied=options["alpha_premultiplied"],
    )


def encode_png(image: Image.Image, options: Options) -> bytes:
    img = image if image.mode in PNG_MODES else image.convert("RGBA" if _has_alpha(image) else "RGB")
    return _save(
        img,
        "PNG",
        compress_level=PNG_COMPRESSION_LEVELS[options["compression_type"]],
        optimize=options["optimize"],
    )


def _flatten(img: Image.Image) -> Image.Image:
    """Composite transparent images onto the JPEG background colour."""
    if not _has_alpha(img):
        return img.convert("RGB")
    rgba = img.convert("RGBA")
    flat = Image.new("RGB", rgba.size, JPEG_BACKGROUND)
    flat.paste(rgba, mask=rgba.getchannel("A"))
    return flat


def encode_jpeg(image: Image.Image, options: Options) -> bytes:
    img = image if image.mode in ("RGB", "L", "CMYK") else _flatten(image)
    return _save(
        img,
        "JPEG",
        quality=int(round(options["quality"])),
        optimize=True,
        progressive=options["progressive"],
    )


ENCODERS: dict[ImageFormat, Encoder] = {
    ImageFormat.WEBP: encode_webp,
    ImageFormat.AVIF: encode_avif,
    ImageFormat.PNG: encode_png,
    ImageFormat.JPEG: encode_jpeg,
}


def encode(image: Image.Image, target: ImageFormat, options: Options) -> bytes:
    encoder = ENCODERS.get(target)
    if encoder is None:
        raise EncodeError(f"Unsupported output format: {target.value}")
    return encoder(image, options)


def encoder_info(target: ImageFormat, options: Options) -> str:
    codec = CODEC_FEATURES.get(target)
    codec_version = features.version(codec) if codec else None
    rendered = ", ".join(f"{k}: {v}" for k, v in options.items())
    return (
        f'Using "Pillow" ({PIL.__version__}, {codec or "?"} {codec_version or "unknown"}) '
        f"for {target.value} with options ({rendered})"
    )
