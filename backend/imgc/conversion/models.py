"""Conversion run models: formats, configuration, tasks and outcomes."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

from PIL import Image, UnidentifiedImageError


class ImageFormat(str, Enum):
    WEBP = "webp"
    AVIF = "avif"
    PNG = "png"
    JPEG = "jpeg"
    GIF = "gif"
    BMP = "bmp"
    TIFF = "tiff"
    UNKNOWN = "unknown"

    @classmethod
    def from_extension(cls, ext: str) -> "ImageFormat":
        return _EXTENSIONS.get(ext.lower().lstrip("."), cls.UNKNOWN)

    @classmethod
    def from_pillow(cls, pillow_format: Optional[str]) -> "ImageFormat":
        return _PILLOW_FORMATS.get((pillow_format or "").upper(), cls.UNKNOWN)

    @classmethod
    def from_path(cls, path: Path) -> "ImageFormat":
        """Classify by extension, sniffing the content when the extension says nothing."""
        fmt = cls.from_extension(path.suffix)
        if fmt is not cls.UNKNOWN:
            return fmt
        try:
            with Image.open(path) as img:
                return cls.from_pillow(img.format)
        except (OSError, ValueError, UnidentifiedImageError, Image.DecompressionBombError):
            return cls.UNKNOWN

    def extension(self) -> str:
        return self.value

    @property
    def pillow_format(self) -> str:
        return self.value.upper()


_EXTENSIONS = {
    "jpg": ImageFormat.JPEG,
    "jpeg": ImageFormat.JPEG,
    "pjpeg": ImageFormat.JPEG,
    "png": ImageFormat.PNG,
    "x-png": ImageFormat.PNG,
    "webp": ImageFormat.WEBP,
    "avif": ImageFormat.AVIF,
    "gif": ImageFormat.GIF,
    "bmp": ImageFormat.BMP,
    "tif": ImageFormat.TIFF,
    "tiff": ImageFormat.TIFF,
}

_PILLOW_FORMATS = {
    "JPEG": ImageFormat.JPEG,
    "MPO": ImageFormat.JPEG,
    "PNG": ImageFormat.PNG,
    "WEBP": ImageFormat.WEBP,
    "AVIF": ImageFormat.AVIF,
    "GIF": ImageFormat.GIF,
    "BMP": ImageFormat.BMP,
    "TIFF": ImageFormat.TIFF,
}


class SupportedFormats:
    OUTPUT = [ImageFormat.WEBP, ImageFormat.AVIF, ImageFormat.PNG, ImageFormat.JPEG]
    # avif is never read: no reliable decoder integration on the read side
    DISABLED_INPUT = [ImageFormat.AVIF, ImageFormat.UNKNOWN]


@dataclass(frozen=True)
class RunConfig:
    """Run-wide settings shared read-only by every worker."""
    pattern: str
    output: str = ""
    reverse_processing_order: bool = False
    overwrite_if_smaller: bool = False
    overwrite_existing: bool = False
    discard_if_larger_than_input: bool = False


@dataclass(frozen=True)
class ConversionTask:
    path: Path
    config: RunConfig
    target: ImageFormat
    options: Mapping[str, Any] = field(default_factory=dict)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    DISCARDED = "discarded"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ConversionOutcome:
    kind: OutcomeKind
    input_bytes: int = 0
    output_bytes: int = 0
    cause: Optional[BaseException] = None

    @classmethod
    def success(cls, input_bytes: int, output_bytes: int) -> "ConversionOutcome":
        return cls(OutcomeKind.SUCCESS, input_bytes, output_bytes)

    @classmethod
    def skipped(cls, input_bytes: int, output_bytes: int) -> "ConversionOutcome":
        return cls(OutcomeKind.SKIPPED, input_bytes, output_bytes)

    @classmethod
    def discarded(cls, input_bytes: int, output_bytes: int) -> "ConversionOutcome":
        return cls(OutcomeKind.DISCARDED, input_bytes, output_bytes)

    @classmethod
    def failed(cls, cause: BaseException) -> "ConversionOutcome":
        return cls(OutcomeKind.FAILED, cause=cause)

    @classmethod
    def aborted(cls) -> "ConversionOutcome":
        return cls(OutcomeKind.ABORTED)
