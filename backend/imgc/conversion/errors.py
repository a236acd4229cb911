"""Error taxonomy for conversion runs."""
from pathlib import Path
from typing import Optional


class ConversionError(Exception):
    """Base class for all conversion errors."""


class PatternError(ConversionError):
    """The glob pattern is syntactically invalid. Fatal for the run."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid glob pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class DecodeError(ConversionError):
    """Every decode strategy failed for one file."""

    def __init__(self, path: Path, cause: Optional[BaseException] = None):
        message = f"Could not decode {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.path = path
        self.cause = cause


class EncodeError(ConversionError):
    """The format encoder rejected the image or its options."""


class FilesystemError(ConversionError):
    """Read, write or mkdir failure."""


class OutputCollisionError(ConversionError):
    """Another input of the same run already owns this output path."""

    def __init__(self, path: Path, output_path: Path, owner: Path):
        super().__init__(f"Output {output_path} is already produced by {owner}")
        self.path = path
        self.output_path = output_path
        self.owner = owner
