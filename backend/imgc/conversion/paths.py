"""Glob expansion, input ordering and output path mapping."""
import glob
import logging
import os
import re
from pathlib import Path
from typing import Iterable, Optional, Union

from PIL import Image, UnidentifiedImageError

from imgc.conversion.errors import PatternError
from imgc.conversion.models import ImageFormat, RunConfig, SupportedFormats

logger = logging.getLogger("imgc.paths")

WILDCARD_CHARS = ("*", "?", "[")

_SEPARATORS = re.compile(r"[\\/]" if os.sep == "\\" else r"/")


def validate_pattern(pattern: str) -> None:
    """Reject patterns the glob syntax cannot express. Raises PatternError."""
    if not pattern:
        raise PatternError(pattern, "pattern is empty")
    for component in _SEPARATORS.split(pattern):
        if "**" in component and component != "**":
            raise PatternError(pattern, "recursive wildcards must form an entire path component")
    i, n = 0, len(pattern)
    while i < n:
        if pattern[i] != "[":
            i += 1
            continue
        j = i + 1
        if j < n and pattern[j] == "!":
            j += 1
        # a leading ] is part of the set
        if j < n and pattern[j] == "]":
            j += 1
        close = pattern.find("]", j)
        if close == -1:
            raise PatternError(pattern, f"unclosed character class at position {i}")
        i = close + 1


def sort_paths(paths: Iterable[Path], reverse: bool = False) -> list[Path]:
    """Order by (parent directory, file name); reverse flips the same ordering."""
    ordered = sorted(paths, key=lambda p: (p.parent.parts, p.name))
    if reverse:
        ordered.reverse()
    return ordered


def has_extension(path: Path, fmt: ImageFormat) -> bool:
    return path.suffix.lower() == f".{fmt.extension()}"


def is_supported(path: Path, ignore_format: ImageFormat) -> bool:
    """True when the file does not carry ignore_format's extension and Pillow recognises its content."""
    if has_extension(path, ignore_format):
        return False
    try:
        with Image.open(path):
            return True
    except (OSError, ValueError, UnidentifiedImageError, Image.DecompressionBombError):
        return False


def resolve_paths(pattern: str, reverse: bool = False, ignore_format: Optional[ImageFormat] = None) -> list[Path]:
    """Expand the pattern into an ordered, deduplicated list of convertible images.

    Files with ignore_format's extension are left out; in-place runs pass the
    target format so outputs of an earlier run are not picked up as inputs.
    """
    validate_pattern(pattern)
    candidates = dict.fromkeys(Path(p) for p in glob.glob(pattern, recursive=True, include_hidden=True))
    paths: list[Path] = []
    for path in candidates:
        if not path.is_file():
            continue
        if ignore_format is not None and has_extension(path, ignore_format):
            logger.debug("Ignoring %s (already %s)", path, ignore_format.value)
            continue
        fmt = ImageFormat.from_path(path)
        if fmt in SupportedFormats.DISABLED_INPUT:
            logger.debug("Ignoring %s (format: %s)", path, fmt.value)
            continue
        paths.append(path)
    logger.info("Pattern %s matched %s convertible files", pattern, len(paths))
    return sort_paths(paths, reverse)


def base_from_pattern(pattern: str) -> Path:
    """Longest literal prefix of path components before the first wildcard."""
    base = Path()
    for part in Path(pattern).parts:
        if any(c in part for c in WILDCARD_CHARS):
            break
        base = base / part
    return base


def normalize_prefix(path: Union[str, Path]) -> Path:
    """Drop leading current-directory components, nothing else."""
    parts = Path(path).parts
    while parts and parts[0] == os.curdir:
        parts = parts[1:]
    return Path(*parts) if parts else Path()


class OutputPathMapper:
    """Derives destination paths in place or rebased under an output root."""

    def __init__(self, config: RunConfig, target: ImageFormat):
        self.output = config.output
        self.extension = target.extension()
        self.pattern_base = normalize_prefix(base_from_pattern(config.pattern))

    def relative_path(self, input_path: Path) -> Path:
        input_norm = normalize_prefix(input_path)
        try:
            rel = input_norm.relative_to(self.pattern_base)
        except ValueError:
            rel = input_norm
        if rel.is_absolute():
            # keep outputs under the output root
            rel = Path(*rel.parts[1:])
        return rel

    def output_path(self, input_path: Path) -> Path:
        if not self.output:
            return input_path.with_suffix(f".{self.extension}")
        rel = self.relative_path(input_path)
        return Path(self.output) / rel.parent / f"{rel.stem}.{self.extension}"

    def prepare(self, input_path: Path) -> Path:
        """Return the output path, creating missing directories under the output root."""
        out_path = self.output_path(input_path)
        if self.output:
            out_path.parent.mkdir(parents=True, exist_ok=True)
        return out_path


def find_collisions(paths: Iterable[Path], mapper: OutputPathMapper) -> dict[Path, Path]:
    """Map every input whose output is already claimed to the input that claimed it first."""
    owners: dict[Path, Path] = {}
    collisions: dict[Path, Path] = {}
    for path in paths:
        out_path = mapper.output_path(path)
        if out_path == path:
            # an existing output, it never claims its own path
            continue
        owner = owners.setdefault(out_path, path)
        if owner != path:
            collisions[path] = owner
            logger.warning("Output collision: %s and %s both map to %s", owner, path, out_path)
    return collisions
