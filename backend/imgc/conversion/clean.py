"""Housekeeping: delete files matching a glob pattern."""
import glob
import logging
from pathlib import Path

from imgc.conversion.paths import validate_pattern
from imgc.conversion.stats import format_size

logger = logging.getLogger("imgc.clean")


def remove_files(pattern: str) -> tuple[int, int]:
    """Delete every regular file matching the pattern. Returns (files deleted, bytes freed)."""
    validate_pattern(pattern)
    deleted = 0
    freed = 0
    for entry in glob.glob(pattern, recursive=True, include_hidden=True):
        path = Path(entry)
        if not path.is_file():
            continue
        size = path.stat().st_size
        path.unlink()
        deleted += 1
        freed += size
        logger.info("Deleted: %s", path)
    logger.info("Deleted %s files, %s.", deleted, format_size(freed))
    return deleted, freed
