"""Command line entry point: imgc {webp,avif,png,jpeg,clean} PATTERN [options]."""
import argparse
import logging
import sys
from typing import Optional, Sequence

from tqdm.contrib.logging import logging_redirect_tqdm

from imgc.config import MAX_WORKERS
from imgc.conversion.cancellation import CancellationToken
from imgc.conversion.clean import remove_files
from imgc.conversion.encoders import AVIF_RANGES, AVIF_SUBSAMPLING, PNG_COMPRESSION_LEVELS
from imgc.conversion.errors import ConversionError
from imgc.conversion.models import ImageFormat, RunConfig
from imgc.conversion.service import ConversionService
from imgc.conversion.stats import format_size

logger = logging.getLogger("imgc.cli")


def _common_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("pattern", help="Glob pattern to match images to convert, e.g. 'images/**/*.png'.")
    p.add_argument(
        "-o", "--output", default="",
        help="Output directory. Replaces the literal base of the pattern; defaults to in-place with the new extension.",
    )
    p.add_argument("--reverse-processing-order", action="store_true", help="Process files in reverse lexicographic order.")
    p.add_argument("--overwrite-if-smaller", action="store_true", help="Overwrite an existing output if the new encode is smaller.")
    p.add_argument("--overwrite-existing", action="store_true", help="Overwrite existing outputs regardless of size.")
    p.add_argument(
        "--discard-if-larger-than-input", action="store_true",
        help="Do not write encodes that are not smaller than their input.",
    )
    p.add_argument("--workers", type=int, default=MAX_WORKERS, help="Number of parallel encodes.")
    p.add_argument("--no-progress", action="store_true", help="Do not show the progress bar.")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging (debug).")
    return p


def build_parser() -> argparse.ArgumentParser:
    common = _common_parser()
    parser = argparse.ArgumentParser(prog="imgc", description="Batch convert images matched by a glob pattern.")
    sub = parser.add_subparsers(dest="command", required=True)

    webp = sub.add_parser("webp", parents=[common], help="Convert images to webp.")
    webp.add_argument("--lossless", action="store_true", default=None, help="Use lossless encoding.")
    webp.add_argument("-q", "--quality", type=float, help="Target quality 0-100 (default 90).")
    webp.add_argument("--method", type=int, help="Encoder effort 0-6, higher is slower and smaller (default 4).")

    avif = sub.add_parser("avif", parents=[common], help="Convert images to avif.")
    avif.add_argument("-q", "--quality", type=float, help="Target quality 0-100 (default 90).")
    avif.add_argument("-s", "--speed", type=int, help="Encoding speed 0-10, lower is slower and smaller (default 3).")
    avif.add_argument("--subsampling", choices=AVIF_SUBSAMPLING, help="Chroma subsampling (default 4:2:0).")
    avif.add_argument("--range", choices=AVIF_RANGES, help="YUV range (default full).")
    avif.add_argument("--alpha-premultiplied", action="store_true", default=None, help="Store premultiplied alpha.")

    png = sub.add_parser("png", parents=[common], help="Convert images to png.")
    png.add_argument("--compression-type", choices=list(PNG_COMPRESSION_LEVELS), help="zlib compression preset.")
    png.add_argument("--optimize", action="store_true", default=None, help="Search for the smallest encoding.")

    jpeg = sub.add_parser("jpeg", parents=[common], help="Convert images to optimized jpeg.")
    jpeg.add_argument("-q", "--quality", type=float, help="Target quality 0-100 (default 90).")
    jpeg.add_argument("--baseline", action="store_true", help="Write baseline instead of progressive jpeg.")

    clean = sub.add_parser("clean", help="Remove files matching a glob pattern.")
    clean.add_argument("pattern", help="Glob pattern of files to delete.")
    return parser


OPTION_KEYS = {
    ImageFormat.WEBP: ("quality", "lossless", "method"),
    ImageFormat.AVIF: ("quality", "speed", "subsampling", "range", "alpha_premultiplied"),
    ImageFormat.PNG: ("compression_type", "optimize"),
    ImageFormat.JPEG: ("quality",),
}


def options_from_args(target: ImageFormat, args: argparse.Namespace) -> dict:
    options = {key: getattr(args, key) for key in OPTION_KEYS[target] if getattr(args, key, None) is not None}
    if target == ImageFormat.JPEG and args.baseline:
        options["progressive"] = False
    return options


def config_from_args(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        pattern=args.pattern,
        output=args.output or "",
        reverse_processing_order=args.reverse_processing_order,
        overwrite_if_smaller=args.overwrite_if_smaller,
        overwrite_existing=args.overwrite_existing,
        discard_if_larger_than_input=args.discard_if_larger_than_input,
    )


def run_clean(pattern: str) -> int:
    try:
        deleted, freed = remove_files(pattern)
    except (ConversionError, OSError) as e:
        logger.error("Clean failed: %s", e)
        return 1
    print(f"Deleted {deleted} files, {format_size(freed)}.")
    return 0


def run_convert(args: argparse.Namespace) -> int:
    target = ImageFormat(args.command)
    token = CancellationToken()
    try:
        service = ConversionService(
            config_from_args(args),
            target,
            options=options_from_args(target, args),
            max_workers=args.workers,
            token=token,
        )
        with token.signal_handlers(), logging_redirect_tqdm():
            report = service.run(progress=not args.no_progress)
    except ConversionError as e:
        logger.error("%s", e)
        return 1
    print("\n".join(report.lines()))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if getattr(args, "verbose", False):
        logging.getLogger("imgc").setLevel(logging.DEBUG)
    if args.command == "clean":
        return run_clean(args.pattern)
    return run_convert(args)


if __name__ == "__main__":
    sys.exit(main())
