"""Batch image conversion: per-file pipeline and parallel scheduling."""
import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from tqdm import tqdm

from imgc.config import MAX_WORKERS, QUEUE_SIZE
from imgc.conversion.cancellation import CancellationToken
from imgc.conversion.decoder import decode_image
from imgc.conversion.encoders import encode, encoder_info, normalize_options
from imgc.conversion.errors import ConversionError, FilesystemError, OutputCollisionError
from imgc.conversion.models import ConversionOutcome, ConversionTask, ImageFormat, RunConfig
from imgc.conversion.paths import OutputPathMapper, find_collisions, resolve_paths
from imgc.conversion.stats import RunStatistics, StatsSnapshot, progress_message, report_lines

logger = logging.getLogger("imgc.service")

NOTHING_TO_CONVERT = "No images to convert, check input glob pattern and supported input formats."

_DONE = object()


@dataclass(frozen=True)
class RunReport:
    input_count: int
    stats: StatsSnapshot
    elapsed: float
    discard_enabled: bool = False

    @property
    def nothing_to_do(self) -> bool:
        return self.input_count == 0

    def lines(self) -> list[str]:
        if self.nothing_to_do:
            return [NOTHING_TO_CONVERT]
        return report_lines(self.stats, self.elapsed, self.input_count, self.discard_enabled)


class ConversionService:
    """Converts every image matched by a RunConfig pattern into one target format."""

    def __init__(
        self,
        config: RunConfig,
        target: ImageFormat,
        options: Optional[Mapping[str, Any]] = None,
        max_workers: Optional[int] = None,
        queue_size: Optional[int] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.config = config
        self.target = target
        self.options = normalize_options(target, options)
        self.max_workers = max(1, max_workers or MAX_WORKERS)
        self.queue_size = max(1, queue_size or QUEUE_SIZE)
        self.token = token or CancellationToken()
        self.stats = RunStatistics()
        self.mapper = OutputPathMapper(config, target)
        self.input_count = 0
        self._collisions: dict[Path, Path] = {}
        logger.debug("ConversionService initialized with max_workers=%s", self.max_workers)

    def make_task(self, path: Path) -> ConversionTask:
        return ConversionTask(path=path, config=self.config, target=self.target, options=self.options)

    def convert_one(self, task: ConversionTask) -> ConversionOutcome:
        """Run the decode/encode/write pipeline for one input. Per-file errors propagate."""
        owner = self._collisions.get(task.path)
        if owner is not None:
            raise OutputCollisionError(task.path, self.mapper.output_path(task.path), owner)

        config = task.config
        output_path = self.mapper.prepare(task.path)
        input_size = task.path.stat().st_size
        if output_path == task.path:
            logger.debug("%s is already a %s output, skipping", task.path, task.target.value)
            return ConversionOutcome.skipped(input_size, input_size)
        if output_path.exists() and not config.overwrite_existing and not config.overwrite_if_smaller:
            return ConversionOutcome.skipped(input_size, output_path.stat().st_size)

        image = decode_image(task.path)
        data = encode(image, task.target, task.options)
        output_size = len(data)

        if config.overwrite_if_smaller and output_path.exists():
            existing_size = output_path.stat().st_size
            if output_size >= existing_size:
                logger.debug("Keeping %s, new encode is not smaller (%s >= %s)", output_path, output_size, existing_size)
                return ConversionOutcome.skipped(input_size, existing_size)

        if config.discard_if_larger_than_input and output_size >= input_size:
            logger.debug("Discarding encode of %s (%s >= %s input bytes)", task.path, output_size, input_size)
            return ConversionOutcome.discarded(input_size, output_size)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(data)
        logger.debug("Converted %s -> %s", task.path, output_path)
        return ConversionOutcome.success(input_size, output_size)

    def process(self, task: ConversionTask) -> ConversionOutcome:
        """Dispatch one task and fold its outcome into the run statistics."""
        if self.token.is_stop_requested():
            outcome = ConversionOutcome.aborted()
        else:
            try:
                outcome = self.convert_one(task)
            except ConversionError as e:
                logger.error("File %s: could not be converted, error: %s", task.path, e)
                outcome = ConversionOutcome.failed(e)
            except OSError as e:
                logger.error("File %s: could not be converted, error: %s", task.path, e)
                outcome = ConversionOutcome.failed(FilesystemError(str(e)))
            except Exception as e:
                logger.exception("Unexpected error converting %s: %s", task.path, e)
                outcome = ConversionOutcome.failed(e)
        self.stats.record(outcome)
        return outcome

    def _produce(self, paths: list[Path], tasks: queue.Queue) -> None:
        for path in paths:
            tasks.put(self.make_task(path))
        for _ in range(self.max_workers):
            tasks.put(_DONE)

    def _consume(self, tasks: queue.Queue, bar: tqdm) -> None:
        while True:
            task = tasks.get()
            if task is _DONE:
                return
            self.process(task)
            bar.set_postfix_str(progress_message(self.stats.snapshot()), refresh=False)
            bar.update(1)

    def _ensure_output_root(self) -> None:
        if not self.config.output:
            return
        output_dir = Path(self.config.output)
        if output_dir.is_dir():
            return
        logger.info("Creating output directory %s", output_dir)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Error creating the output directory {output_dir}: {e}") from e

    def run(self, paths: Optional[list[Path]] = None, progress: bool = False) -> RunReport:
        """Resolve the pattern (unless paths are given) and convert everything in parallel.

        Raises PatternError for an invalid pattern and FilesystemError when the
        output root cannot be created; every per-file problem is counted instead.
        """
        started = time.monotonic()
        if paths is None:
            # in place, files already in the target format are earlier outputs
            ignore = None if self.config.output else self.target
            paths = resolve_paths(self.config.pattern, self.config.reverse_processing_order, ignore)
        self.input_count = len(paths)
        if not paths:
            logger.info(NOTHING_TO_CONVERT)
            return RunReport(0, self.stats.snapshot(), time.monotonic() - started)

        self._ensure_output_root()
        self._collisions = find_collisions(paths, self.mapper)
        logger.info("Converting %s files...", len(paths))
        logger.info(encoder_info(self.target, self.options))

        tasks: queue.Queue = queue.Queue(maxsize=self.queue_size)
        producer = threading.Thread(target=self._produce, args=(paths, tasks), name="imgc-producer", daemon=True)
        producer.start()
        with tqdm(total=len(paths), unit="img", disable=not progress, dynamic_ncols=True) as bar:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="imgc-worker") as executor:
                workers = [executor.submit(self._consume, tasks, bar) for _ in range(self.max_workers)]
                for worker in workers:
                    worker.result()
            bar.set_postfix_str("finished!")
        producer.join()

        report = RunReport(
            input_count=len(paths),
            stats=self.stats.snapshot(),
            elapsed=time.monotonic() - started,
            discard_enabled=self.config.discard_if_larger_than_input,
        )
        logger.info(
            "Run finished: %s successful, %s skipped, %s discarded, %s failed, %s aborted",
            report.stats.successful,
            report.stats.skipped,
            report.stats.discarded,
            report.stats.errors,
            report.stats.aborted,
        )
        return report
