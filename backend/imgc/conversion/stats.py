"""Run-wide conversion statistics and the end-of-run report."""
import threading
from dataclasses import dataclass
from typing import Optional

from imgc.conversion.models import ConversionOutcome, OutcomeKind


class AtomicCounter:
    """Integer counter with its own lock, so counters never contend with each other."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def add(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        return self._value


@dataclass(frozen=True)
class StatsSnapshot:
    successful: int
    skipped: int
    discarded: int
    errors: int
    aborted: int
    input_total: int
    output_total: int
    input_preexisting: int
    output_preexisting: int
    input_discarded: int
    output_discarded: int

    @property
    def processed(self) -> int:
        return self.successful + self.skipped + self.discarded + self.errors + self.aborted

    @property
    def compression_ratio(self) -> Optional[float]:
        if self.input_total <= 0:
            return None
        return self.output_total / self.input_total

    def to_dict(self) -> dict:
        return {
            "successful": self.successful,
            "skipped": self.skipped,
            "discarded": self.discarded,
            "errors": self.errors,
            "aborted": self.aborted,
            "processed": self.processed,
            "input_total": self.input_total,
            "output_total": self.output_total,
            "input_preexisting": self.input_preexisting,
            "output_preexisting": self.output_preexisting,
            "input_discarded": self.input_discarded,
            "output_discarded": self.output_discarded,
            "compression_ratio": self.compression_ratio,
        }


class RunStatistics:
    """Outcome counters and byte totals shared by all workers of a run."""

    def __init__(self):
        self.successful = AtomicCounter()
        self.skipped = AtomicCounter()
        self.discarded = AtomicCounter()
        self.errors = AtomicCounter()
        self.aborted = AtomicCounter()
        self.input_total = AtomicCounter()
        self.output_total = AtomicCounter()
        self.input_preexisting = AtomicCounter()
        self.output_preexisting = AtomicCounter()
        self.input_discarded = AtomicCounter()
        self.output_discarded = AtomicCounter()

    def record(self, outcome: ConversionOutcome) -> None:
        kind = outcome.kind
        if kind == OutcomeKind.SUCCESS:
            self.successful.add()
            self.input_total.add(outcome.input_bytes)
            self.output_total.add(outcome.output_bytes)
        elif kind == OutcomeKind.SKIPPED:
            self.skipped.add()
            self.input_total.add(outcome.input_bytes)
            self.output_total.add(outcome.output_bytes)
            self.input_preexisting.add(outcome.input_bytes)
            self.output_preexisting.add(outcome.output_bytes)
        elif kind == OutcomeKind.DISCARDED:
            self.discarded.add()
            self.input_discarded.add(outcome.input_bytes)
            self.output_discarded.add(outcome.output_bytes)
        elif kind == OutcomeKind.FAILED:
            self.errors.add()
        else:
            self.aborted.add()

    def snapshot(self) -> StatsSnapshot:
        """Read every counter; not atomic across counters."""
        return StatsSnapshot(
            successful=self.successful.value,
            skipped=self.skipped.value,
            discarded=self.discarded.value,
            errors=self.errors.value,
            aborted=self.aborted.value,
            input_total=self.input_total.value,
            output_total=self.output_total.value,
            input_preexisting=self.input_preexisting.value,
            output_preexisting=self.output_preexisting.value,
            input_discarded=self.input_discarded.value,
            output_discarded=self.output_discarded.value,
        )


def format_size(num_bytes: float) -> str:
    """Binary units, two decimals, no space: 1536 -> '1.50KiB'."""
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if abs(num_bytes) < 1024 or unit == "TiB":
            return f"{num_bytes:.2f}{unit}"
        num_bytes /= 1024
    return f"{num_bytes:.2f}TiB"


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"
    return f"{int(seconds // 3600)}h {int(seconds % 3600 // 60)}m {int(seconds % 60)}s"


def progress_message(s: StatsSnapshot) -> str:
    sizes = f"{format_size(s.input_total)} ➜ {format_size(s.output_total)}"
    if s.input_preexisting > 0:
        sizes += f" ({format_size(s.input_preexisting)} ➜ {format_size(s.output_preexisting)} preexisting)"
    return f"{sizes} | ✔ {s.successful} ↷ {s.skipped} ✖ {s.errors}"


def _ratio(output_bytes: int, input_bytes: int) -> str:
    return f"{output_bytes / input_bytes * 100:.2f}%"


def report_lines(
    s: StatsSnapshot,
    elapsed: float,
    input_count: int,
    discard_enabled: bool = False,
) -> list[str]:
    """Human-readable end-of-run statistics block."""
    lines = [
        "Encode statistics:",
        f"Time taken:  {format_duration(elapsed)}",
        f"Input files: {input_count}",
        f"Successful:  {s.successful}",
        f"Skipped:     {s.skipped}",
        f"Errors:      {s.errors}",
    ]
    if s.aborted:
        lines.append(f"Aborted:     {s.aborted}")
    if discard_enabled and s.discarded > 0:
        lines.append(
            f"Discarded:   {s.discarded} (due to the encode being larger than the input; "
            f"{format_size(s.input_discarded)} ➜ {format_size(s.output_discarded)})"
        )
        lines.append("Discarded in- and outputs do not count into the total in-/output statistics below.")
    if s.input_total > 0 and s.output_total > 0:
        counted = s.successful + s.skipped
        lines += [
            f"Total input size:  {format_size(s.input_total)}",
            f"Total output size: {format_size(s.output_total)}",
            f"Avg. input size:   {format_size(s.input_total / counted)}",
            f"Avg. output size:  {format_size(s.output_total / counted)}",
            f"Total comp. ratio: {_ratio(s.output_total, s.input_total)}",
        ]
        if s.input_preexisting > 0 and s.output_preexisting > 0:
            new_input = s.input_total - s.input_preexisting
            new_output = s.output_total - s.output_preexisting
            if new_input > 0:
                lines += [
                    f"New encodes input size:  {format_size(new_input)}",
                    f"New encodes output size: {format_size(new_output)}",
                    f"New encodes comp. ratio: {_ratio(new_output, new_input)}",
                ]
            lines += [
                f"Preexisting input size:  {format_size(s.input_preexisting)}",
                f"Preexisting output size: {format_size(s.output_preexisting)}",
                f"Preexisting comp. ratio: {_ratio(s.output_preexisting, s.input_preexisting)}",
            ]
    elif s.successful + s.skipped + s.errors > 1:
        lines.append("Input and output size could not be determined.")
    return lines
