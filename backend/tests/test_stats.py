import threading

from imgc.conversion.errors import DecodeError
from imgc.conversion.models import ConversionOutcome
from imgc.conversion.stats import RunStatistics, format_duration, format_size, progress_message, report_lines


def test_record_routes_bytes_by_outcome():
    stats = RunStatistics()
    stats.record(ConversionOutcome.success(1000, 400))
    stats.record(ConversionOutcome.skipped(500, 200))
    stats.record(ConversionOutcome.discarded(300, 350))
    stats.record(ConversionOutcome.failed(DecodeError("x.png")))
    stats.record(ConversionOutcome.aborted())

    s = stats.snapshot()
    assert (s.successful, s.skipped, s.discarded, s.errors, s.aborted) == (1, 1, 1, 1, 1)
    assert s.processed == 5
    assert (s.input_total, s.output_total) == (1500, 600)
    assert (s.input_preexisting, s.output_preexisting) == (500, 200)
    assert (s.input_discarded, s.output_discarded) == (300, 350)
    assert s.compression_ratio == 600 / 1500


def test_concurrent_records_are_not_lost():
    stats = RunStatistics()

    def work():
        for _ in range(2000):
            stats.record(ConversionOutcome.success(3, 1))

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    s = stats.snapshot()
    assert s.successful == 16000
    assert s.input_total == 48000
    assert s.output_total == 16000


def test_format_size():
    assert format_size(0) == "0.00B"
    assert format_size(1536) == "1.50KiB"
    assert format_size(5 * 1024 * 1024) == "5.00MiB"


def test_format_duration():
    assert format_duration(12.34) == "12.3s"
    assert format_duration(125) == "2m 5s"
    assert format_duration(3725) == "1h 2m 5s"


def test_progress_message_mentions_preexisting_only_when_present():
    stats = RunStatistics()
    stats.record(ConversionOutcome.success(2048, 1024))
    assert "preexisting" not in progress_message(stats.snapshot())
    stats.record(ConversionOutcome.skipped(1024, 512))
    assert "preexisting" in progress_message(stats.snapshot())


def test_report_shows_discards_only_when_policy_enabled():
    stats = RunStatistics()
    stats.record(ConversionOutcome.success(1000, 500))
    stats.record(ConversionOutcome.discarded(100, 150))
    s = stats.snapshot()

    enabled = "\n".join(report_lines(s, 1.0, 2, discard_enabled=True))
    disabled = "\n".join(report_lines(s, 1.0, 2, discard_enabled=False))
    assert "Discarded:   1" in enabled
    assert "Discarded" not in disabled
    assert "Total comp. ratio: 50.00%" in enabled


def test_report_splits_new_and_preexisting():
    stats = RunStatistics()
    stats.record(ConversionOutcome.success(1000, 250))
    stats.record(ConversionOutcome.skipped(1000, 500))
    lines = "\n".join(report_lines(stats.snapshot(), 3.0, 2))
    assert "New encodes comp. ratio: 25.00%" in lines
    assert "Preexisting comp. ratio: 50.00%" in lines
    assert "Total comp. ratio: 37.50%" in lines


def test_report_for_all_failed_run():
    stats = RunStatistics()
    stats.record(ConversionOutcome.failed(DecodeError("a.png")))
    stats.record(ConversionOutcome.failed(DecodeError("b.png")))
    lines = report_lines(stats.snapshot(), 0.5, 2)
    assert lines[0] == "Encode statistics:"
    assert "Errors:      2" in lines
