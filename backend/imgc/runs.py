"""Run job state for the HTTP service. Kept in memory for the lifetime of the process."""
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Optional

from imgc.conversion.service import ConversionService, RunReport

logger = logging.getLogger("imgc.runs")


@dataclass
class RunJob:
    run_id: str
    status: str  # "processing" | "completed" | "failed"
    service: ConversionService
    report: Optional[RunReport] = None
    error: Optional[str] = None


_runs: dict[str, RunJob] = {}
_lock = threading.Lock()


def get_run(run_id: str) -> Optional[RunJob]:
    with _lock:
        return _runs.get(run_id)


def create_run(service: ConversionService) -> RunJob:
    job = RunJob(run_id=str(uuid.uuid4()), status="processing", service=service)
    with _lock:
        _runs[job.run_id] = job
    logger.info("Created run %s for pattern %s", job.run_id, service.config.pattern)
    return job


def set_run_completed(run_id: str, report: RunReport) -> None:
    job = get_run(run_id)
    if job:
        job.report = report
        job.status = "completed"


def set_run_failed(run_id: str, error: str) -> None:
    job = get_run(run_id)
    if job:
        job.error = error
        job.status = "failed"


def cancel_active_runs() -> int:
    """Request a stop on every run still processing. Returns how many were newly stopped."""
    with _lock:
        active = [job for job in _runs.values() if job.status == "processing"]
    stopped = [job.run_id for job in active if job.service.token.request_stop()]
    for run_id in stopped:
        logger.warning("Stopping run %s", run_id)
    return len(stopped)


def execute_run(run_id: str) -> None:
    """Run a job to completion; fatal run errors are stored on the job."""
    job = get_run(run_id)
    if job is None:
        return
    try:
        report = job.service.run()
    except Exception as e:
        logger.exception("Run %s failed: %s", run_id, e)
        set_run_failed(run_id, str(e))
        return
    set_run_completed(run_id, report)
    logger.info("Run %s completed", run_id)


def run_to_dict(job: RunJob) -> dict:
    service = job.service
    result = {
        "run_id": job.run_id,
        "status": job.status,
        "pattern": service.config.pattern,
        "format": service.target.value,
        "input_count": service.input_count,
        "cancel_requested": service.token.is_stop_requested(),
        "stats": service.stats.snapshot().to_dict(),
        "error": job.error,
    }
    if job.report is not None:
        result["elapsed_seconds"] = job.report.elapsed
        result["report"] = job.report.lines()
    return result
