"""API routes for starting, polling and cancelling conversion runs."""
import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, HTTPException

from imgc.conversion.clean import remove_files
from imgc.conversion.errors import EncodeError, PatternError
from imgc.conversion.models import ImageFormat, RunConfig, SupportedFormats
from imgc.conversion.paths import validate_pattern
from imgc.conversion.service import ConversionService
from imgc.runs import create_run, execute_run, get_run, run_to_dict

logger = logging.getLogger("imgc.api")
router = APIRouter(prefix="/api", tags=["imgc"])


def _parse_format(value: str) -> ImageFormat:
    try:
        fmt = ImageFormat(value.strip().lower())
    except ValueError:
        fmt = ImageFormat.UNKNOWN
    if fmt not in SupportedFormats.OUTPUT:
        raise HTTPException(400, f"Unsupported output format: {value}")
    return fmt


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/formats")
def get_formats():
    return {
        "output": [f.value for f in SupportedFormats.OUTPUT],
        "input_disabled": [f.value for f in SupportedFormats.DISABLED_INPUT if f != ImageFormat.UNKNOWN],
    }


@router.post("/runs")
async def start_run(
    background_tasks: BackgroundTasks,
    pattern: str = Body(..., embed=True),
    format: str = Body("webp", embed=True),
    output: str = Body("", embed=True),
    reverse_processing_order: bool = Body(False, embed=True),
    overwrite_if_smaller: bool = Body(False, embed=True),
    overwrite_existing: bool = Body(False, embed=True),
    discard_if_larger_than_input: bool = Body(False, embed=True),
    options: Optional[dict[str, Any]] = Body(None, embed=True),
    max_workers: Optional[int] = Body(None, embed=True, ge=1),
):
    """Start a conversion run in the background. Poll /api/runs/{run_id} for progress."""
    target = _parse_format(format)
    try:
        validate_pattern(pattern)
        service = ConversionService(
            RunConfig(
                pattern=pattern,
                output=output,
                reverse_processing_order=reverse_processing_order,
                overwrite_if_smaller=overwrite_if_smaller,
                overwrite_existing=overwrite_existing,
                discard_if_larger_than_input=discard_if_larger_than_input,
            ),
            target,
            options=options,
            max_workers=max_workers,
        )
    except (PatternError, EncodeError) as e:
        raise HTTPException(400, str(e))

    job = create_run(service)

    async def run_async():
        await asyncio.to_thread(execute_run, job.run_id)

    background_tasks.add_task(run_async)
    return {"run_id": job.run_id, "status": job.status, "message": "Conversion started. Poll /api/runs/{run_id} for status."}


@router.get("/runs/{run_id}")
def run_status(run_id: str):
    """Run status with live statistics; the report is present once completed."""
    job = get_run(run_id)
    if not job:
        raise HTTPException(404, "Run not found")
    return run_to_dict(job)


@router.post("/runs/{run_id}/cancel")
def cancel_run(run_id: str):
    """Stop dispatching new files for a run; files already converting still finish."""
    job = get_run(run_id)
    if not job:
        raise HTTPException(404, "Run not found")
    if job.service.token.request_stop():
        logger.warning("Cancellation requested for run %s", run_id)
    return run_to_dict(job)


@router.post("/clean")
def clean(pattern: str = Body(..., embed=True)):
    """Delete all files matching a glob pattern."""
    try:
        deleted, freed = remove_files(pattern)
    except PatternError as e:
        raise HTTPException(400, str(e))
    except OSError as e:
        logger.exception("Clean failed for %s: %s", pattern, e)
        raise HTTPException(500, str(e))
    return {"deleted_files": deleted, "freed_bytes": freed}
