# decksync/alignment/job_runner.py
import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

from decksync.alignment.dto import AlignmentOptions
from decksync.alignment.errors import OracleError
from decksync.alignment.jobs import (
    cancel_job,
    cleanup_finished_jobs,
    fail_job,
    save_job_result,
    update_job_progress,
)
from decksync.alignment.oracle import OpenAIAlignmentOracle
from decksync.alignment.pipeline import AlignmentPipeline, PipelineState
from decksync.llm.llm_config import load_llm_config
from decksync.tracing import TracingContext, clear_current_context, set_current_context


@dataclass(frozen=True)
class JobInputs:
    video_path: str
    deck1_path: str
    deck2_path: str


# Running alignment tasks by job id
_running_jobs: Dict[str, asyncio.Task] = {}
_cleanup_task: asyncio.Task | None = None


def create_oracle() -> OpenAIAlignmentOracle:
    """Build the oracle for one job from the configured vision model."""
    return OpenAIAlignmentOracle(load_llm_config())


def _cleanup_temp_files(inputs: JobInputs) -> None:
    """Remove the uploaded files of a job."""
    for path in (inputs.video_path, inputs.deck1_path, inputs.deck2_path):
        try:
            if path and os.path.exists(path):
                os.remove(path)
                logging.debug("Removed temp file: %s", path)
        except OSError as e:
            logging.warning("Cleanup issue for %s: %s", path, e)


async def _run_job(job_id: str, inputs: JobInputs, options: AlignmentOptions):
    """Run one alignment end to end and store its outcome in the job store."""
    set_current_context(
        TracingContext(
            job_id=job_id,
            video_name=os.path.basename(inputs.video_path),
            deck_names=[
                os.path.basename(inputs.deck1_path),
                os.path.basename(inputs.deck2_path),
            ],
        )
    )

    def on_status(state: PipelineState, message: str) -> None:
        update_job_progress(job_id, state.value, message)

    try:
        oracle = create_oracle()
        try:
            pipeline = AlignmentPipeline(
                oracle, options, on_status=on_status, job_id=job_id
            )
            report = await pipeline.run(
                inputs.video_path, inputs.deck1_path, inputs.deck2_path
            )
        finally:
            await oracle.aclose()

        await save_job_result(
            job_id, {**report.model_dump(exclude={"status"}), "message": report.status}
        )
        logging.info("[Job %s] Finished (saved result)", job_id)

    except asyncio.CancelledError:
        logging.info("[Job %s] Cancelled", job_id)
        raise
    except OracleError as e:
        await fail_job(job_id, str(e), raw_response=e.raw_response)
    except Exception as e:
        await fail_job(job_id, str(e))
    finally:
        _cleanup_temp_files(inputs)
        _running_jobs.pop(job_id, None)
        clear_current_context()


def start_job(
    job_id: str, inputs: JobInputs, options: Optional[AlignmentOptions] = None
) -> asyncio.Task:
    """Schedule an alignment run; the request returns immediately."""
    task = asyncio.create_task(_run_job(job_id, inputs, options or AlignmentOptions()))
    _running_jobs[job_id] = task
    logging.info("[Job %s] Alignment started", job_id)
    return task


async def cancel_job_processing(job_id: str) -> dict:
    """
    Cancel a job. A running job is interrupted at its current suspension point
    and its media handles and uploads are released.
    """
    task = _running_jobs.get(job_id)
    if task is not None and not task.done():
        await cancel_job(job_id)
        task.cancel()
        logging.info("[Job %s] Cancelled while processing", job_id)
        return {
            "status": "cancelled",
            "message": "Job was processing and has been stopped",
        }

    # Only a job that never got a task is still "processing" here
    await cancel_job(job_id)
    logging.info("[Job %s] Cancellation requested but job is not running", job_id)
    return {
        "status": "cancelled",
        "message": "Job cancellation requested (job may have already completed or not exist)",
    }


async def _cleanup_loop():
    """Periodically clean up old finished jobs to prevent memory leaks."""
    while True:
        try:
            await asyncio.sleep(3600)
            logging.debug("Running periodic job cleanup...")
            await cleanup_finished_jobs(ttl_minutes=60)
        except asyncio.CancelledError:
            logging.info("Cleanup task cancelled")
            break
        except Exception as e:
            logging.error("Error during job cleanup: %s", e, exc_info=True)


def start_background_tasks():
    global _cleanup_task
    if _cleanup_task is None or _cleanup_task.done():
        _cleanup_task = asyncio.create_task(_cleanup_loop())
        logging.info("Periodic cleanup task started")


async def stop_background_tasks():
    global _cleanup_task
    if _cleanup_task:
        _cleanup_task.cancel()
        try:
            await _cleanup_task
        except asyncio.CancelledError:
            pass
        _cleanup_task = None

    running = list(_running_jobs.values())
    for task in running:
        task.cancel()
    if running:
        await asyncio.gather(*running, return_exceptions=True)
