import asyncio
import time
import uuid
from typing import Any, Dict, Optional

# Job state store
JOB_RESULTS: Dict[str, Dict[str, Any]] = {}
JOB_LOCK = asyncio.Lock()


async def create_job() -> str:
    """Create a new alignment job and return its ID."""
    job_id = str(uuid.uuid4())
    async with JOB_LOCK:
        JOB_RESULTS[job_id] = {
            "status": "processing",
            "state": "idle",
            "message": "Queued",
            "timestamp": time.time(),
        }
    return job_id


def update_job_progress(job_id: str, state: str, message: str) -> None:
    """
    Record the pipeline phase of a running job.

    Called synchronously from the pipeline's status callback on the event loop
    thread; finished or cancelled jobs are left untouched.
    """
    job = JOB_RESULTS.get(job_id)
    if job is None or job.get("status") != "processing":
        return
    job["state"] = state
    job["message"] = message


async def save_job_result(job_id: str, result: Dict[str, Any]):
    """Mark job as complete and save the alignment report."""
    async with JOB_LOCK:
        if JOB_RESULTS.get(job_id, {}).get("status") == "cancelled":
            return
        JOB_RESULTS[job_id] = {**result, "status": "done", "timestamp": time.time()}


async def fail_job(job_id: str, error: str, raw_response: Optional[str] = None):
    """Mark job as failed and store the error message."""
    async with JOB_LOCK:
        if JOB_RESULTS.get(job_id, {}).get("status") == "cancelled":
            return
        entry: Dict[str, Any] = {
            "status": "error",
            "error": error,
            "timestamp": time.time(),
        }
        if raw_response is not None:
            entry["rawResponse"] = raw_response
        JOB_RESULTS[job_id] = entry


async def cancel_job(job_id: str):
    """Mark a job as cancelled; finished jobs keep their outcome."""
    async with JOB_LOCK:
        if JOB_RESULTS.get(job_id, {}).get("status") == "processing":
            JOB_RESULTS[job_id] = {
                "status": "cancelled",
                "timestamp": time.time(),
            }


async def get_job_status(job_id: str) -> Dict[str, Any]:
    """Return the status/result of the job."""
    async with JOB_LOCK:
        return JOB_RESULTS.get(job_id, {"status": "not_found"})


async def cleanup_finished_jobs(ttl_minutes: int = 60):
    """Remove jobs older than `ttl_minutes` (default: 60 minutes)."""
    now = time.time()
    async with JOB_LOCK:
        expired = [
            job_id
            for job_id, data in JOB_RESULTS.items()
            if data.get("status") in {"done", "error", "cancelled"}
            and now - data.get("timestamp", now) > ttl_minutes * 60
        ]
        for job_id in expired:
            del JOB_RESULTS[job_id]
