import asyncio
import logging
import os
import shutil
import uuid
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from decksync.alignment.dto import AlignmentOptions
from decksync.alignment.errors import InputMissingError
from decksync.alignment.job_runner import JobInputs, cancel_job_processing, start_job
from decksync.alignment.jobs import create_job, get_job_status
from decksync.common.config import Config

router = APIRouter()


def _store_upload(upload: UploadFile, uid: str, label: str) -> str:
    ext = os.path.splitext(upload.filename or "")[1]
    path = os.path.join(Config.UPLOAD_STORAGE_PATH, f"{uid}_{label}{ext}")
    try:
        with open(path, "wb") as out:
            shutil.copyfileobj(upload.file, out)
    except OSError:
        if os.path.exists(path):
            os.remove(path)
        raise
    return path


def _remove_files(paths) -> None:
    for path in paths:
        try:
            os.remove(path)
        except OSError as e:
            logging.warning("Could not remove upload %s: %s", path, e)


@router.post("/start", tags=["internal"])
async def start_alignment(
    video: Optional[UploadFile] = File(None),
    deck1: Optional[UploadFile] = File(None),
    deck2: Optional[UploadFile] = File(None),
    options: Optional[str] = Form(None),
):
    uploads = {"video": video, "deck1": deck1, "deck2": deck2}
    missing = [label for label, upload in uploads.items() if upload is None]
    if missing:
        raise HTTPException(status_code=400, detail=str(InputMissingError(missing)))

    try:
        alignment_options = (
            AlignmentOptions.model_validate_json(options)
            if options
            else AlignmentOptions()
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid options: {e}") from e

    Config.ensure_dirs()
    uid = str(uuid.uuid4())
    paths = {}
    try:
        for label, upload in uploads.items():
            paths[label] = await asyncio.to_thread(_store_upload, upload, uid, label)
    except OSError as e:
        logging.error("Storing uploads failed: %s", e)
        _remove_files(paths.values())
        raise HTTPException(
            status_code=500, detail="Failed to store uploaded files"
        ) from e

    job_id = await create_job()
    start_job(
        job_id,
        JobInputs(
            video_path=paths["video"],
            deck1_path=paths["deck1"],
            deck2_path=paths["deck2"],
        ),
        alignment_options,
    )
    logging.info("[Job %s] Accepted", job_id)
    return {"status": "processing", "jobId": job_id}


@router.get("/status/{job_id}", tags=["internal"])
async def get_alignment_status(job_id: str):
    return await get_job_status(job_id)


@router.post("/cancel/{job_id}", tags=["internal"])
async def cancel_alignment(job_id: str):
    """
    Cancel an alignment job by job_id.
    A running job is stopped at its current phase and its uploads are removed.
    """
    result = await cancel_job_processing(job_id)
    logging.info("[Job %s] Cancellation result: %s", job_id, result)
    return result
