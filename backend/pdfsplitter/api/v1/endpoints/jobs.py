"""
Job Endpoints - manifest, per-file download and deletion of split jobs

Identifiers from the URL are checked against strict patterns before any
filesystem access:
    job_id:    [A-Za-z0-9-]+
    file_name: [A-Za-z0-9_-]+.pdf
"""

import os
import re
from pathlib import Path
from typing import AsyncIterator

import aiofiles
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from pdfsplitter.api.deps import get_registry
from pdfsplitter.core.exceptions import (
    ArtifactNotFoundError,
    InvalidIdentifierError,
    JobNotFoundError,
)
from pdfsplitter.core.logging_config import logger
from pdfsplitter.modules.storage.job_registry import JobRecord, JobRegistry
from pdfsplitter.schemas.split import DeleteJobResponse

router = APIRouter(prefix="/jobs", tags=["Jobs"])

JOB_ID_PATTERN = re.compile(r"[A-Za-z0-9-]+")
FILE_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+\.pdf")

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def check_job_id(job_id: str) -> str:
    if not JOB_ID_PATTERN.fullmatch(job_id):
        raise InvalidIdentifierError("job_id", job_id)
    return job_id


def check_file_name(file_name: str) -> str:
    if not FILE_NAME_PATTERN.fullmatch(file_name):
        raise InvalidIdentifierError("file_name", file_name)
    return file_name


async def get_job_or_404(registry: JobRegistry, job_id: str) -> JobRecord:
    record = await registry.lookup(check_job_id(job_id))
    if record is None:
        raise JobNotFoundError(job_id, retention_minutes=registry.retention_seconds // 60)
    return record


async def open_artifact(path: Path, job_id: str, file_name: str):
    """
    Open an artifact for reading.

    The handle stays readable if the job is deleted or swept while the
    download is in flight, removal after this point only unlinks the file.
    """
    try:
        return await aiofiles.open(path, "rb")
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        raise ArtifactNotFoundError(job_id, file_name)


async def iter_artifact(handle) -> AsyncIterator[bytes]:
    try:
        while True:
            chunk = await handle.read(DOWNLOAD_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        await handle.close()


# Declared before /{file_name} so it is not captured as a file download
@router.get("/{job_id}/manifest.json")
async def get_manifest(job_id: str, registry: JobRegistry = Depends(get_registry)):
    """Manifest of a registered job"""
    record = await get_job_or_404(registry, job_id)
    return record.manifest.to_wire()


@router.get("/{job_id}/{file_name}")
async def download_file(
    job_id: str,
    file_name: str,
    registry: JobRegistry = Depends(get_registry),
):
    """Download one split PDF of a registered job"""
    check_job_id(job_id)
    check_file_name(file_name)
    record = await get_job_or_404(registry, job_id)

    if file_name not in {entry.file_name for entry in record.manifest.results}:
        raise ArtifactNotFoundError(job_id, file_name)

    directory = record.directory.resolve()
    path = record.artifact_path(file_name).resolve()
    if path.parent != directory:
        raise ArtifactNotFoundError(job_id, file_name)

    handle = await open_artifact(path, job_id, file_name)
    size = os.fstat(handle.fileno()).st_size

    logger.debug(f"Serving {file_name} from job {job_id} ({size} bytes)")
    return StreamingResponse(
        iter_artifact(handle),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{file_name}"',
            "Content-Length": str(size),
        },
    )


@router.delete("/{job_id}", response_model=DeleteJobResponse)
async def delete_job(job_id: str, registry: JobRegistry = Depends(get_registry)):
    """Delete a job and its local files (remote copies are kept)"""
    check_job_id(job_id)
    if not await registry.delete(job_id):
        raise JobNotFoundError(job_id)
    return DeleteJobResponse(message=f"Job {job_id} deleted successfully")
