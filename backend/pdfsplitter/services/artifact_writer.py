"""
Artifact Writer - persists split outputs

Two independent outcome channels per artifact:
- local:  <OUTPUT_ROOT>/<job_id>/<file_name>; a failure is fatal (PersistenceError)
- remote: jobs/<job_id>/<file_name> in the object store; a failure is
          logged and the artifact simply has no remote_url
"""

import asyncio
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from pdfsplitter.core.exceptions import PersistenceError, RemoteUploadError
from pdfsplitter.core.logging_config import logger
from pdfsplitter.schemas.split import PageRange
from pdfsplitter.services.object_store import S3ObjectStore, remote_key


@dataclass(frozen=True)
class SplitArtifact:
    """One output PDF of a split job"""
    submission_id: str
    file_name: str
    page_count: int
    local_path: Path
    remote_url: Optional[str] = None
    remote_key: Optional[str] = None


class ArtifactWriter:
    """Writes artifacts under output_dir and optionally copies them off-box"""

    def __init__(self, output_dir: Path, object_store: Optional[S3ObjectStore] = None):
        self.output_dir = Path(output_dir)
        self.object_store = object_store

    @property
    def uploads_enabled(self) -> bool:
        return self.object_store is not None

    def job_directory(self, job_id: str) -> Path:
        return self.output_dir / job_id

    async def create_job_directory(self, job_id: str) -> Path:
        directory = self.job_directory(job_id)
        try:
            await aiofiles.os.makedirs(directory, exist_ok=False)
        except OSError as e:
            raise PersistenceError(str(directory), e.strerror or str(e))
        return directory

    async def write_local(self, directory: Path, page_range: PageRange, data: bytes) -> SplitArtifact:
        """
        Write one artifact into the job directory.

        Raises:
            PersistenceError: the file could not be written
        """
        path = directory / page_range.file_name
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise PersistenceError(str(path), e.strerror or str(e))

        logger.debug(f"Wrote {path.name} ({len(data)} bytes, {page_range.page_count} pages)")
        return SplitArtifact(
            submission_id=page_range.submission_id,
            file_name=page_range.file_name,
            page_count=page_range.page_count,
            local_path=path,
        )

    async def upload(self, job_id: str, artifact: SplitArtifact) -> SplitArtifact:
        """
        Copy an artifact to the object store.

        Never raises for upload failures: the artifact comes back
        unchanged (no remote_url) and the caller serves it locally.
        """
        if self.object_store is None:
            return artifact

        key = remote_key(job_id, artifact.file_name)
        try:
            async with aiofiles.open(artifact.local_path, "rb") as f:
                data = await f.read()
            url = await self.object_store.put(key, data, "application/pdf")
        except (RemoteUploadError, OSError) as e:
            logger.warning(
                f"Remote upload failed for {artifact.file_name}, serving locally: {e}",
                extra={"event_type": "remote_upload_failed", "remote_key": key},
            )
            return artifact

        return replace(artifact, remote_url=url, remote_key=key)

    async def upload_all(self, job_id: str, artifacts):
        """Upload every artifact concurrently, order preserved"""
        return list(await asyncio.gather(*(self.upload(job_id, a) for a in artifacts)))
