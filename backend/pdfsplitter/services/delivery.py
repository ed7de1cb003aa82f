"""
Delivery strategies - how a persisted split reaches the caller

PerFileDelivery: upload copies (best-effort), register the job, answer
                 with one download URL per artifact.
ArchiveDelivery: stream a ZIP of the artifacts, then delete the job
                 directory. Never touches the registry.
"""

from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import List

from fastapi.responses import JSONResponse
from starlette.responses import Response

from pdfsplitter.core.config import Settings
from pdfsplitter.core.logging_config import logger
from pdfsplitter.modules.storage.job_registry import JobRegistry, remove_directory
from pdfsplitter.schemas.split import DeliveryMode, Manifest, ManifestEntry, SplitResponse
from pdfsplitter.services.archive_stream import ArchiveResponse, ArchiveStream
from pdfsplitter.services.artifact_writer import ArtifactWriter, SplitArtifact


@dataclass(frozen=True)
class PreparedJob:
    """A split whose artifacts are all on local disk"""
    job_id: str
    directory: Path
    total_pages: int
    artifacts: List[SplitArtifact]


def local_download_url(base_url: str, job_id: str, file_name: str) -> str:
    return f"{base_url}/jobs/{job_id}/{file_name}"


class PerFileDelivery:
    mode = DeliveryMode.JSON

    def __init__(self, registry: JobRegistry, writer: ArtifactWriter):
        self.registry = registry
        self.writer = writer

    async def deliver(self, job: PreparedJob, base_url: str) -> Response:
        artifacts = await self.writer.upload_all(job.job_id, job.artifacts)

        manifest = Manifest(
            total_pages=job.total_pages,
            submission_count=len(artifacts),
            results=[
                ManifestEntry(
                    submission_id=artifact.submission_id,
                    file_name=artifact.file_name,
                    page_count=artifact.page_count,
                    download_url=artifact.remote_url
                    or local_download_url(base_url, job.job_id, artifact.file_name),
                )
                for artifact in artifacts
            ],
        )

        body = SplitResponse(job_id=job.job_id, **manifest.model_dump()).model_dump(by_alias=True)

        # Registration is the last step that can fail
        await self.registry.register(
            job.job_id,
            job.directory,
            manifest,
            frozenset(a.remote_key for a in artifacts if a.remote_key),
        )
        return JSONResponse(content=body)


class ArchiveDelivery:
    mode = DeliveryMode.ZIP

    def __init__(self, settings: Settings):
        self.settings = settings

    async def deliver(self, job: PreparedJob, base_url: str) -> Response:
        manifest = Manifest(
            total_pages=job.total_pages,
            submission_count=len(job.artifacts),
            results=[
                ManifestEntry(
                    submission_id=artifact.submission_id,
                    file_name=artifact.file_name,
                    page_count=artifact.page_count,
                )
                for artifact in job.artifacts
            ],
        )

        archive = ArchiveStream(
            job.artifacts,
            manifest,
            chunk_size=self.settings.ARCHIVE_CHUNK_SIZE,
            compression_level=self.settings.ARCHIVE_COMPRESSION_LEVEL,
        )
        return ArchiveResponse(
            archive,
            filename=self.settings.ARCHIVE_FILENAME,
            on_close=partial(_finish_archive, job.job_id, job.directory),
        )


def _finish_archive(job_id: str, directory: Path) -> None:
    # Runs inside ArchiveResponse cleanup, which must not await
    remove_directory(directory)
    logger.log_job_event(job_id, "archive_closed")
