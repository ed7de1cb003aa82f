"""
Job Registry - In-memory index of downloadable split jobs

Each registered job owns one directory under OUTPUT_ROOT:

    <OUTPUT_ROOT>/<job_id>/<submission_id>.pdf

LIFECYCLE:
    Split request → job directory written by the request
                  → register()   (registry now owns the directory)
                  → lookup()     (manifest / per-file downloads)
                  → delete() or sweep() after the retention window

The entry is always removed before its directory, so a lookup that
succeeds never points at files that are already gone. The lock covers
the mapping only; directory removal happens outside it.
"""

import asyncio
import re
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional, Any

from pdfsplitter.core.exceptions import JobConflictError
from pdfsplitter.core.logging_config import logger
from pdfsplitter.schemas.split import Manifest


Clock = Callable[[], float]

# Directory names produced for job ids: <epoch millis>-<8 hex chars>
JOB_DIRECTORY_PATTERN = re.compile(r"\d+-[0-9a-f]{8}")


@dataclass(frozen=True)
class JobRecord:
    """A registered job. Never mutated, only removed."""
    job_id: str
    directory: Path
    created_at: float  # epoch seconds
    manifest: Manifest
    remote_keys: FrozenSet[str] = field(default_factory=frozenset)

    def age(self, now: float) -> float:
        return now - self.created_at

    def artifact_path(self, file_name: str) -> Path:
        return self.directory / file_name


def remove_directory(directory: Path) -> None:
    """Delete a job directory, a missing directory is not an error"""
    shutil.rmtree(directory, ignore_errors=True)


async def remove_directory_async(directory: Path) -> None:
    """remove_directory in the default executor"""
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, remove_directory, directory)


def is_job_directory(path: Path) -> bool:
    return path.is_dir() and JOB_DIRECTORY_PATTERN.fullmatch(path.name) is not None


class JobRegistry:
    """
    Maps job ids to their records and enforces the retention window.

    Owned by the application instance (app.state.registry), never global.
    """

    def __init__(self, retention_seconds: int, clock: Optional[Clock] = None):
        """
        Args:
            retention_seconds: Age after which sweep() evicts a job
            clock: Returns the current epoch time in seconds (default: time.time)
        """
        self.retention_seconds = retention_seconds
        self.clock: Clock = clock or time.time
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._jobs)

    # ==================== REGISTRATION ====================

    async def register(self,
                       job_id: str,
                       directory: Path,
                       manifest: Manifest,
                       remote_keys: FrozenSet[str] = frozenset()) -> JobRecord:
        """
        Record a finished job so its artifacts become downloadable.

        Raises:
            JobConflictError: job_id is already registered
        """
        record = JobRecord(
            job_id=job_id,
            directory=Path(directory),
            created_at=self.clock(),
            manifest=manifest,
            remote_keys=frozenset(remote_keys),
        )

        async with self._lock:
            if job_id in self._jobs:
                raise JobConflictError(job_id)
            self._jobs[job_id] = record

        logger.log_job_event(
            job_id, "registered",
            artifacts=len(manifest.results),
            remote_copies=len(record.remote_keys),
        )
        return record

    async def lookup(self, job_id: str) -> Optional[JobRecord]:
        """Return the record of a registered job, or None"""
        async with self._lock:
            return self._jobs.get(job_id)

    # ==================== REMOVAL ====================

    async def delete(self, job_id: str) -> bool:
        """
        Remove a job and its local directory. Remote copies are kept.

        Returns:
            False if the job was not registered
        """
        async with self._lock:
            record = self._jobs.pop(job_id, None)

        if record is None:
            return False

        await self._remove_directories([record.directory])
        logger.log_job_event(job_id, "deleted")
        return True

    async def sweep(self,
                    now: Optional[float] = None,
                    retention_seconds: Optional[int] = None) -> List[str]:
        """
        Evict every job older than the retention window.

        Returns:
            Ids of the evicted jobs
        """
        now = self.clock() if now is None else now
        retention = self.retention_seconds if retention_seconds is None else retention_seconds

        async with self._lock:
            expired = [
                record for record in self._jobs.values()
                if record.age(now) > retention
            ]
            for record in expired:
                del self._jobs[record.job_id]

        if not expired:
            return []

        await self._remove_directories([record.directory for record in expired])
        for record in expired:
            logger.log_job_event(record.job_id, "expired", age_seconds=round(record.age(now)))

        logger.info(f"Swept {len(expired)} expired jobs")
        return [record.job_id for record in expired]

    async def purge(self) -> int:
        """Drop every job and its directory (used at shutdown)"""
        async with self._lock:
            records = list(self._jobs.values())
            self._jobs.clear()

        await self._remove_directories([record.directory for record in records])
        if records:
            logger.info(f"Purged {len(records)} jobs")
        return len(records)

    async def _remove_directories(self, directories: List[Path]) -> None:
        for directory in directories:
            await remove_directory_async(directory)

    # ==================== STATS ====================

    def stats(self) -> Dict[str, Any]:
        """Job count and retention, read without taking the lock"""
        return {
            "job_count": len(self._jobs),
            "retention_minutes": self.retention_seconds // 60,
        }
