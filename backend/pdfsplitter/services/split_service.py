"""
Split Service - the validate → extract → persist pipeline shared by
both delivery modes

    sweep expired jobs
      → parse ranges → open PDF → validate every range
      → create job directory → extract + write one artifact per range
      → hand the job to the delivery strategy

Until the strategy has taken the job (registered it, or wrapped it in an
archive response) the job directory belongs to this request and is
removed on any failure.
"""

import time
import uuid
from typing import Any, Dict, Optional

from starlette.responses import Response

from pdfsplitter.core.config import Settings
from pdfsplitter.core.logging_config import logger, set_job_id
from pdfsplitter.modules.storage.job_registry import JobRegistry, remove_directory_async
from pdfsplitter.schemas.split import DeliveryMode
from pdfsplitter.services import pdf_extractor
from pdfsplitter.services.artifact_writer import ArtifactWriter
from pdfsplitter.services.delivery import ArchiveDelivery, PerFileDelivery, PreparedJob
from pdfsplitter.services.range_validator import parse_ranges, validate_ranges


def new_job_id() -> str:
    """<epoch millis>-<8 hex chars>"""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class SplitService:

    def __init__(self, registry: JobRegistry, writer: ArtifactWriter, settings: Settings):
        self.registry = registry
        self.writer = writer
        self.settings = settings
        self.strategies: Dict[DeliveryMode, Any] = {
            DeliveryMode.JSON: PerFileDelivery(registry, writer),
            DeliveryMode.ZIP: ArchiveDelivery(settings),
        }

    async def split(
        self,
        data: bytes,
        raw_ranges: Any,
        mode: DeliveryMode = DeliveryMode.JSON,
        base_url: str = "",
        job_id: Optional[str] = None,
    ) -> Response:
        """
        Split one uploaded PDF and deliver the artifacts.

        Raises:
            ValidationError / RangeError / ParseError: nothing was written
            ExtractionError / PersistenceError: the job directory was removed
        """
        await self.registry.sweep()

        ranges = parse_ranges(raw_ranges, self.settings.MAX_RANGES_PER_REQUEST)
        document = await pdf_extractor.load_async(data)
        total_pages = pdf_extractor.page_count(document)
        validate_ranges(ranges, total_pages)

        job_id = job_id or new_job_id()
        set_job_id(job_id)
        logger.log_job_event(
            job_id, "started",
            file_size=len(data), ranges=len(ranges), total_pages=total_pages, mode=mode.value,
        )

        started = time.perf_counter()
        directory = await self.writer.create_job_directory(job_id)
        handed_off = False
        try:
            artifacts = []
            for page_range in ranges:
                output = await pdf_extractor.extract_range_async(document, page_range)
                artifacts.append(await self.writer.write_local(directory, page_range, output))

            logger.log_performance(
                "split", (time.perf_counter() - started) * 1000, threshold_ms=5000,
                artifacts=len(artifacts),
            )

            job = PreparedJob(
                job_id=job_id,
                directory=directory,
                total_pages=total_pages,
                artifacts=artifacts,
            )
            response = await self.strategies[mode].deliver(job, base_url)
            handed_off = True
            return response
        finally:
            if not handed_off:
                await remove_directory_async(directory)
                logger.log_job_event(job_id, "failed")
