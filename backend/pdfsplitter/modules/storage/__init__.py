"""
Storage Module - Ephemeral Split Job Storage

- Artifacts live in <OUTPUT_ROOT>/<job_id>/ until the job is deleted or expires
- The registry is the only record of what is downloadable
- Nothing survives a restart
"""

from .job_registry import (
    JobRegistry,
    JobRecord,
    remove_directory,
    remove_directory_async,
    is_job_directory,
)
from .retention import (
    RetentionSweeper,
    purge_output_root,
)

__all__ = [
    "JobRegistry",
    "JobRecord",
    "remove_directory",
    "remove_directory_async",
    "is_job_directory",
    "RetentionSweeper",
    "purge_output_root",
]
