"""
Retention Sweeper - Background eviction of expired split jobs

Jobs are swept in two places:
- before every split request (opportunistic, see SplitService)
- periodically by this service while the app is running

Set JOB_SWEEP_INTERVAL_SECONDS=0 to rely on the per-request sweep only.
"""

import asyncio
from pathlib import Path
from typing import Optional, Dict, Any

from pdfsplitter.core.logging_config import logger
from pdfsplitter.modules.storage.job_registry import JobRegistry, is_job_directory, remove_directory


class RetentionSweeper:
    """Periodically calls JobRegistry.sweep()"""

    def __init__(self, registry: JobRegistry, interval_seconds: int = 300):
        self.registry = registry
        self.interval_seconds = interval_seconds

        self.running = False
        self._task: Optional[asyncio.Task] = None

        self.stats: Dict[str, Any] = {
            "total_swept": 0,
            "last_sweep": None,
        }

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    async def start(self):
        """Start the background sweep loop"""
        if not self.enabled:
            logger.info("[RetentionSweeper] Disabled (interval is 0), sweeping per request only")
            return

        if self.running:
            logger.warning("[RetentionSweeper] Already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(
            f"[RetentionSweeper] Started - Retention: {self.registry.retention_seconds}s, "
            f"Interval: {self.interval_seconds}s"
        )

    async def stop(self):
        """Stop the background sweep loop"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("[RetentionSweeper] Stopped")

    async def sweep_once(self) -> int:
        """Run a single sweep and update the stats"""
        removed = await self.registry.sweep()
        self.stats["total_swept"] += len(removed)
        self.stats["last_sweep"] = self.registry.clock()
        return len(removed)

    async def _sweep_loop(self):
        while self.running:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error(f"[RetentionSweeper] Error in sweep loop: {e}", exc_info=True)


def purge_output_root(output_dir: Path) -> int:
    """
    Remove job directories left behind by a previous process.

    Jobs are not persisted across restarts, so a job directory found here
    at startup is unreachable. Only directories named like job ids are
    removed, other files and directories in OUTPUT_ROOT are left alone.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    removed = 0
    for entry in output_dir.iterdir():
        if is_job_directory(entry):
            remove_directory(entry)
            removed += 1

    if removed:
        logger.info(f"Removed {removed} leftover job directories from {output_dir}")
    return removed
