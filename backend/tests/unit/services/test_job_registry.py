"""
Unit Tests for the Job Registry and Retention Sweeper
"""
import asyncio
import dataclasses
from pathlib import Path

import pytest

from conftest import FakeClock
from pdfsplitter.core.exceptions import JobConflictError
from pdfsplitter.modules.storage import JobRegistry, RetentionSweeper, purge_output_root
from pdfsplitter.schemas.split import Manifest, ManifestEntry

RETENTION = 60 * 60


def make_manifest(*names: str) -> Manifest:
    return Manifest(
        total_pages=6,
        submission_count=len(names),
        results=[
            ManifestEntry(submission_id=n, file_name=f"{n}.pdf", page_count=1, download_url=f"http://test/{n}.pdf")
            for n in names
        ],
    )


def make_job_dir(root: Path, job_id: str) -> Path:
    directory = root / job_id
    directory.mkdir(parents=True)
    (directory / "a.pdf").write_bytes(b"%PDF-1.4")
    return directory


class TestJobRegistry:

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def registry(self, clock):
        return JobRegistry(RETENTION, clock=clock)

    async def test_register_and_lookup(self, registry, tmp_path, clock):
        directory = make_job_dir(tmp_path, "job-1")
        record = await registry.register("job-1", directory, make_manifest("a"), frozenset({"jobs/job-1/a.pdf"}))

        assert record.created_at == clock.now
        assert record.remote_keys == frozenset({"jobs/job-1/a.pdf"})
        assert await registry.lookup("job-1") is record
        assert len(registry) == 1

    async def test_lookup_unknown(self, registry):
        assert await registry.lookup("missing") is None

    async def test_register_conflict(self, registry, tmp_path):
        directory = make_job_dir(tmp_path, "job-1")
        await registry.register("job-1", directory, make_manifest("a"))

        with pytest.raises(JobConflictError) as exc_info:
            await registry.register("job-1", directory, make_manifest("b"))

        assert exc_info.value.status_code == 409
        # Original record untouched
        record = await registry.lookup("job-1")
        assert record.manifest.results[0].submission_id == "a"

    async def test_records_are_immutable(self, registry, tmp_path):
        record = await registry.register("job-1", make_job_dir(tmp_path, "job-1"), make_manifest("a"))

        with pytest.raises(dataclasses.FrozenInstanceError):
            record.directory = tmp_path

    async def test_delete_removes_directory(self, registry, tmp_path):
        directory = make_job_dir(tmp_path, "job-1")
        await registry.register("job-1", directory, make_manifest("a"))

        assert await registry.delete("job-1") is True
        assert not directory.exists()
        assert await registry.lookup("job-1") is None

    async def test_delete_twice(self, registry, tmp_path):
        await registry.register("job-1", make_job_dir(tmp_path, "job-1"), make_manifest("a"))

        assert await registry.delete("job-1") is True
        assert await registry.delete("job-1") is False

    async def test_delete_with_missing_directory(self, registry, tmp_path):
        await registry.register("job-1", tmp_path / "never-created", make_manifest("a"))
        assert await registry.delete("job-1") is True

    async def test_visible_before_retention_gone_after_sweep(self, registry, tmp_path, clock):
        directory = make_job_dir(tmp_path, "job-1")
        await registry.register("job-1", directory, make_manifest("a"))

        clock.advance(59 * 60)
        assert await registry.sweep() == []
        assert await registry.lookup("job-1") is not None

        clock.advance(2 * 60)
        assert await registry.sweep() == ["job-1"]
        assert await registry.lookup("job-1") is None
        assert not directory.exists()

    async def test_sweep_with_explicit_now_and_retention(self, registry, tmp_path, clock):
        await registry.register("old", make_job_dir(tmp_path, "old"), make_manifest("a"))
        clock.advance(100)
        await registry.register("new", make_job_dir(tmp_path, "new"), make_manifest("a"))

        removed = await registry.sweep(now=clock.now + 50, retention_seconds=120)

        assert removed == ["old"]
        assert await registry.lookup("new") is not None

    async def test_purge(self, registry, tmp_path):
        dirs = [make_job_dir(tmp_path, job_id) for job_id in ("j1", "j2")]
        for directory in dirs:
            await registry.register(directory.name, directory, make_manifest("a"))

        assert await registry.purge() == 2
        assert len(registry) == 0
        assert not any(d.exists() for d in dirs)

    async def test_concurrent_registration(self, registry, tmp_path):
        ids = [f"job-{i}" for i in range(20)]
        await asyncio.gather(*(
            registry.register(job_id, make_job_dir(tmp_path, job_id), make_manifest("a"))
            for job_id in ids
        ))

        assert len(registry) == 20
        assert registry.stats() == {"job_count": 20, "retention_minutes": 60}


class TestRetentionSweeper:

    async def test_sweep_once_updates_stats(self, tmp_path):
        clock = FakeClock()
        registry = JobRegistry(RETENTION, clock=clock)
        await registry.register("job-1", make_job_dir(tmp_path, "job-1"), make_manifest("a"))
        sweeper = RetentionSweeper(registry, interval_seconds=300)

        clock.advance(RETENTION + 1)
        assert await sweeper.sweep_once() == 1
        assert sweeper.stats["total_swept"] == 1
        assert sweeper.stats["last_sweep"] == clock.now

    async def test_disabled_sweeper_does_not_start(self):
        sweeper = RetentionSweeper(JobRegistry(RETENTION), interval_seconds=0)
        await sweeper.start()

        assert sweeper.running is False
        await sweeper.stop()

    async def test_background_loop_evicts(self, tmp_path):
        clock = FakeClock()
        registry = JobRegistry(RETENTION, clock=clock)
        await registry.register("job-1", make_job_dir(tmp_path, "job-1"), make_manifest("a"))
        clock.advance(RETENTION + 1)

        sweeper = RetentionSweeper(registry, interval_seconds=300)
        sweeper.interval_seconds = 0.01
        await sweeper.start()
        try:
            for _ in range(100):
                if len(registry) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sweeper.stop()

        assert len(registry) == 0
        assert sweeper.running is False


def test_purge_output_root(tmp_path):
    root = tmp_path / "output"
    make_job_dir(root, "1700000000000-deadbeef")
    make_job_dir(root, "1700000000001-0badf00d")

    assert purge_output_root(root) == 2
    assert root.exists()
    assert list(root.iterdir()) == []


def test_purge_output_root_leaves_foreign_entries(tmp_path):
    root = tmp_path / "output"
    make_job_dir(root, "1700000000000-deadbeef")
    (root / "notes.txt").write_text("keep me")
    photos = root / "photos"
    photos.mkdir()
    (photos / "a.jpg").write_bytes(b"jpg")
    # Almost a job id: uppercase hex is never generated
    make_job_dir(root, "1700000000000-DEADBEEF")

    assert purge_output_root(root) == 1

    assert sorted(p.name for p in root.iterdir()) == ["1700000000000-DEADBEEF", "notes.txt", "photos"]
    assert (root / "notes.txt").read_text() == "keep me"
    assert (photos / "a.jpg").exists()


def test_purge_output_root_creates_missing(tmp_path):
    root = tmp_path / "does-not-exist"
    assert purge_output_root(root) == 0
    assert root.is_dir()
