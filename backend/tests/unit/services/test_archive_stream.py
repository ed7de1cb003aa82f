"""
Unit Tests for the streamed ZIP archive
"""
import io
import json
import logging
import os
import zipfile
from unittest.mock import Mock

import pytest

from pdfsplitter.schemas.split import Manifest, ManifestEntry
from pdfsplitter.services.archive_stream import ArchiveStream, MANIFEST_NAME, iter_archive
from pdfsplitter.services.artifact_writer import SplitArtifact


@pytest.fixture
def artifacts(tmp_path):
    items = []
    for name, size in (("0356", 200_000), ("0357", 10)):
        path = tmp_path / f"{name}.pdf"
        path.write_bytes(os.urandom(size))
        items.append(SplitArtifact(submission_id=name, file_name=path.name, page_count=1, local_path=path))
    return items


@pytest.fixture
def manifest(artifacts):
    return Manifest(
        total_pages=6,
        submission_count=len(artifacts),
        results=[
            ManifestEntry(submission_id=a.submission_id, file_name=a.file_name, page_count=a.page_count)
            for a in artifacts
        ],
    )


class TestIterArchive:

    def test_archive_contents(self, artifacts, manifest):
        data = b"".join(iter_archive(artifacts, manifest, chunk_size=4096))

        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.testzip() is None
            assert zf.namelist() == ["0356.pdf", "0357.pdf", MANIFEST_NAME]
            for artifact in artifacts:
                assert zf.read(artifact.file_name) == artifact.local_path.read_bytes()
                assert zf.getinfo(artifact.file_name).compress_type == zipfile.ZIP_DEFLATED

            stored = json.loads(zf.read(MANIFEST_NAME))

        assert stored == {
            "totalPages": 6,
            "submissionCount": 2,
            "results": [
                {"submission_id": "0356", "fileName": "0356.pdf", "pageCount": 1},
                {"submission_id": "0357", "fileName": "0357.pdf", "pageCount": 1},
            ],
        }

    def test_manifest_is_pretty_printed(self, artifacts, manifest):
        data = b"".join(iter_archive(artifacts, manifest))
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert zf.read(MANIFEST_NAME).decode().startswith('{\n  "totalPages": 6')

    def test_output_is_incremental(self, artifacts, manifest):
        chunks = list(iter_archive(artifacts, manifest, chunk_size=4096))

        # 200KB of incompressible data in 4KB reads gives many small pieces
        assert len(chunks) > 10
        assert max(len(c) for c in chunks) < 200_000


class TestArchiveStream:

    def test_iterates_like_generator(self, artifacts, manifest):
        stream = ArchiveStream(artifacts, manifest, chunk_size=4096)
        data = b"".join(stream)

        assert zipfile.ZipFile(io.BytesIO(data)).namelist()[-1] == MANIFEST_NAME

    def test_close_mid_stream_stops_iteration(self, artifacts, manifest):
        stream = ArchiveStream(artifacts, manifest, chunk_size=4096)
        next(stream)

        stream.close()

        assert stream.closed is True
        with pytest.raises(StopIteration):
            next(stream)

    def test_close_is_idempotent(self, artifacts, manifest):
        stream = ArchiveStream(artifacts, manifest)
        stream.close()
        stream.close()
        assert stream.closed is True

    def test_close_releases_source_files(self, artifacts, manifest, tmp_path):
        stream = ArchiveStream(artifacts, manifest, chunk_size=1024)
        next(stream)
        stream.close()

        # Nothing keeps the first artifact open any more
        artifacts[0].local_path.unlink()
        assert not artifacts[0].local_path.exists()

    def test_close_while_generator_is_executing(self, artifacts, manifest, caplog):
        stream = ArchiveStream(artifacts, manifest)
        stream._generator = Mock(close=Mock(side_effect=ValueError("generator already executing")))

        with caplog.at_level(logging.WARNING, logger="pdfsplitter"):
            stream.close()

        assert stream.closed is True
        assert "still executing" in caplog.text
