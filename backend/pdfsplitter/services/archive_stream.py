"""
Archive Stream - ZIP responses assembled while they are sent

Entries are compressed chunk by chunk into a small in-memory sink that
is drained after every write, so at most one chunk (plus zlib's window)
is held in memory regardless of archive size. The sink has no tell() or
seek(), which makes zipfile emit data descriptors instead of seeking
back to patch local headers.
"""

import zipfile
from typing import Callable, Iterator, List, Sequence

from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from pdfsplitter.core.logging_config import logger
from pdfsplitter.schemas.split import Manifest
from pdfsplitter.services.artifact_writer import SplitArtifact


MANIFEST_NAME = "manifest.json"


class _ChunkSink:
    """Write-only file object collecting compressed bytes until drained"""

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def iter_archive(
    artifacts: Sequence[SplitArtifact],
    manifest: Manifest,
    chunk_size: int = 65536,
    compression_level: int = 9,
) -> Iterator[bytes]:
    """Yield a ZIP holding every artifact followed by manifest.json"""
    sink = _ChunkSink()

    with zipfile.ZipFile(
        sink, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level
    ) as zf:
        for artifact in artifacts:
            with open(artifact.local_path, "rb") as source, zf.open(artifact.file_name, "w") as entry:
                while True:
                    chunk = source.read(chunk_size)
                    if not chunk:
                        break
                    entry.write(chunk)
                    data = sink.drain()
                    if data:
                        yield data

            data = sink.drain()
            if data:
                yield data

        zf.writestr(MANIFEST_NAME, manifest.to_archive_json())
        data = sink.drain()
        if data:
            yield data

    # Central directory, written by ZipFile.close()
    data = sink.drain()
    if data:
        yield data


class ArchiveStream:
    """Closable iterator over the bytes of one archive"""

    def __init__(
        self,
        artifacts: Sequence[SplitArtifact],
        manifest: Manifest,
        chunk_size: int = 65536,
        compression_level: int = 9,
    ):
        self._generator = iter_archive(artifacts, manifest, chunk_size, compression_level)
        self.closed = False

    def __iter__(self) -> "ArchiveStream":
        return self

    def __next__(self) -> bytes:
        return next(self._generator)

    def close(self):
        """Stop the generator, closing any source file it holds open"""
        if self.closed:
            return
        self.closed = True
        try:
            self._generator.close()
        except ValueError:
            # Generator is mid-step in a worker thread. Its open source file is
            # only released when the abandoned generator is garbage-collected.
            logger.warning("Archive generator was still executing when closed")


class ArchiveResponse(StreamingResponse):
    """
    StreamingResponse that always closes its archive and runs on_close,
    whether the body completed, failed, or the client went away.
    """

    def __init__(
        self,
        archive: ArchiveStream,
        filename: str,
        on_close: Callable[[], None],
    ):
        super().__init__(
            archive,
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
        self.archive = archive
        self.on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            # No awaits here: cleanup must also complete when the task is cancelled
            self.archive.close()
            self.on_close()
