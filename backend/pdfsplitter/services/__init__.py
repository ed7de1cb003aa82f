from pdfsplitter.services.object_store import S3ObjectStore
from pdfsplitter.services.artifact_writer import ArtifactWriter, SplitArtifact
from pdfsplitter.services.split_service import SplitService

__all__ = [
    "S3ObjectStore",
    "ArtifactWriter",
    "SplitArtifact",
    "SplitService",
]
