# Pydantic schemas
from pdfsplitter.schemas.split import (
    DeliveryMode,
    PageRange,
    ManifestEntry,
    Manifest,
    SplitResponse,
    DeleteJobResponse,
)
