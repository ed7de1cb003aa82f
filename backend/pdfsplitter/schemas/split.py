"""
Split schemas for page range requests, manifests and split responses
"""
from pydantic import BaseModel, Field, ConfigDict, StrictInt
from typing import Optional, List
from enum import Enum


class DeliveryMode(str, Enum):
    """How the artifacts of a split are handed back"""
    JSON = "json"
    ZIP = "zip"


# ==================== Request Schemas ====================

class PageRange(BaseModel):
    """One named, 1-indexed inclusive page range"""
    model_config = ConfigDict(frozen=True, extra="ignore")

    submission_id: str = Field(..., description="Identifier of the submission, also the output file name")
    start_page: StrictInt = Field(..., description="First page (1-indexed, inclusive)")
    end_page: StrictInt = Field(..., description="Last page (1-indexed, inclusive)")

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page + 1

    @property
    def file_name(self) -> str:
        return f"{self.submission_id}.pdf"


# ==================== Response Schemas ====================

class ManifestEntry(BaseModel):
    """A produced artifact as listed in a manifest"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    submission_id: str
    file_name: str = Field(..., alias="fileName")
    page_count: int = Field(..., alias="pageCount")
    download_url: Optional[str] = None


class Manifest(BaseModel):
    """Description of every artifact of one split"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_pages: int = Field(..., alias="totalPages")
    submission_count: int = Field(..., alias="submissionCount")
    results: List[ManifestEntry] = Field(default_factory=list)

    def to_wire(self) -> dict:
        """Serialize with the public (camelCase) keys"""
        return self.model_dump(by_alias=True)

    def to_archive_json(self) -> str:
        """manifest.json as stored inside a ZIP (no download URLs)"""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


class SplitResponse(Manifest):
    """Per-file mode response: the manifest plus the job it is registered under"""
    job_id: str


class DeleteJobResponse(BaseModel):
    """Response of a job deletion"""
    success: bool = True
    message: str
