"""
Split Endpoint - POST /split

Accepts:
- file: PDF file (multipart/form-data)
- ranges: JSON array of {submission_id, start_page, end_page}
- format: optional query parameter, "json" (default) or "zip"

Example (JSON mode):
    curl -X POST http://localhost:3000/split \\
      -F "file=@./input/class_merged.pdf" \\
      -F 'ranges=[{"submission_id":"0356","start_page":1,"end_page":2}]'

Example (ZIP mode):
    curl -X POST "http://localhost:3000/split?format=zip" \\
      -F "file=@./input/class_merged.pdf" \\
      -F 'ranges=[{"submission_id":"0356","start_page":1,"end_page":2}]' \\
      -o output.zip
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from pdfsplitter.api.deps import get_app_settings, get_base_url, get_split_service
from pdfsplitter.core.config import Settings
from pdfsplitter.core.exceptions import FileTooLargeError, InvalidFileTypeError, ValidationError
from pdfsplitter.schemas.split import DeliveryMode
from pdfsplitter.services.split_service import SplitService

router = APIRouter(tags=["Split"])

ALLOWED_CONTENT_TYPES = ["application/pdf"]


def parse_delivery_mode(value: Optional[str]) -> DeliveryMode:
    if not value:
        return DeliveryMode.JSON
    try:
        return DeliveryMode(value.lower())
    except ValueError:
        raise ValidationError(
            f"Invalid format '{value}'. Allowed: {', '.join(m.value for m in DeliveryMode)}",
            field="format",
        )


def check_pdf_upload(file: Optional[UploadFile]) -> UploadFile:
    if file is None or not file.filename:
        raise ValidationError('No PDF file uploaded. Please include a file in the "file" field.', field="file")

    is_pdf_type = (file.content_type or "").lower() in ALLOWED_CONTENT_TYPES
    is_pdf_name = file.filename.lower().endswith(".pdf")
    if not (is_pdf_type or is_pdf_name):
        raise InvalidFileTypeError(file.content_type or "unknown", ALLOWED_CONTENT_TYPES)
    return file


@router.post("/split")
async def split_pdf(
    file: Optional[UploadFile] = File(None, description="Multi-page PDF to split"),
    ranges: Optional[str] = Form(None, description="JSON array of page ranges"),
    response_format: Optional[str] = Query(None, alias="format", description="json (default) or zip"),
    service: SplitService = Depends(get_split_service),
    settings: Settings = Depends(get_app_settings),
    base_url: str = Depends(get_base_url),
):
    """
    Split a PDF into one file per page range.

    - json: returns a job id and one download URL per submission
    - zip:  streams a ZIP of every submission plus manifest.json
    """
    mode = parse_delivery_mode(response_format)
    upload = check_pdf_upload(file)

    # Read one byte past the limit to detect oversized uploads without reading them whole
    content = await upload.read(settings.MAX_UPLOAD_SIZE + 1)
    if not content:
        raise ValidationError("Uploaded file is empty", field="file")
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise FileTooLargeError(len(content), settings.MAX_UPLOAD_SIZE)

    return await service.split(content, ranges, mode=mode, base_url=base_url)
