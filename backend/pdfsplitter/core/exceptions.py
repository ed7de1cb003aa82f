"""
Custom Exceptions for the PDF Splitter
======================================

Use these instead of generic Exception to:
1. Make errors more specific and debuggable
2. Enable proper error handling at API layer
3. Give callers enough context (identifier, value, limit) to fix a request

Usage:
    from pdfsplitter.core.exceptions import RangeError, JobNotFoundError

    if not record:
        raise JobNotFoundError(job_id)
"""

from typing import Optional, Any, Dict


class SplitterError(Exception):
    """Base exception for all PDF Splitter errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(SplitterError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidFileTypeError(ValidationError):
    """File type not allowed"""

    def __init__(self, file_type: str, allowed_types: list):
        super().__init__(
            f"File type '{file_type}' not allowed. Allowed: {', '.join(allowed_types)}",
            field="file"
        )
        self.code = "INVALID_FILE_TYPE"
        self.details = {"file_type": file_type, "allowed_types": allowed_types}


class FileTooLargeError(ValidationError):
    """Uploaded document exceeds the size limit"""

    status_code = 413

    def __init__(self, size: int, max_size: int):
        super().__init__(
            f"File too large: {size} bytes (maximum is {max_size // (1024 * 1024)}MB)",
            field="file"
        )
        self.code = "FILE_TOO_LARGE"
        self.details = {"size": size, "max_size": max_size}


class InvalidIdentifierError(ValidationError):
    """A job id or file name contains characters outside the safe set"""

    def __init__(self, kind: str, value: str):
        super().__init__(f"Invalid {kind} format", field=kind)
        self.code = "INVALID_IDENTIFIER"
        self.details = {"field": kind, "value": value}


class RangeError(ValidationError):
    """A page range breaks one of the range rules"""

    def __init__(
        self,
        message: str,
        rule: str,
        submission_id: Optional[str] = None,
        index: Optional[int] = None,
        value: Any = None,
        limit: Any = None,
    ):
        super().__init__(message, field="ranges")
        self.code = "INVALID_RANGE"
        self.details = {
            "rule": rule,
            "submission_id": submission_id,
            "index": index,
            "value": value,
            "limit": limit,
        }


class ParseError(ValidationError):
    """Uploaded bytes are not a readable PDF"""

    def __init__(self, reason: str):
        super().__init__(f"Failed to parse PDF: {reason}", field="file")
        self.code = "PDF_PARSE_ERROR"


# ============================================
# Processing Errors (500-type)
# ============================================

class ExtractionError(SplitterError):
    """Copying pages for a range failed after validation passed"""

    def __init__(self, submission_id: str, reason: str):
        super().__init__(
            f"Failed to extract pages for \"{submission_id}\": {reason}",
            code="EXTRACTION_FAILED",
            details={"submission_id": submission_id}
        )


class StorageError(SplitterError):
    """Storage operation failed"""

    def __init__(self, message: str):
        super().__init__(message, code="STORAGE_ERROR")


class PersistenceError(StorageError):
    """Writing an artifact to local storage failed"""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to write output PDF \"{path}\": {reason}")
        self.code = "PERSISTENCE_FAILED"
        self.details["path"] = path


class RemoteUploadError(StorageError):
    """Object store upload failed (advisory, never returned to callers)"""

    def __init__(self, key: str, message: str = "Upload failed"):
        super().__init__(f"Failed to upload to object storage: {message}")
        self.code = "REMOTE_UPLOAD_FAILED"
        self.details["key"] = key


# ============================================
# Resource Errors (404 / 409-type)
# ============================================

class ResourceNotFoundError(SplitterError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, message: str, code: str, details: Dict[str, Any]):
        super().__init__(message, code=code, details=details)


class JobNotFoundError(ResourceNotFoundError):
    """Job not registered (never existed, deleted, or expired)"""

    def __init__(self, job_id: str, retention_minutes: Optional[int] = None):
        message = f"Job {job_id} not found."
        if retention_minutes:
            message += f" It may have expired (jobs are kept for {retention_minutes} minutes)."
        super().__init__(message, code="JOB_NOT_FOUND", details={"job_id": job_id})


class ArtifactNotFoundError(ResourceNotFoundError):
    """File missing from a registered job"""

    def __init__(self, job_id: str, file_name: str):
        super().__init__(
            f"File {file_name} not found in job {job_id}",
            code="ARTIFACT_NOT_FOUND",
            details={"job_id": job_id, "file_name": file_name}
        )


class JobConflictError(SplitterError):
    """Job id already registered"""

    status_code = 409

    def __init__(self, job_id: str):
        super().__init__(
            f"Job {job_id} is already registered",
            code="JOB_CONFLICT",
            details={"job_id": job_id}
        )


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: SplitterError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
