"""
Range Validator - checks requested page ranges before anything is written

parse_ranges() turns the raw `ranges` form field into PageRange objects
(shape errors), validate_ranges() checks them against the document
(rule errors). Both run before the job directory is created.
"""

import json
import re
from typing import Any, List, Sequence

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from pdfsplitter.core.exceptions import RangeError, ValidationError
from pdfsplitter.schemas.split import PageRange


SUBMISSION_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")

RANGES_HINT = "Expected JSON array of {submission_id, start_page, end_page} objects."

_page_ranges_adapter = TypeAdapter(List[PageRange])


def _describe_shape_error(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"item {location}: {first['msg']}"


def parse_ranges(raw: Any, max_ranges: int) -> List[PageRange]:
    """
    Decode the `ranges` field (JSON string or already decoded list).

    Raises:
        ValidationError: not JSON, not a non-empty array, too many items,
            or an item without the expected keys and integer pages
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise ValidationError(f"Invalid ranges format: ranges are required. {RANGES_HINT}", field="ranges")

    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid ranges format: {e.msg}. {RANGES_HINT}", field="ranges")
    else:
        data = raw

    if not isinstance(data, list) or len(data) == 0:
        raise ValidationError(
            f"Invalid ranges format: Ranges must be a non-empty array. {RANGES_HINT}", field="ranges"
        )

    if len(data) > max_ranges:
        raise ValidationError(
            f"Too many ranges: {len(data)} (maximum is {max_ranges})", field="ranges"
        )

    try:
        return _page_ranges_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid ranges format: {_describe_shape_error(e)}. {RANGES_HINT}", field="ranges"
        )


def validate_ranges(ranges: Sequence[PageRange], total_pages: int) -> None:
    """
    Accept every range or raise RangeError for the first violation.

    Rules per range, in list order:
        1. submission_id is not blank (reported by index)
        2. start_page >= 1
        3. end_page >= start_page
        4. start_page <= total_pages
        5. end_page <= total_pages
        6. submission_id only uses letters, digits, '_' and '-'
        7. submission_id is not repeated

    Overlapping ranges and uncovered pages are allowed.
    """
    seen = set()

    for index, page_range in enumerate(ranges):
        submission_id = page_range.submission_id
        start, end = page_range.start_page, page_range.end_page

        if not submission_id.strip():
            raise RangeError(
                f"Range at index {index}: submission_id cannot be empty",
                rule="empty_submission_id", index=index, value=submission_id,
            )

        if start < 1:
            raise RangeError(
                f"Range \"{submission_id}\": start_page must be >= 1, got {start}",
                rule="start_below_one", submission_id=submission_id, index=index,
                value=start, limit=1,
            )

        if end < start:
            raise RangeError(
                f"Range \"{submission_id}\": end_page ({end}) must be >= start_page ({start})",
                rule="end_before_start", submission_id=submission_id, index=index,
                value=end, limit=start,
            )

        if start > total_pages:
            raise RangeError(
                f"Range \"{submission_id}\": start_page ({start}) exceeds total pages ({total_pages})",
                rule="start_beyond_document", submission_id=submission_id, index=index,
                value=start, limit=total_pages,
            )

        if end > total_pages:
            raise RangeError(
                f"Range \"{submission_id}\": end_page ({end}) exceeds total pages ({total_pages})",
                rule="end_beyond_document", submission_id=submission_id, index=index,
                value=end, limit=total_pages,
            )

        if not SUBMISSION_ID_PATTERN.fullmatch(submission_id):
            raise RangeError(
                f"Range at index {index}: submission_id \"{submission_id}\" may only contain "
                "letters, digits, '_' and '-'",
                rule="unsafe_submission_id", submission_id=submission_id, index=index,
                value=submission_id,
            )

        if submission_id in seen:
            raise RangeError(
                f"Range at index {index}: duplicate submission_id \"{submission_id}\"",
                rule="duplicate_submission_id", submission_id=submission_id, index=index,
                value=submission_id,
            )
        seen.add(submission_id)
