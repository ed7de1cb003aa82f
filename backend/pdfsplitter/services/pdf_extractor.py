"""
PDF Extractor - page copying on top of pypdf

User ranges are 1-indexed and inclusive, pypdf pages are 0-indexed.
The sync functions do the CPU-bound work; the async variants hand it to
the default executor so the event loop keeps serving other requests.
"""

import asyncio
import io
from typing import List, Sequence

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from pdfsplitter.core.exceptions import ExtractionError, ParseError
from pdfsplitter.schemas.split import PageRange


def load(data: bytes) -> PdfReader:
    """
    Open a PDF from bytes.

    Raises:
        ParseError: not a PDF, damaged, or encrypted with a non-empty password
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted and not reader.decrypt(""):
            raise ParseError("document is encrypted")
        # Forces the page tree to be read so damage shows up here
        len(reader.pages)
    except ParseError:
        raise
    except (PyPdfError, ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
        raise ParseError(str(e) or type(e).__name__)
    return reader


def page_count(document: PdfReader) -> int:
    return len(document.pages)


def range_to_indices(page_range: PageRange) -> List[int]:
    """[start_page, end_page] (1-indexed) -> 0-indexed page numbers"""
    return list(range(page_range.start_page - 1, page_range.end_page))


def extract_pages(document: PdfReader, page_indices: Sequence[int]) -> bytes:
    """Copy the given pages, in order, into a new serialized PDF"""
    writer = PdfWriter()
    for index in page_indices:
        writer.add_page(document.pages[index])

    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def extract_range(document: PdfReader, page_range: PageRange) -> bytes:
    """
    Extract one validated range.

    Raises:
        ExtractionError: pypdf failed while copying or serializing
    """
    try:
        return extract_pages(document, range_to_indices(page_range))
    except Exception as e:
        raise ExtractionError(page_range.submission_id, str(e) or type(e).__name__) from e


async def load_async(data: bytes) -> PdfReader:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, load, data)


async def extract_range_async(document: PdfReader, page_range: PageRange) -> bytes:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, extract_range, document, page_range)
