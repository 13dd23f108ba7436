"""
PDF Text Extraction
===================

Document-level entry point: opens a PDF with pypdf, runs one
``TextExtractor`` over the selected pages and returns the text per page.

Usage
-----
    >>> import io
    >>> from pdf2text.extractors.pdf_extractor import read_pdf
    >>>
    >>> with open("document.pdf", "rb") as f:
    ...     for doc in read_pdf(io.BytesIO(f.read()), path="document.pdf"):
    ...         print(f"Pages: {doc.metadata.total_pages}")
    ...         for page_num, text in doc.pages.items():
    ...             print(f"Page {page_num}: {len(text.text)} chars")
"""

import io
import logging
from typing import Any, Callable, Generator, Iterable, Optional

from pypdf import PdfReader

from pdf2text.exceptions import (
    ExtractionError,
    ExtractionFailedError,
    ExtractionFileEncryptedError,
)
from pdf2text.extractors.data_types import (
    PdfTextContent,
    PdfTextMetadata,
    PdfTextPage,
)
from pdf2text.extractors.pdf.text_extractor import TextExtractor

logger = logging.getLogger(__name__)


def open_pdf(file_like: io.BytesIO) -> PdfReader:
    """
    Open a PDF with pypdf, decrypting it with the empty password if needed.

    Raises:
        ExtractionFileEncryptedError: the file is encrypted and the empty
            password does not open it.
    """
    file_like.seek(0)
    reader = PdfReader(file_like)
    if reader.is_encrypted:
        try:
            decrypt_result = reader.decrypt("")
        except Exception:
            decrypt_result = 0
        if decrypt_result == 0:
            raise ExtractionFileEncryptedError("PDF is encrypted or password-protected")
    return reader


def read_pdf(
    file_like: io.BytesIO,
    path: Optional[str] = None,
    *,
    use_actual_text: bool = True,
    x_range: Optional[tuple[float, float]] = None,
    pages: Optional[Iterable[int] | Callable[[int], bool]] = None,
) -> Generator[PdfTextContent, Any, None]:
    """
    Extract the text of a PDF file page by page.

    Args:
        file_like: BytesIO object containing the complete PDF file data.
            The stream position is reset to the beginning before reading.
        path: Optional filesystem path to the source file, used to populate
            the file metadata.
        use_actual_text: Replace marked-content sequences by their
            ``/ActualText`` where present.
        x_range: Optional ``(min, max)`` window on the device X coordinate;
            glyphs outside ``[min, max)`` are dropped.
        pages: Optional 0-based page indices to extract, or a predicate on
            the 0-based page index. Default all pages.

    Yields:
        PdfTextContent: a single object with the text of every extracted
        page, keyed by 1-based page number.

    Raises:
        ExtractionFileEncryptedError: the file is encrypted and cannot be
            opened with the empty password.
        ExtractionFailedError: the file could not be parsed.
    """
    try:
        reader = open_pdf(file_like)

        total_pages = len(reader.pages)
        if pages is None:
            page_indices = list(range(total_pages))
        elif callable(pages):
            page_indices = [index for index in range(total_pages) if pages(index)]
        else:
            page_indices = sorted(set(pages))
        logger.debug("Parsing PDF with %d pages", total_pages)

        extractor = TextExtractor(reader, io.StringIO())
        extractor.use_actual_text = use_actual_text
        if x_range is not None:
            extractor.x_range_min, extractor.x_range_max = x_range

        result: dict[int, PdfTextPage] = {}
        for page_index in page_indices:
            if not 0 <= page_index < total_pages:
                logger.warning("Ignoring page index %d out of range", page_index)
                continue
            output = io.StringIO()
            extractor.output = output
            extractor.extract_page(page_index)
            result[page_index + 1] = PdfTextPage(text=output.getvalue())

        metadata = PdfTextMetadata(
            total_pages=total_pages, extracted_pages=len(result)
        )
        metadata.populate_from_path(path)

        logger.info("Extracted PDF text: %d of %d pages", len(result), total_pages)

        yield PdfTextContent(pages=result, metadata=metadata)
    except ExtractionError:
        raise
    except Exception as exc:
        raise ExtractionFailedError("Failed to extract PDF file", cause=exc) from exc
