"""
pdf2text: plain text extraction from PDF page content streams.

Honors ``/ActualText`` replacements on marked content, recovers text for
fonts without Unicode mappings from embedded TrueType glyph names, and
infers word breaks from per-font space width estimates.
"""

import io
from pathlib import Path
from typing import Any, Callable, Generator, Iterable, Optional

from pdf2text.exceptions import ExtractionFileFormatNotSupportedError
from pdf2text.extractors.data_types import (
    ExtractionInterface,
    PdfTextContent,
    PdfTextMetadata,
    PdfTextPage,
)
from pdf2text.extractors.pdf.text_extractor import TextExtractor

__version__ = "0.1.0"


def read_pdf(
    file_like: io.BytesIO,
    path: str | None = None,
    *,
    use_actual_text: bool = True,
    x_range: Optional[tuple[float, float]] = None,
    pages: Optional[Iterable[int] | Callable[[int], bool]] = None,
) -> Generator[PdfTextContent, Any, None]:
    """Extract the text of a PDF file."""
    from pdf2text.extractors.pdf_extractor import read_pdf as _read_pdf

    return _read_pdf(
        file_like, path, use_actual_text=use_actual_text, x_range=x_range, pages=pages
    )


def read_file(
    path: str | Path,
    **options: Any,
) -> Generator[ExtractionInterface, Any, None]:
    """
    Read and extract the text of a PDF file.

    Args:
        path: Path to the file to read.
        **options: Passed on to ``read_pdf`` (``use_actual_text``,
            ``x_range``, ``pages``).

    Yields:
        A PdfTextContent with the text of every extracted page.

    Raises:
        ExtractionFileFormatNotSupportedError: If the file is not a PDF.
        FileNotFoundError: If the file does not exist.

    Example:
        >>> import pdf2text
        >>> for result in pdf2text.read_file("document.pdf"):
        ...     print(result.get_full_text())
    """
    path = Path(path)
    if path.suffix.lower() != ".pdf":
        raise ExtractionFileFormatNotSupportedError(str(path))
    with open(path, "rb") as f:
        yield from read_pdf(io.BytesIO(f.read()), str(path), **options)


__all__ = [
    # Version
    "__version__",
    # Main functions
    "read_file",
    "read_pdf",
    # Page level extraction
    "TextExtractor",
    # Results
    "PdfTextContent",
    "PdfTextMetadata",
    "PdfTextPage",
]
