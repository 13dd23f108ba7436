"""
PDF Text Extractor
==================

Writes the text of PDF pages to a text stream, approximating what a reader
would see and select in a viewer.

The extractor consumes the events of ``ContentStreamReader`` and decides,
glyph by glyph, what ends up in the output:

    1. Glyphs inside a marked-content sequence with ``/ActualText`` are
       replaced by that text (only when ``use_actual_text`` is enabled).
       The replacement is written where the sequence starts; nested
       sequences with their own ActualText are ignored.
    2. Glyphs without a Unicode mapping fall back to the glyph names of
       the embedded TrueType font program, when there is one.
    3. Glyphs whose origin lies outside ``[x_range_min, x_range_max)`` in
       device space are dropped.

Word breaks are inferred from ``TJ`` adjustments: a gap wider than 30% of
the font's estimated space width becomes a single space. ``Td``, ``TD``,
``Tm``, ``T*``, ``'`` and ``"`` each write a newline.

Usage
-----
    >>> import io
    >>> from pypdf import PdfReader
    >>> from pdf2text.extractors.pdf.text_extractor import TextExtractor
    >>>
    >>> reader = PdfReader("document.pdf")
    >>> out = io.StringIO()
    >>> extractor = TextExtractor(reader, out)
    >>> extractor.use_actual_text = True
    >>> for page in reader.pages:
    ...     extractor.extract_page(page)
    >>> print(out.getvalue())

Maintenance Notes
-----------------
- Font analysis results are cached per font object for the lifetime of the
  extractor, so a font used on many pages is only analyzed once
- Newlines are written even inside a suppressed ActualText region
"""

import logging
import math
from typing import Any, Optional, TextIO

from pdf2text.extractors.data_types import FontKey, PageFont
from pdf2text.extractors.pdf.actual_text import ActualTextTracker
from pdf2text.extractors.pdf.content_reader import ContentStreamReader, Glyph
from pdf2text.extractors.pdf.fallback_unicode import fallback_unicode_map
from pdf2text.extractors.pdf.fonts import FontLoader
from pdf2text.extractors.pdf.space_width import estimate_space_width

logger = logging.getLogger(__name__)

# Fraction of the estimated space width above which a TJ gap is a word break.
SPACE_THRESHOLD = 0.3


class TextExtractor:
    """
    Extracts text from the pages of one document into one output stream.

    Attributes:
        reader: The pypdf reader the pages belong to; page indices passed to
            ``extract_page`` are resolved through it.
        use_actual_text: Replace the content of marked-content sequences by
            their ``/ActualText``. Disabled by default.
        x_range_min: Inclusive lower bound of the visible device X range.
        x_range_max: Exclusive upper bound of the visible device X range.
    """

    def __init__(self, reader: Any, output: TextIO):
        self.reader = reader
        self.output = output

        self.use_actual_text = False
        self.x_range_min = -math.inf
        self.x_range_max = math.inf

        self._space_widths: dict[FontKey, float] = {}
        self._fallback_maps: dict[FontKey, dict[int, str]] = {}
        self._actual_text = ActualTextTracker()
        self._content = ContentStreamReader(self, FontLoader())

    def extract_page(self, page: Any) -> None:
        """
        Write the text of ``page`` to the output stream.

        ``page`` is a pypdf page object or a 0-based index into the pages of
        ``reader``.

        Errors raised while reading the content stream propagate unchanged;
        text written before the error stays in the output.
        """
        if isinstance(page, int):
            page = self.reader.pages[page]
        self._actual_text = ActualTextTracker()
        self._content.parse_page(page)

    # ContentHandler

    def begin_marked_content(self, tag: str, properties: Any) -> None:
        if not self.use_actual_text:
            return
        text = self._actual_text.begin_marked_content(
            self._content.marked_content_depth, properties
        )
        if text is not None:
            self.output.write(text)

    def end_marked_content(self, tag: str) -> None:
        self._actual_text.end_marked_content(self._content.marked_content_depth)

    def show_glyph(self, glyph: Glyph) -> None:
        if self._actual_text.is_suppressed(self._content.marked_content_depth):
            return

        text = glyph.text
        if not text:
            text = self._fallback_map(glyph.font).get(glyph.code, "")
            if not text:
                return

        x = glyph.device_x()
        if self.x_range_min <= x < self.x_range_max:
            self.output.write(text)

    def add_space(self, font: Optional[PageFont], amount: float) -> None:
        if amount > SPACE_THRESHOLD * self._space_width(font):
            self.output.write(" ")

    def new_line(self) -> None:
        self.output.write("\n")

    def move(self) -> None:
        self.output.write("\n")

    # per-font caches

    def _space_width(self, font: Optional[PageFont]) -> float:
        key = font.key if font is not None else None
        if key not in self._space_widths:
            width = estimate_space_width(font)
            logger.debug("Estimated space width %.1f for font %s", width, key)
            self._space_widths[key] = width
        return self._space_widths[key]

    def _fallback_map(self, font: Optional[PageFont]) -> dict[int, str]:
        key = font.key if font is not None else None
        if key not in self._fallback_maps:
            self._fallback_maps[key] = fallback_unicode_map(font)
        return self._fallback_maps[key]
