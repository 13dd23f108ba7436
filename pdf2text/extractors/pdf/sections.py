"""
PDF Outline Sections
====================

Page selection by document outline (bookmarks). A section starts at the
page its outline entry points to and runs up to and including the page of
the next entry on the same or a higher outline level; the last section of
the document runs to the last page.

Usage
-----
    >>> from pypdf import PdfReader
    >>> from pdf2text.extractors.pdf.sections import find_section, list_sections
    >>>
    >>> reader = PdfReader("document.pdf")
    >>> print("\\n".join(list_sections(reader)))
    >>> section = find_section(reader, r"^2 ")
    >>> print(section.first_page, section.last_page, section.next_title)
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from pypdf import PdfReader

from pdf2text.exceptions import ExtractionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutlineEntry:
    title: str
    # 0 for top level entries
    level: int
    # 0-based, None when the destination is not a page of the document
    page_index: Optional[int]


@dataclass(frozen=True)
class Section:
    """Pages of the outline section selected by a title pattern, 0-based."""

    title: str
    first_page: int
    last_page: int
    # title of the following section on the same or a higher level
    next_title: Optional[str] = None

    def matches(self, index: int) -> bool:
        return self.first_page <= index <= self.last_page


def read_outline(reader: PdfReader) -> list[OutlineEntry]:
    """Flatten the document outline in reading order."""
    entries: list[OutlineEntry] = []
    _collect(reader, reader.outline, 0, entries)
    return entries


def _collect(
    reader: PdfReader, items: list[Any], level: int, entries: list[OutlineEntry]
) -> None:
    for item in items:
        # pypdf nests the children of an entry as a list right after it
        if isinstance(item, list):
            _collect(reader, item, level + 1, entries)
            continue
        title = item.title
        entries.append(
            OutlineEntry(
                title="" if title is None else str(title),
                level=level,
                page_index=reader.get_destination_page_number(item),
            )
        )


def list_sections(reader: PdfReader) -> list[str]:
    """Outline titles, indented by two spaces per level."""
    return [
        "  " * entry.level + entry.title
        for entry in read_outline(reader)
        if entry.title
    ]


def find_section(reader: PdfReader, pattern: str) -> Section:
    """
    Find the one outline entry whose title matches ``pattern``.

    The pattern is a regular expression searched anywhere in the title.

    Raises:
        ExtractionError: the pattern is invalid, the document has no
            outline, the pattern does not match exactly one entry, or an
            entry needed to bound the section has no page destination.
    """
    try:
        regex = re.compile(pattern)
    except re.error as e:
        raise ExtractionError(f"invalid section pattern {pattern!r}: {e}", cause=e) from e

    entries = read_outline(reader)
    if not entries:
        raise ExtractionError("document has no outline")

    matches = [index for index, entry in enumerate(entries) if regex.search(entry.title)]
    if not matches:
        raise ExtractionError(f"no outline entries match pattern {pattern!r}")
    if len(matches) > 1:
        raise ExtractionError(
            f"pattern {pattern!r} matches {len(matches)} outline entries, expected exactly 1"
        )

    index = matches[0]
    entry = entries[index]
    if entry.page_index is None:
        raise ExtractionError(f"outline entry {entry.title!r} has no page destination")

    following = next(
        (other for other in entries[index + 1 :] if other.level <= entry.level),
        None,
    )
    if following is None:
        last_page = len(reader.pages) - 1
    elif following.page_index is None:
        raise ExtractionError(f"outline entry {following.title!r} has no page destination")
    else:
        # the next section may start part way down its first page
        last_page = max(entry.page_index, following.page_index)

    section = Section(
        title=entry.title,
        first_page=entry.page_index,
        last_page=last_page,
        next_title=following.title if following is not None else None,
    )
    logger.debug(
        "Section %r spans pages %d-%d",
        section.title,
        section.first_page + 1,
        section.last_page + 1,
    )
    return section
