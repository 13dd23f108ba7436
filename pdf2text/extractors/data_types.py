import typing
from abc import abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Hashable, Optional, Protocol


@dataclass
class FileMetadataInterface:
    filename: str | None = None
    file_extension: str | None = None
    file_path: str | None = None
    folder_path: str | None = None

    def populate_from_path(self, path: str | Path | None) -> None:
        """Populate file metadata fields from a path."""
        if path is None:
            return
        p = Path(path)
        self.filename = p.name
        self.file_extension = p.suffix
        self.file_path = str(p.resolve()) if p.exists() else str(p)
        self.folder_path = (
            str(p.parent.resolve()) if p.parent.exists() else str(p.parent)
        )

    def to_dict(self) -> dict:
        return asdict(self)


class ExtractionInterface(Protocol):
    @abstractmethod
    def iterator(self) -> typing.Iterator[str]:
        """
        Returns an iterator over the extracted text, one item per extracted page.
        Pages that were not selected for extraction are not part of the iterator.
        """
        ...

    @abstractmethod
    def get_full_text(self) -> str:
        """Full text of the document as one single block of text"""
        ...

    @abstractmethod
    def get_metadata(self) -> FileMetadataInterface:
        """Returns the metadata of the extracted file"""
        ...


######
# PDF
######


@dataclass
class PdfTextPage:
    text: str = ""


@dataclass
class PdfTextMetadata(FileMetadataInterface):
    total_pages: int = 0
    extracted_pages: int = 0


@dataclass
class PdfTextContent(ExtractionInterface):
    # 1-based page number -> page text
    pages: Dict[int, PdfTextPage] = field(default_factory=dict)
    metadata: PdfTextMetadata = field(default_factory=PdfTextMetadata)

    def iterator(self) -> typing.Iterator[str]:
        for page_num in sorted(self.pages.keys()):
            yield self.pages[page_num].text

    def get_full_text(self) -> str:
        return "\n".join(self.iterator())

    def get_metadata(self) -> PdfTextMetadata:
        return self.metadata


#########
# Fonts
#########

# (object number, generation) for indirect fonts, ("direct", id(dict)) otherwise
FontKey = Hashable


@dataclass(frozen=True)
class GlyfOutline:
    """An embedded TrueType font program with ``glyf`` outlines."""

    # glyph index -> post table name, None when the font carries no names
    glyph_names: Optional[tuple[str, ...]]
    code_to_gid: Dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class OtherOutline:
    """An embedded font program in a format without usable glyph names (CFF, Type 1)."""

    font_format: str = ""


FontOutline = GlyfOutline | OtherOutline


@dataclass
class PageFont:
    """
    A font resource as seen by the content stream interpreter.

    ``char_widths`` maps decoded characters to glyph widths in text space
    units (1/1000 of the glyph space widths found in the font dictionary).
    It is None for fonts that have no usable width table, e.g. Type 3 fonts
    whose widths live in their own glyph space.
    ``outline`` is None when no font program is embedded.
    """

    key: FontKey
    name: str = ""
    subtype: str = ""
    bytes_per_code: int = 1
    code_to_text: Dict[int, str] = field(default_factory=dict)
    code_widths: Dict[int, float] = field(default_factory=dict)
    default_width: float = 0.0
    char_widths: Optional[Dict[str, float]] = None
    outline: Optional[FontOutline] = None

    def codes(self, data: bytes) -> typing.Iterator[int]:
        """Split a shown string into character codes."""
        step = self.bytes_per_code
        for pos in range(0, len(data) - step + 1, step):
            yield int.from_bytes(data[pos : pos + step], "big")

    def text(self, code: int) -> str:
        return self.code_to_text.get(code, "")

    def width(self, code: int) -> float:
        return self.code_widths.get(code, self.default_width)
