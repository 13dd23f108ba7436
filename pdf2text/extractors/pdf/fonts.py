"""
PDF Font Loading
================

Turns font dictionaries from a page's resources into ``PageFont`` objects:
how shown strings split into character codes, which text each code stands
for, how wide each glyph is, and which kind of font program is embedded.

Text per code
-------------
    1. ``/ToUnicode`` CMap (``bfchar`` and ``bfrange`` sections)
    2. For simple fonts: ``/Encoding`` with ``/Differences`` glyph names
       translated through the Adobe Glyph List, on top of a base encoding
    3. Nothing; the code decodes to an empty string

Embedded font programs
----------------------
    - ``/FontFile2`` (TrueType) is parsed with fontTools into a
      ``GlyfOutline`` carrying the ``post`` glyph names and the
      code to glyph index table
    - ``/FontFile3`` with ``/Subtype /OpenType`` is inspected the same way
    - ``/FontFile`` (Type 1) and CFF based programs become ``OtherOutline``

Known Limitations
-----------------
- Composite fonts are assumed to use two-byte codes with CID == code
  (``Identity-H``/``Identity-V`` and most embedded CMaps in practice)
- Standard 14 fonts without ``/Widths`` get a flat default width
- Vertical writing metrics are ignored
"""

import io
import logging
import re
from typing import Any, Optional

from fontTools.agl import toUnicode
from fontTools.ttLib import TTFont
from pypdf.generic import IndirectObject

from pdf2text.extractors.data_types import (
    FontKey,
    FontOutline,
    GlyfOutline,
    OtherOutline,
    PageFont,
)

logger = logging.getLogger(__name__)

# Width used for simple fonts that carry neither /Widths nor /MissingWidth.
DEFAULT_GLYPH_WIDTH = 0.5

_MAX_BFRANGE_SIZE = 0x10000

# Font descriptor flag: the font uses a built-in, non-standard character set.
_FLAG_SYMBOLIC = 1 << 2

_BFCHAR_SECTION = re.compile(rb"beginbfchar(.*?)endbfchar", re.DOTALL)
_BFRANGE_SECTION = re.compile(rb"beginbfrange(.*?)endbfrange", re.DOTALL)
_BFCHAR_ENTRY = re.compile(rb"<([0-9A-Fa-f\s]*)>\s*<([0-9A-Fa-f\s]*)>")
_BFRANGE_ENTRY = re.compile(
    rb"<([0-9A-Fa-f\s]*)>\s*<([0-9A-Fa-f\s]*)>\s*(<[0-9A-Fa-f\s]*>|\[[^\]]*\])"
)
_HEX_STRING = re.compile(rb"<([0-9A-Fa-f\s]*)>")

# Codes of StandardEncoding that differ from ASCII in the printable range.
_STANDARD_ENCODING_OVERRIDES = {0x27: "’", 0x60: "‘"}

_BASE_ENCODING_CODECS = {
    "/WinAnsiEncoding": "cp1252",
    "/MacRomanEncoding": "mac_roman",
    "/PDFDocEncoding": "latin-1",
}


def font_key(font_ref: Any) -> FontKey:
    """Return a stable identity for a font resource entry."""
    if isinstance(font_ref, IndirectObject):
        return (font_ref.idnum, font_ref.generation)
    ref = getattr(font_ref, "indirect_reference", None)
    if ref is not None:
        return (ref.idnum, ref.generation)
    return ("direct", id(font_ref))


class FontLoader:
    """Loads and caches ``PageFont`` objects for the lifetime of one document."""

    def __init__(self) -> None:
        self._fonts: dict[FontKey, PageFont] = {}

    def load(self, font_ref: Any) -> Optional[PageFont]:
        """
        Load the font referenced from a ``/Font`` resource dictionary.

        Returns None if the reference does not resolve to a dictionary.
        """
        key = font_key(font_ref)
        if key in self._fonts:
            return self._fonts[key]

        font_dict = _resolve(font_ref)
        if not hasattr(font_dict, "get"):
            logger.debug("Font resource %s is not a dictionary", key)
            return None

        subtype = str(_resolve(font_dict.get("/Subtype")) or "")
        try:
            if subtype == "/Type0":
                font = _load_composite_font(key, font_dict)
            else:
                font = _load_simple_font(key, font_dict, subtype)
        except Exception as e:
            logger.warning("Failed to load font %s: %s", key, e)
            return None
        logger.debug(
            "Loaded font %s (%s, %d mapped codes)",
            font.name,
            font.subtype,
            len(font.code_to_text),
        )
        self._fonts[key] = font
        return font


def _resolve(obj: Any) -> Any:
    if obj is None:
        return None
    return obj.get_object() if hasattr(obj, "get_object") else obj


def _number(obj: Any, default: float = 0.0) -> float:
    try:
        return float(_resolve(obj))
    except (TypeError, ValueError):
        return default


###############
# Simple fonts
###############


def _load_simple_font(key: FontKey, font_dict: Any, subtype: str) -> PageFont:
    font = PageFont(
        key=key,
        name=str(_resolve(font_dict.get("/BaseFont")) or ""),
        subtype=subtype,
        bytes_per_code=1,
    )
    descriptor = _resolve(font_dict.get("/FontDescriptor"))

    scale = 0.001
    if subtype == "/Type3":
        matrix = _resolve(font_dict.get("/FontMatrix")) or [0.001]
        scale = _number(matrix[0], 0.001)

    try:
        font.code_to_text = _simple_encoding(font_dict, _is_symbolic(descriptor))
    except Exception as e:
        logger.debug("Failed to read encoding of font %s: %s", font.name, e)
    _apply_to_unicode(font, font_dict)

    try:
        first_char = int(_number(font_dict.get("/FirstChar"), 0))
        widths = _resolve(font_dict.get("/Widths"))
        if widths is not None:
            for offset, width in enumerate(widths):
                font.code_widths[first_char + offset] = _number(width) * scale
    except Exception as e:
        logger.debug("Failed to read widths of font %s: %s", font.name, e)

    if descriptor is not None and "/MissingWidth" in descriptor:
        font.default_width = _number(descriptor.get("/MissingWidth")) * scale
    elif not font.code_widths:
        font.default_width = DEFAULT_GLYPH_WIDTH

    if subtype != "/Type3":
        font.char_widths = _char_widths(font)
    font.outline = _load_outline(descriptor, font_dict, composite=False)
    return font


def _is_symbolic(descriptor: Any) -> bool:
    if descriptor is None or not hasattr(descriptor, "get"):
        return False
    return bool(int(_number(descriptor.get("/Flags"), 0)) & _FLAG_SYMBOLIC)


def _simple_encoding(font_dict: Any, symbolic: bool) -> dict[int, str]:
    encoding = _resolve(font_dict.get("/Encoding"))
    base_name = "/StandardEncoding"
    if encoding is None and symbolic:
        return {}
    differences = None
    if isinstance(encoding, str):
        base_name = str(encoding)
    elif encoding is not None and hasattr(encoding, "get"):
        base_name = str(_resolve(encoding.get("/BaseEncoding")) or base_name)
        differences = _resolve(encoding.get("/Differences"))

    mapping = _base_encoding(base_name)
    if differences is not None:
        code = 0
        for item in differences:
            item = _resolve(item)
            if isinstance(item, (int, float)) and not isinstance(item, bool):
                code = int(item)
                continue
            text = toUnicode(str(item).lstrip("/"))
            if text:
                mapping[code] = text
            else:
                mapping.pop(code, None)
            code += 1
    return mapping


def _base_encoding(name: str) -> dict[int, str]:
    codec = _BASE_ENCODING_CODECS.get(name)
    mapping: dict[int, str] = {}
    if codec is None:
        for code in range(0x20, 0x7F):
            mapping[code] = _STANDARD_ENCODING_OVERRIDES.get(code, chr(code))
        return mapping
    for code in range(0x20, 0x100):
        text = bytes([code]).decode(codec, errors="ignore")
        if text:
            mapping[code] = text
    return mapping


def _char_widths(font: PageFont) -> dict[str, float]:
    char_widths: dict[str, float] = {}
    for code, width in font.code_widths.items():
        text = font.text(code)
        if len(text) == 1 and width > 0:
            char_widths.setdefault(text, width)
    return char_widths


##################
# Composite fonts
##################


def _load_composite_font(key: FontKey, font_dict: Any) -> PageFont:
    font = PageFont(
        key=key,
        name=str(_resolve(font_dict.get("/BaseFont")) or ""),
        subtype="/Type0",
        bytes_per_code=2,
    )
    descendants = _resolve(font_dict.get("/DescendantFonts"))
    cid_font = _resolve(descendants[0]) if descendants else None

    _apply_to_unicode(font, font_dict)
    if cid_font is None:
        font.char_widths = {}
        return font

    font.default_width = _number(cid_font.get("/DW"), 1000) * 0.001
    try:
        font.code_widths = _cid_widths(_resolve(cid_font.get("/W")))
    except Exception as e:
        logger.debug("Failed to read widths of font %s: %s", font.name, e)
    font.char_widths = _char_widths(font)

    descriptor = _resolve(cid_font.get("/FontDescriptor"))
    font.outline = _load_outline(descriptor, cid_font, composite=True)
    return font


def _cid_widths(w_array: Any) -> dict[int, float]:
    widths: dict[int, float] = {}
    if w_array is None:
        return widths
    items = [_resolve(item) for item in w_array]
    pos = 0
    while pos + 1 < len(items):
        first = int(items[pos])
        nxt = items[pos + 1]
        if isinstance(nxt, list):
            for offset, width in enumerate(nxt):
                widths[first + offset] = _number(width) * 0.001
            pos += 2
            continue
        if pos + 2 >= len(items):
            break
        last = int(nxt)
        width = _number(items[pos + 2]) * 0.001
        for cid in range(first, min(last, first + _MAX_BFRANGE_SIZE) + 1):
            widths[cid] = width
        pos += 3
    return widths


############
# ToUnicode
############


def _apply_to_unicode(font: PageFont, font_dict: Any) -> None:
    stream = _resolve(font_dict.get("/ToUnicode"))
    if stream is None or not hasattr(stream, "get_data"):
        return
    try:
        font.code_to_text.update(parse_to_unicode(stream.get_data()))
    except Exception as e:
        logger.debug("Failed to parse ToUnicode CMap of font %s: %s", font.name, e)


def parse_to_unicode(data: bytes) -> dict[int, str]:
    """Parse the ``bfchar`` and ``bfrange`` sections of a ToUnicode CMap."""
    mapping: dict[int, str] = {}
    for section in _BFCHAR_SECTION.findall(data):
        for src, dst in _BFCHAR_ENTRY.findall(section):
            mapping[_hex_int(src)] = _utf16(_hex_bytes(dst))

    for section in _BFRANGE_SECTION.findall(data):
        for src_lo, src_hi, dst in _BFRANGE_ENTRY.findall(section):
            lo = _hex_int(src_lo)
            hi = min(_hex_int(src_hi), lo + _MAX_BFRANGE_SIZE - 1)
            if dst.startswith(b"["):
                for offset, item in enumerate(_HEX_STRING.findall(dst)):
                    if lo + offset > hi:
                        break
                    mapping[lo + offset] = _utf16(_hex_bytes(item))
                continue
            start = _hex_bytes(dst[1:-1])
            if not start:
                continue
            base = int.from_bytes(start, "big")
            for offset in range(hi - lo + 1):
                value = (base + offset).to_bytes(len(start), "big", signed=False)
                mapping[lo + offset] = _utf16(value)
    return mapping


def _hex_bytes(value: bytes) -> bytes:
    digits = re.sub(rb"\s", b"", value)
    if len(digits) % 2:
        digits += b"0"
    return bytes.fromhex(digits.decode("ascii"))


def _hex_int(value: bytes) -> int:
    return int.from_bytes(_hex_bytes(value), "big")


def _utf16(value: bytes) -> str:
    if len(value) % 2:
        value = b"\x00" + value
    return value.decode("utf-16-be", errors="ignore")


####################
# Embedded programs
####################


def _load_outline(
    descriptor: Any, font_dict: Any, composite: bool
) -> Optional[FontOutline]:
    if descriptor is None or not hasattr(descriptor, "get"):
        return None

    font_file2 = _resolve(descriptor.get("/FontFile2"))
    if font_file2 is not None:
        return _load_truetype(font_file2, font_dict, composite)

    font_file3 = _resolve(descriptor.get("/FontFile3"))
    if font_file3 is not None:
        file_subtype = str(_resolve(font_file3.get("/Subtype")) or "")
        if file_subtype == "/OpenType":
            return _load_truetype(font_file3, font_dict, composite)
        return OtherOutline(file_subtype.lstrip("/") or "CFF")

    if descriptor.get("/FontFile") is not None:
        return OtherOutline("Type1")
    return None


def _load_truetype(stream: Any, font_dict: Any, composite: bool) -> FontOutline:
    try:
        tt_font = TTFont(io.BytesIO(stream.get_data()))
    except Exception as e:
        logger.debug("Failed to parse embedded font program: %s", e)
        return GlyfOutline(glyph_names=None)

    if "glyf" not in tt_font:
        return OtherOutline("OpenType")

    try:
        glyph_names = _post_glyph_names(tt_font)
        if composite:
            code_to_gid = _cid_to_gid(_resolve(font_dict.get("/CIDToGIDMap")), tt_font)
        else:
            code_to_gid = _simple_code_to_gid(tt_font)
    except Exception as e:
        logger.debug("Failed to read glyph tables of embedded font: %s", e)
        return GlyfOutline(glyph_names=None)
    return GlyfOutline(glyph_names=glyph_names, code_to_gid=code_to_gid)


def _post_glyph_names(tt_font: TTFont) -> Optional[tuple[str, ...]]:
    if "post" not in tt_font:
        return None
    if tt_font["post"].formatType == 3.0:
        return None
    return tuple(tt_font.getGlyphOrder())


def _cid_to_gid(cid_to_gid_map: Any, tt_font: TTFont) -> dict[int, int]:
    if cid_to_gid_map is not None and hasattr(cid_to_gid_map, "get_data"):
        data = cid_to_gid_map.get_data()
        return {
            cid: int.from_bytes(data[2 * cid : 2 * cid + 2], "big")
            for cid in range(len(data) // 2)
        }
    num_glyphs = tt_font["maxp"].numGlyphs
    return {cid: cid for cid in range(num_glyphs)}


def _simple_code_to_gid(tt_font: TTFont) -> dict[int, int]:
    num_glyphs = tt_font["maxp"].numGlyphs
    cmap_table = tt_font["cmap"] if "cmap" in tt_font else None
    subtable = None
    if cmap_table is not None:
        subtable = (
            cmap_table.getcmap(3, 0)
            or cmap_table.getcmap(1, 0)
            or cmap_table.getcmap(3, 1)
        )

    code_to_gid: dict[int, int] = {}
    for code in range(256):
        if subtable is None:
            if code < num_glyphs:
                code_to_gid[code] = code
            continue
        name = subtable.cmap.get(0xF000 + code) or subtable.cmap.get(code)
        if name is not None:
            code_to_gid[code] = tt_font.getGlyphID(name)
    return code_to_gid
