"""
Fallback Unicode mapping from embedded TrueType glyph names.

Subsetted TrueType fonts are often embedded without a ``/ToUnicode`` CMap,
which leaves the extracted text empty. Many of these fonts still carry a
``post`` table naming every glyph, and those names usually follow the Adobe
Glyph List conventions (``A``, ``eacute``, ``uni20AC``, ``f_i``). This
module recovers text from the names.
"""

import logging
from typing import Optional

from fontTools.agl import toUnicode

from pdf2text.extractors.data_types import GlyfOutline, PageFont

logger = logging.getLogger(__name__)


def fallback_unicode_map(font: Optional[PageFont]) -> dict[int, str]:
    """
    Build a character code to text mapping from the font's glyph names.

    Only fonts with embedded ``glyf`` outlines and a name table are
    supported; every other font yields an empty mapping. Codes whose glyph
    index is out of range, whose glyph has no name, or whose name does not
    translate to Unicode are left out.
    """
    if font is None or not isinstance(font.outline, GlyfOutline):
        return {}
    return glyph_names_to_unicode(font.outline)


def glyph_names_to_unicode(outline: GlyfOutline) -> dict[int, str]:
    names = outline.glyph_names
    if not names:
        return {}

    mapping: dict[int, str] = {}
    for code, gid in outline.code_to_gid.items():
        if gid < 0 or gid >= len(names):
            continue
        name = names[gid]
        if not name or name == ".notdef":
            continue
        text = toUnicode(name)
        if text:
            mapping[code] = text

    logger.debug(
        "Recovered %d of %d codes from glyph names", len(mapping), len(outline.code_to_gid)
    )
    return mapping
