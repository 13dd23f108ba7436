import io
import unittest

import pytest
from pypdf import PdfReader
from pypdf.errors import PdfStreamError

from pdf2text.extractors.data_types import GlyfOutline, OtherOutline, PageFont
from pdf2text.extractors.pdf.content_reader import Glyph
from pdf2text.extractors.pdf.text_extractor import SPACE_THRESHOLD, TextExtractor
from pdf_factory import HELVETICA, PdfFactory, single_page_pdf

tc = unittest.TestCase()
tc.maxDiff = None


def _extract(file_like, *, use_actual_text=False, x_range=None) -> str:
    reader = PdfReader(file_like)
    out = io.StringIO()
    extractor = TextExtractor(reader, out)
    extractor.use_actual_text = use_actual_text
    if x_range is not None:
        extractor.x_range_min, extractor.x_range_max = x_range
    for page in reader.pages:
        extractor.extract_page(page)
    return out.getvalue()


def _detached_extractor() -> tuple[TextExtractor, io.StringIO]:
    out = io.StringIO()
    return TextExtractor(None, out), out


ACTUAL_TEXT_PAGE = (
    b"BT /F1 12 Tf 72 700 Td (Before ) Tj "
    b"/Span << /ActualText (ffi) >> BDC (abc) Tj EMC "
    b"( after) Tj ET"
)


def test_hello_world() -> None:
    text = _extract(
        single_page_pdf(b"BT /F1 12 Tf 72 700 Td [(Hello) -250 (World)] TJ ET")
    )
    tc.assertIn("Hello World", text)


def test_literal_space_is_kept() -> None:
    text = _extract(single_page_pdf(b"BT /F1 12 Tf 72 700 Td (Hello World) Tj ET"))
    tc.assertEqual("\nHello World", text)


def test_small_kerning_is_not_a_space() -> None:
    text = _extract(single_page_pdf(b"BT /F1 12 Tf [(W) 80 (or) -20 (ld)] TJ ET"))
    tc.assertEqual("World", text)


def test_actual_text_flag_has_no_effect_without_marked_content() -> None:
    content = b"BT /F1 12 Tf 72 700 Td [(Hello) -250 (World)] TJ T* (again) Tj ET"
    tc.assertEqual(
        _extract(single_page_pdf(content), use_actual_text=False),
        _extract(single_page_pdf(content), use_actual_text=True),
    )


def test_actual_text_replaces_region() -> None:
    text = _extract(single_page_pdf(ACTUAL_TEXT_PAGE), use_actual_text=True)

    tc.assertEqual("\nBefore ffi after", text)
    tc.assertEqual(1, text.count("ffi"))
    tc.assertNotIn("abc", text)


def test_actual_text_disabled_keeps_glyph_text() -> None:
    text = _extract(single_page_pdf(ACTUAL_TEXT_PAGE), use_actual_text=False)
    tc.assertEqual("\nBefore abc after", text)


def test_nested_actual_text_keeps_outer_only() -> None:
    content = (
        b"BT /F1 12 Tf "
        b"/Span << /ActualText (X) >> BDC (outer) Tj "
        b"/Span << /ActualText (Y) >> BDC (inner) Tj EMC "
        b"(tail) Tj EMC "
        b"(after) Tj ET"
    )

    text = _extract(single_page_pdf(content), use_actual_text=True)

    tc.assertEqual("Xafter", text)
    tc.assertNotIn("Y", text)


def test_actual_text_from_named_property_list() -> None:
    resources = (
        f"<< /Font << /F1 {HELVETICA} >> "
        "/Properties << /P1 << /ActualText <FEFF00E9> >> >> >>"
    )
    content = b"BT /F1 12 Tf /Span /P1 BDC (e) Tj EMC ET"

    text = _extract(single_page_pdf(content, resources), use_actual_text=True)

    tc.assertEqual("é", text)


def test_marked_content_without_actual_text_is_transparent() -> None:
    content = b"BT /F1 12 Tf /P << /MCID 0 >> BDC (visible) Tj EMC ET"
    tc.assertEqual("visible", _extract(single_page_pdf(content), use_actual_text=True))


def test_newline_inside_actual_text_region_is_written() -> None:
    content = (
        b"BT /F1 12 Tf 14 TL "
        b"/Span << /ActualText (R) >> BDC (a) Tj T* (b) Tj EMC ET"
    )

    text = _extract(single_page_pdf(content), use_actual_text=True)

    tc.assertEqual("R\n", text)


def test_visibility_window() -> None:
    content = b"BT /F1 10 Tf 1 0 0 1 5 700 Tm (A) Tj ET"

    inside = _extract(single_page_pdf(content), x_range=(0, 10))
    outside = _extract(single_page_pdf(content), x_range=(10, 20))

    tc.assertIn("A", inside)
    tc.assertNotIn("A", outside)


def test_visibility_window_bounds() -> None:
    extractor, out = _detached_extractor()
    extractor.x_range_min, extractor.x_range_max = 0.0, 10.0
    font = PageFont(key="f1")

    for x, text in ((0.0, "a"), (9.99, "b"), (10.0, "c"), (-0.01, "d")):
        extractor.show_glyph(
            Glyph(font=font, code=0, text=text, rendering_matrix=(1, 0, 0, 1, x, 0))
        )

    tc.assertEqual("ab", out.getvalue())


def test_space_threshold_is_strict() -> None:
    font = PageFont(key="space-only", char_widths={" ": 1.0})
    threshold = SPACE_THRESHOLD * 735.209257

    extractor, out = _detached_extractor()
    extractor.add_space(font, threshold + 0.01)
    tc.assertEqual(" ", out.getvalue())

    extractor, out = _detached_extractor()
    extractor.add_space(font, threshold - 0.01)
    tc.assertEqual("", out.getvalue())


def test_space_at_exact_threshold_is_not_inserted() -> None:
    font = PageFont(key="f1", char_widths={})
    extractor, out = _detached_extractor()
    estimate = extractor._space_width(font)

    extractor.add_space(font, SPACE_THRESHOLD * estimate)
    tc.assertEqual("", out.getvalue())

    extractor.add_space(font, SPACE_THRESHOLD * estimate + 1e-6)
    tc.assertEqual(" ", out.getvalue())


def test_space_with_font_width_table_end_to_end() -> None:
    font = (
        "<< /Type /Font /Subtype /TrueType /BaseFont /SpaceOnly "
        "/FirstChar 32 /LastChar 32 /Widths [1000] /Encoding /WinAnsiEncoding >>"
    )
    resources = f"<< /Font << /F1 {font} >> >>"

    wide = _extract(single_page_pdf(b"BT /F1 1 Tf [(a) -221 (b)] TJ ET", resources))
    narrow = _extract(single_page_pdf(b"BT /F1 1 Tf [(a) -220 (b)] TJ ET", resources))

    tc.assertEqual("a b", wide)
    tc.assertEqual("ab", narrow)


def test_missing_font_makes_every_gap_a_space() -> None:
    extractor, out = _detached_extractor()
    extractor.add_space(None, 0.5)
    tc.assertEqual(" ", out.getvalue())


def test_fallback_mapping_for_unmapped_glyph() -> None:
    supported = PageFont(
        key="glyf",
        outline=GlyfOutline(("space", "A", "B"), {0: 0, 1: 1, 2: 2}),
    )
    unsupported = PageFont(key="cff", outline=OtherOutline("CFF"))

    extractor, out = _detached_extractor()
    extractor.show_glyph(Glyph(font=supported, code=1, text=""))
    extractor.show_glyph(Glyph(font=unsupported, code=1, text=""))

    tc.assertEqual("A", out.getvalue())


def test_decoded_text_wins_over_fallback() -> None:
    font = PageFont(key="glyf", outline=GlyfOutline(("space", "A"), {0: 0, 1: 1}))
    extractor, out = _detached_extractor()
    extractor.show_glyph(Glyph(font=font, code=1, text="Z"))
    tc.assertEqual("Z", out.getvalue())


def test_embedded_truetype_glyph_names_end_to_end() -> None:
    factory = PdfFactory()
    font_id = factory.add_truetype_type0_font(keep_glyph_names=True)
    factory.add_page(
        b"BT /F1 12 Tf 10 700 Td <00020003> Tj ET",
        f"<< /Font << /F1 {font_id} 0 R >> >>",
    )

    tc.assertEqual("\nAB", _extract(factory.build_io()))


def test_embedded_truetype_without_glyph_names() -> None:
    factory = PdfFactory()
    font_id = factory.add_truetype_type0_font(keep_glyph_names=False)
    factory.add_page(
        b"BT /F1 12 Tf 10 700 Td <00020003> Tj ET",
        f"<< /Font << /F1 {font_id} 0 R >> >>",
    )

    tc.assertEqual("\n", _extract(factory.build_io()))


def test_font_caches_persist_across_pages() -> None:
    factory = PdfFactory()
    font_id = factory.add(HELVETICA)
    resources = f"<< /Font << /F1 {font_id} 0 R >> >>"
    factory.add_page(b"BT /F1 12 Tf [(one) -300 (two)] TJ ET", resources)
    factory.add_page(b"BT /F1 12 Tf [(three) -300 (four)] TJ ET", resources)
    reader = PdfReader(factory.build_io())
    out = io.StringIO()
    extractor = TextExtractor(reader, out)

    extractor.extract_page(reader.pages[0])
    cached = dict(extractor._space_widths)
    extractor.extract_page(reader.pages[1])

    tc.assertEqual("one twothree four", out.getvalue())
    tc.assertEqual(1, len(cached))
    tc.assertEqual(cached, extractor._space_widths)


def test_independent_extractors_produce_identical_output() -> None:
    data = single_page_pdf(ACTUAL_TEXT_PAGE).getvalue()

    first = _extract(io.BytesIO(data), use_actual_text=True)
    second = _extract(io.BytesIO(data), use_actual_text=True)

    tc.assertEqual(first, second)


def test_malformed_content_stream_propagates() -> None:
    with pytest.raises(PdfStreamError):
        _extract(single_page_pdf(b"BT /F1 12 Tf (broken Tj ET"))


def test_extract_page_by_index() -> None:
    factory = PdfFactory()
    resources = f"<< /Font << /F1 {HELVETICA} >> >>"
    factory.add_page(b"BT /F1 12 Tf (first) Tj ET", resources)
    factory.add_page(b"BT /F1 12 Tf (second) Tj ET", resources)
    reader = PdfReader(factory.build_io())
    out = io.StringIO()
    extractor = TextExtractor(reader, out)

    extractor.extract_page(1)
    extractor.extract_page(reader.pages[0])

    tc.assertEqual("secondfirst", out.getvalue())
    with pytest.raises(IndexError):
        extractor.extract_page(2)
