import io
import json
import logging
import unittest

import pytest

import pdf2text
from pdf2text.exceptions import (
    ExtractionError,
    ExtractionFailedError,
    ExtractionFileFormatNotSupportedError,
)
from pdf2text.extractors.data_types import PdfTextContent, PdfTextPage
from pdf2text.extractors.pdf_extractor import open_pdf, read_pdf
from pdf2text.extractors.serialization import (
    deserialize_extraction,
    serialize_extraction,
)
from pdf_factory import HELVETICA, PdfFactory

logger = logging.getLogger(__name__)

tc = unittest.TestCase()
tc.maxDiff = None


def _three_page_pdf() -> io.BytesIO:
    factory = PdfFactory()
    font_id = factory.add(HELVETICA)
    resources = f"<< /Font << /F1 {font_id} 0 R >> >>"
    for word in ("first", "second", "third"):
        factory.add_page(f"BT /F1 12 Tf ({word}) Tj ET", resources)
    return factory.build_io()


def test_read_pdf_all_pages() -> None:
    result = next(read_pdf(_three_page_pdf()))

    tc.assertIsInstance(result, PdfTextContent)
    tc.assertEqual(
        {1: PdfTextPage("first"), 2: PdfTextPage("second"), 3: PdfTextPage("third")},
        result.pages,
    )
    tc.assertEqual(["first", "second", "third"], list(result.iterator()))
    tc.assertEqual("first\nsecond\nthird", result.get_full_text())
    tc.assertEqual(3, result.metadata.total_pages)
    tc.assertEqual(3, result.metadata.extracted_pages)
    tc.assertIsNone(result.metadata.filename)


def test_read_pdf_page_indices() -> None:
    result = next(read_pdf(_three_page_pdf(), pages=[2, 0, 0, 7]))

    tc.assertEqual([1, 3], sorted(result.pages))
    tc.assertEqual("first\nthird", result.get_full_text())
    tc.assertEqual(3, result.metadata.total_pages)
    tc.assertEqual(2, result.metadata.extracted_pages)


def test_read_pdf_page_predicate() -> None:
    result = next(read_pdf(_three_page_pdf(), pages=lambda index: index % 2 == 1))
    tc.assertEqual({2: PdfTextPage("second")}, result.pages)


def test_read_pdf_x_range() -> None:
    factory = PdfFactory()
    factory.add_page(
        "BT /F1 10 Tf 1 0 0 1 0 700 Tm (left) Tj 1 0 0 1 300 700 Tm (right) Tj ET",
        f"<< /Font << /F1 {HELVETICA} >> >>",
    )

    result = next(read_pdf(factory.build_io(), x_range=(250, 612)))

    tc.assertEqual("\n\nright", result.pages[1].text)


def test_read_pdf_actual_text_default_on() -> None:
    factory = PdfFactory()
    content = "BT /F1 10 Tf /Span << /ActualText (yes) >> BDC (no) Tj EMC ET"
    factory.add_page(content, f"<< /Font << /F1 {HELVETICA} >> >>")
    data = factory.build()

    enabled = next(read_pdf(io.BytesIO(data)))
    disabled = next(read_pdf(io.BytesIO(data), use_actual_text=False))

    tc.assertEqual("yes", enabled.get_full_text())
    tc.assertEqual("no", disabled.get_full_text())


def test_read_pdf_rejects_garbage() -> None:
    with pytest.raises(ExtractionFailedError) as excinfo:
        next(read_pdf(io.BytesIO(b"this is not a pdf")))

    tc.assertIsInstance(excinfo.value, ExtractionError)
    tc.assertIsNotNone(excinfo.value.__cause__)


def test_read_file_populates_metadata(tmp_path) -> None:
    path = tmp_path / "three.pdf"
    path.write_bytes(_three_page_pdf().getvalue())

    result = next(pdf2text.read_file(path))

    tc.assertEqual("three.pdf", result.metadata.filename)
    tc.assertEqual(".pdf", result.metadata.file_extension)
    tc.assertEqual(str(path.resolve()), result.metadata.file_path)
    tc.assertEqual("first\nsecond\nthird", result.get_full_text())


def test_read_file_rejects_other_formats(tmp_path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("plain text")

    with pytest.raises(ExtractionFileFormatNotSupportedError):
        next(pdf2text.read_file(path))


def test_serialization_round_trip() -> None:
    result = next(read_pdf(_three_page_pdf(), pages=[1]))

    payload = json.loads(json.dumps(serialize_extraction(result)))
    tc.assertEqual("PdfTextContent", payload["_type"])
    tc.assertEqual("second", payload["pages"]["2"]["text"])

    restored = deserialize_extraction(payload)
    tc.assertEqual(result, restored)
    tc.assertEqual({2: PdfTextPage("second")}, restored.pages)


def test_deserialize_rejects_untyped_input() -> None:
    with pytest.raises(ValueError):
        deserialize_extraction({"pages": {}})
    with pytest.raises(KeyError):
        deserialize_extraction({"_type": "Nope"})


def test_open_pdf_rewinds_the_stream() -> None:
    file_like = _three_page_pdf()
    file_like.seek(0, io.SEEK_END)

    reader = open_pdf(file_like)

    tc.assertEqual(3, len(reader.pages))
