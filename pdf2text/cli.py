from __future__ import annotations

import argparse
import io
import json
import math
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, TextIO

from pypdf import PdfReader

import pdf2text
from pdf2text.exceptions import ExtractionError
from pdf2text.extractors.data_types import PdfTextContent
from pdf2text.extractors.pdf.sections import Section, find_section, list_sections
from pdf2text.extractors.pdf_extractor import open_pdf
from pdf2text.extractors.serialization import serialize_extraction


@dataclass(frozen=True)
class PageRegion:
    """A page selection on 0-based page indices; None bounds are open."""

    start: int | None = None
    end: int | None = None
    odd: bool = False
    even: bool = False

    def matches(self, index: int) -> bool:
        if self.start is not None and index < self.start:
            return False
        if self.end is not None and index > self.end:
            return False
        # index is 0-based, odd/even refer to 1-based page numbers
        if self.odd and (index + 1) % 2 == 0:
            return False
        if self.even and (index + 1) % 2 == 1:
            return False
        return True


def parse_page_region(spec: str) -> PageRegion:
    spec = spec.strip()
    if spec == "odd":
        return PageRegion(odd=True)
    if spec == "even":
        return PageRegion(even=True)
    if spec == "all":
        return PageRegion()

    try:
        if "-" in spec:
            first, _, last = spec.partition("-")
            if "-" in last:
                raise ValueError("invalid range format")
            start = int(first) - 1 if first else None
            end = int(last) - 1 if last else None
            return PageRegion(start=start, end=end)
        page = int(spec) - 1
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"invalid page specification {spec!r}: {exc}"
        ) from exc
    return PageRegion(start=page, end=page)


def parse_x_range(spec: str) -> tuple[float, float]:
    text = spec.strip()
    # the separator is the first "-" that is not a sign or part of an exponent
    for pos, char in enumerate(text):
        if char != "-" or pos == 0 or text[pos - 1] in "eE":
            continue
        try:
            low, high = float(text[:pos]), float(text[pos + 1 :])
        except ValueError:
            continue
        if low < high:
            return low, high
        break
    raise argparse.ArgumentTypeError(
        f"invalid x-range specification {spec!r} (expected A-B where A < B)"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf2text",
        description="Extract the text of a PDF file and emit it to stdout (or JSON with --json).",
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Path to the PDF file to extract.",
    )
    parser.add_argument(
        "--pages",
        type=parse_page_region,
        action="append",
        default=[],
        metavar="SPEC",
        help="Pages to extract: N, N-M, N-, -M, odd, even or all (1-based). "
        "Repeated selections are intersected.",
    )
    parser.add_argument(
        "--xrange",
        type=parse_x_range,
        action="append",
        default=[],
        metavar="A-B",
        help="Only keep glyphs whose device X coordinate lies in [A, B).",
    )
    parser.add_argument(
        "--section",
        metavar="PAT",
        help="Extract the outline section whose title matches the regular "
        "expression PAT; the pattern must match exactly one outline entry.",
    )
    parser.add_argument(
        "--list-sections",
        action="store_true",
        help="List the outline of the document and exit.",
    )
    parser.add_argument(
        "--show-next-section",
        action="store_true",
        help="Print the title of the section following --section after the text.",
    )
    parser.add_argument(
        "--no-actualtext",
        action="store_true",
        help="Disable ActualText substitution.",
    )
    parser.add_argument(
        "-P",
        "--page-numbers",
        action="store_true",
        help="Write a page header before the text of each page.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit structured JSON instead of plain text.",
    )
    parser.add_argument(
        "-o",
        "--output",
        default="-",
        help="Output file, or - for stdout (default).",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite the output file if it exists.",
    )
    return parser


def _combined_x_range(ranges: list[tuple[float, float]]) -> tuple[float, float]:
    x_min, x_max = -math.inf, math.inf
    for low, high in ranges:
        x_min = max(x_min, low)
        x_max = min(x_max, high)
    return x_min, x_max


def _open_reader(path: Path) -> PdfReader:
    with open(path, "rb") as f:
        return open_pdf(io.BytesIO(f.read()))


def _print_sections(path: Path) -> None:
    titles = list_sections(_open_reader(path))
    if not titles:
        print("No sections found in document")
        return
    print("Sections:")
    for title in titles:
        print(title)


def _select_section(path: Path, pattern: str) -> Section:
    try:
        return find_section(_open_reader(path), pattern)
    except ExtractionError as exc:
        raise RuntimeError(f"section selection failed: {exc}") from exc


def _write_text(result: PdfTextContent, out: TextIO, *, page_numbers: bool) -> None:
    for page_num in sorted(result.pages):
        if page_numbers:
            out.write(f"--- Page {page_num} ---\n\n")
        out.write(result.pages[page_num].text)
        out.write("\n")


def _open_output(output: str, force: bool) -> TextIO:
    try:
        return open(output, "w" if force else "x", encoding="utf-8")
    except FileExistsError as exc:
        raise RuntimeError(
            f"file {output} already exists (use -f to overwrite)"
        ) from exc


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args, unknown = parser.parse_known_args(argv)
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
        return code

    if unknown:
        unknown_str = " ".join(unknown)
        print(
            f"pdf2text: warning: unsupported arguments: {unknown_str}",
            file=sys.stderr,
        )
        return 1

    regions: list[PageRegion] = args.pages
    section: Section | None = None

    def selected(index: int) -> bool:
        if section is not None and not section.matches(index):
            return False
        return all(region.matches(index) for region in regions)

    try:
        if args.list_sections:
            _print_sections(args.path)
            return 0
        if args.show_next_section and args.section is None:
            raise RuntimeError("--show-next-section can only be used with --section")
        if args.section is not None:
            section = _select_section(args.path, args.section)

        results = list(
            pdf2text.read_file(
                args.path,
                use_actual_text=not args.no_actualtext,
                x_range=_combined_x_range(args.xrange),
                pages=selected,
            )
        )
        if not results or not results[0].pages:
            raise RuntimeError("no pages selected for text extraction")
        result = results[0]

        out = sys.stdout if args.output == "-" else _open_output(args.output, args.force)
        try:
            if args.json:
                json.dump(serialize_extraction(result), out)
                out.write("\n")
            else:
                _write_text(result, out, page_numbers=args.page_numbers)
        finally:
            if out is not sys.stdout:
                out.close()

        if args.output != "-":
            print(
                f"extracted {len(result.pages)} pages to {args.output}",
                file=sys.stderr,
            )
        if args.show_next_section and section.next_title:
            print(section.next_title)
        return 0
    except Exception as exc:
        print(f"pdf2text: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
