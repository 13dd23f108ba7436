"""
PDF Content Stream Reader
=========================

Replays a page content stream and reports what is shown to a handler,
one event at a time, in document order.

pypdf tokenizes the stream (``pypdf.generic.ContentStream``); this module
keeps just enough of the graphics and text state to know which font is in
use, where every glyph lands on the page and how the marked-content
sequences nest.

Events
------
    - ``begin_marked_content(tag, properties)``: ``BMC``/``BDC``, called
      after the sequence is pushed onto the marked-content stack
    - ``end_marked_content(tag)``: ``EMC``, called after the pop
    - ``show_glyph(glyph)``: one call per character code of a shown string
    - ``add_space(font, amount)``: negative ``TJ`` adjustments; ``amount``
      is the positive gap in thousandths of a text space unit
    - ``new_line()``: ``T*``, ``'`` and ``"``
    - ``move()``: ``Td``, ``TD`` and ``Tm``

Form XObjects are entered recursively; the marked-content stack is shared
between a page and the forms it draws.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Protocol

from pypdf.generic import ContentStream

from pdf2text.extractors.data_types import PageFont
from pdf2text.extractors.pdf.fonts import FontLoader

logger = logging.getLogger(__name__)

# (a, b, c, d, e, f) in the PDF row-vector convention
Matrix = tuple[float, float, float, float, float, float]

IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)

MAX_GRAPHICS_STACK_DEPTH = 64
MAX_FORM_DEPTH = 16


def multiply(m1: Matrix, m2: Matrix) -> Matrix:
    """Return the matrix product ``m1 x m2``."""
    a1, b1, c1, d1, e1, f1 = m1
    a2, b2, c2, d2, e2, f2 = m2
    return (
        a1 * a2 + b1 * c2,
        a1 * b2 + b1 * d2,
        c1 * a2 + d1 * c2,
        c1 * b2 + d1 * d2,
        e1 * a2 + f1 * c2 + e2,
        e1 * b2 + f1 * d2 + f2,
    )


def translate(tx: float, ty: float) -> Matrix:
    return (1.0, 0.0, 0.0, 1.0, tx, ty)


@dataclass(frozen=True)
class Glyph:
    """A single shown character code."""

    font: Optional[PageFont]
    code: int
    # decoded text, empty when the font has no mapping for the code
    text: str
    # text matrix x CTM at the time the glyph was shown
    rendering_matrix: Matrix = IDENTITY
    rise: float = 0.0

    def device_x(self) -> float:
        """X coordinate of the glyph origin in device space."""
        _a, _b, c, _d, e, _f = self.rendering_matrix
        return self.rise * c + e


class ContentHandler(Protocol):
    def begin_marked_content(self, tag: str, properties: Any) -> None: ...

    def end_marked_content(self, tag: str) -> None: ...

    def show_glyph(self, glyph: Glyph) -> None: ...

    def add_space(self, font: Optional[PageFont], amount: float) -> None: ...

    def new_line(self) -> None: ...

    def move(self) -> None: ...


@dataclass
class _GraphicsState:
    ctm: Matrix = IDENTITY
    char_spacing: float = 0.0
    word_spacing: float = 0.0
    horizontal_scaling: float = 1.0
    leading: float = 0.0
    font: Optional[PageFont] = None
    font_size: float = 0.0
    rise: float = 0.0


class ContentStreamReader:
    """
    Interprets page content streams and forwards text events to a handler.

    One reader can parse any number of pages of the same document; fonts
    are loaded through the shared ``FontLoader`` and cached there.
    """

    def __init__(self, handler: ContentHandler, fonts: Optional[FontLoader] = None):
        self.handler = handler
        self.fonts = fonts if fonts is not None else FontLoader()
        self.marked_content: list[tuple[str, Any]] = []
        self._state = _GraphicsState()
        self._stack: list[_GraphicsState] = []
        self._text_matrix: Matrix = IDENTITY
        self._line_matrix: Matrix = IDENTITY

    @property
    def marked_content_depth(self) -> int:
        return len(self.marked_content)

    def reset(self) -> None:
        self.marked_content = []
        self._state = _GraphicsState()
        self._stack = []
        self._text_matrix = IDENTITY
        self._line_matrix = IDENTITY

    def parse_page(self, page: Any) -> None:
        """
        Replay the content stream of a pypdf page.

        Raises whatever pypdf raises for malformed content streams.
        """
        self.reset()
        contents = page.get_contents()
        if contents is None:
            return
        resources = _resolve(page.get("/Resources"))
        self._run(contents.operations, resources, getattr(page, "pdf", None), 0)

    def _run(
        self, operations: list[tuple[Any, bytes]], resources: Any, pdf: Any, depth: int
    ) -> None:
        for operands, operator in operations:
            op = (
                operator.decode("utf-8", errors="ignore")
                if isinstance(operator, bytes)
                else operator
            )
            convert = _OPERANDS.get(op)
            if convert is None:
                continue
            try:
                args = convert(operands)
            except (IndexError, TypeError, ValueError) as e:
                # malformed operands, the operator is skipped
                logger.debug("Skipping operator %s %r: %s", op, operands, e)
                continue
            self._dispatch(op, args, resources, pdf, depth)

    def _dispatch(
        self, op: str, args: tuple[Any, ...], resources: Any, pdf: Any, depth: int
    ) -> None:
        state = self._state

        # Graphics state
        if op == "q":
            if len(self._stack) < MAX_GRAPHICS_STACK_DEPTH:
                self._stack.append(replace(state))
        elif op == "Q":
            if self._stack:
                self._state = self._stack.pop()
        elif op == "cm":
            state.ctm = multiply(args[0], state.ctm)

        # Text objects and positioning
        elif op == "BT":
            self._text_matrix = IDENTITY
            self._line_matrix = IDENTITY
        elif op == "Td":
            self._move_line(*args)
            self.handler.move()
        elif op == "TD":
            state.leading = -args[1]
            self._move_line(*args)
            self.handler.move()
        elif op == "Tm":
            self._line_matrix = self._text_matrix = args[0]
            self.handler.move()
        elif op == "T*":
            self._next_line()

        # Text state
        elif op == "Tc":
            state.char_spacing = args[0]
        elif op == "Tw":
            state.word_spacing = args[0]
        elif op == "Tz":
            state.horizontal_scaling = args[0] / 100
        elif op == "TL":
            state.leading = args[0]
        elif op == "Ts":
            state.rise = args[0]
        elif op == "Tf":
            state.font = self._load_font(resources, args[0])
            state.font_size = args[1]

        # Text showing
        elif op == "Tj":
            self._show_string(args[0])
        elif op == "'":
            self._next_line()
            self._show_string(args[0])
        elif op == '"':
            state.word_spacing, state.char_spacing = args[0], args[1]
            self._next_line()
            self._show_string(args[2])
        elif op == "TJ":
            for item in args[0]:
                if isinstance(item, float):
                    self._adjust(item)
                else:
                    self._show_string(item)

        # Marked content
        elif op in ("BMC", "BDC"):
            tag, properties = args
            if properties is not None:
                properties = _property_list(properties, resources)
            self.marked_content.append((tag, properties))
            self.handler.begin_marked_content(tag, properties)
        elif op == "EMC":
            tag = self.marked_content.pop()[0] if self.marked_content else ""
            self.handler.end_marked_content(tag)

        # External objects
        elif op == "Do":
            self._draw_xobject(args[0], resources, pdf, depth)

    def _move_line(self, tx: float, ty: float) -> None:
        self._line_matrix = multiply(translate(tx, ty), self._line_matrix)
        self._text_matrix = self._line_matrix

    def _next_line(self) -> None:
        self._move_line(0.0, -self._state.leading)
        self.handler.new_line()

    def _adjust(self, amount: float) -> None:
        state = self._state
        tx = -amount / 1000 * state.font_size * state.horizontal_scaling
        self._text_matrix = multiply(translate(tx, 0.0), self._text_matrix)
        if amount < 0:
            self.handler.add_space(state.font, -amount)

    def _show_string(self, data: bytes) -> None:
        state = self._state
        font = state.font
        codes = font.codes(data) if font is not None else iter(data)
        for code in codes:
            text = font.text(code) if font is not None else ""
            self.handler.show_glyph(
                Glyph(
                    font=font,
                    code=code,
                    text=text,
                    rendering_matrix=multiply(self._text_matrix, state.ctm),
                    rise=state.rise,
                )
            )

            width = font.width(code) if font is not None else 0.0
            advance = width * state.font_size + state.char_spacing
            if code == 32 and (font is None or font.bytes_per_code == 1):
                advance += state.word_spacing
            self._text_matrix = multiply(
                translate(advance * state.horizontal_scaling, 0.0), self._text_matrix
            )

    def _load_font(self, resources: Any, name: Any) -> Optional[PageFont]:
        fonts = _resolve(resources.get("/Font")) if resources is not None else None
        if fonts is None or name not in fonts:
            logger.debug("Font %s not found in resources", name)
            return None
        font_ref = fonts.raw_get(name) if hasattr(fonts, "raw_get") else fonts[name]
        return self.fonts.load(font_ref)

    def _draw_xobject(self, name: Any, resources: Any, pdf: Any, depth: int) -> None:
        xobjects = _resolve(resources.get("/XObject")) if resources is not None else None
        if xobjects is None or name not in xobjects:
            logger.warning("XObject %s not found in resources", name)
            return
        xobject = _resolve(xobjects[name])
        if xobject.get("/Subtype") != "/Form":
            return
        if depth >= MAX_FORM_DEPTH:
            logger.warning("Form XObject %s nested too deeply, skipped", name)
            return

        form_resources = _resolve(xobject.get("/Resources"))
        if form_resources is None:
            form_resources = resources
        form_matrix = _resolve(xobject.get("/Matrix"))

        saved_state = replace(self._state)
        saved_stack = self._stack
        saved_text = (self._text_matrix, self._line_matrix)
        self._stack = []
        if form_matrix is not None:
            try:
                self._state.ctm = multiply(_matrix(form_matrix), self._state.ctm)
            except (IndexError, TypeError, ValueError) as e:
                logger.debug("Ignoring malformed /Matrix of form %s: %s", name, e)
        try:
            operations = ContentStream(xobject, pdf).operations
            self._run(operations, form_resources, pdf, depth + 1)
        finally:
            self._state = saved_state
            self._stack = saved_stack
            self._text_matrix, self._line_matrix = saved_text


def _resolve(obj: Any) -> Any:
    if obj is None:
        return None
    return obj.get_object() if hasattr(obj, "get_object") else obj


def _matrix(values: Any) -> Matrix:
    a, b, c, d, e, f = (float(_resolve(v)) for v in list(values)[:6])
    return (a, b, c, d, e, f)


def _property_list(operand: Any, resources: Any) -> Any:
    """Resolve the property operand of ``BDC``, inline or named in /Properties."""
    operand = _resolve(operand)
    if hasattr(operand, "get"):
        return operand
    properties = _resolve(resources.get("/Properties")) if resources is not None else None
    if properties is None or operand not in properties:
        return None
    return _resolve(properties[operand])


def _string_bytes(value: Any) -> bytes:
    data = getattr(value, "original_bytes", None)
    if data is not None:
        return data
    if isinstance(value, bytes):
        return value
    return str(value).encode("latin-1")


def _numbers(count: int) -> Callable[[list[Any]], tuple[float, ...]]:
    def convert(operands: list[Any]) -> tuple[float, ...]:
        if len(operands) < count:
            raise IndexError(f"expected {count} operands, got {len(operands)}")
        return tuple(float(_resolve(v)) for v in operands[:count])

    return convert


def _no_operands(operands: list[Any]) -> tuple[()]:
    return ()


def _text_array(operands: list[Any]) -> tuple[list[Any]]:
    items = []
    for item in operands[0]:
        if isinstance(item, (int, float)):
            items.append(float(item))
        else:
            items.append(_string_bytes(item))
    return (items,)


def _marked_content(operands: list[Any]) -> tuple[str, Any]:
    return str(operands[0]), operands[1] if len(operands) >= 2 else None


# Operand conversion per operator; operators not listed here are ignored.
_OPERANDS: dict[str, Callable[[list[Any]], tuple[Any, ...]]] = {
    "q": _no_operands,
    "Q": _no_operands,
    "cm": lambda operands: (_matrix(operands),),
    "BT": _no_operands,
    "Td": _numbers(2),
    "TD": _numbers(2),
    "Tm": lambda operands: (_matrix(operands),),
    "T*": _no_operands,
    "Tc": _numbers(1),
    "Tw": _numbers(1),
    "Tz": _numbers(1),
    "TL": _numbers(1),
    "Ts": _numbers(1),
    "Tf": lambda operands: (operands[0], float(operands[1])),
    "Tj": lambda operands: (_string_bytes(operands[0]),),
    "'": lambda operands: (_string_bytes(operands[0]),),
    '"': lambda operands: (
        float(operands[0]),
        float(operands[1]),
        _string_bytes(operands[2]),
    ),
    "TJ": _text_array,
    "BMC": lambda operands: (str(operands[0]), None),
    "BDC": _marked_content,
    "EMC": _no_operands,
    "Do": lambda operands: (operands[0],),
}
