"""Tag-tolerant text matching over markup bodies (DOCX XML or HTML).

A markup body is projected onto the text a reader would see. Each projected
character remembers its offset in the markup, so a match found in the
projection can be mapped back to one or more text pieces separated by inline
tags (for example runs split by Word). Block boundaries such as paragraphs
and table cells project as a synthetic newline, which no placeholder pattern
can match, so matches never cross them.

Tags are never removed or split by edits made here.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

_TOKEN_RE = re.compile(r"<!--.*?-->|<!\[CDATA\[.*?\]\]>|<\?.*?\?>|<![^>]*>|<[^>]*>", re.DOTALL)
_TAG_NAME_RE = re.compile(r"</?\s*([A-Za-z_][\w:.\-]*)")

BOUNDARY_TAGS = frozenset(
    {
        "w:body",
        "w:p",
        "w:tbl",
        "w:tr",
        "w:tc",
        "w:br",
        "w:cr",
        "w:tab",
        "w:txbxcontent",
        "w:footnote",
        "w:endnote",
        "body",
        "p",
        "div",
        "table",
        "tr",
        "td",
        "th",
        "br",
        "ul",
        "ol",
        "li",
        "blockquote",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
    }
)
OPAQUE_TAGS = frozenset(
    {
        "w:instrtext",
        "w:deltext",
        "w:delinstrtext",
        "mc:fallback",
        "head",
        "script",
        "style",
    }
)
BOUNDARY_CHAR = "\n"
_BOUNDARY_RUN_RE = re.compile(rf"{BOUNDARY_CHAR}{{2,}}")


@dataclass(frozen=True)
class FillStyle:
    """Markers wrapped around inserted answers.

    Text between the markers is locked: later scans never match inside it.
    """

    name: str
    open_marker: str
    close_marker: str
    strip_markers: bool

    def wrap(self, escaped_value: str) -> str:
        return f"{self.open_marker}{escaped_value}{self.close_marker}"

    def strip(self, markup: str) -> str:
        if not self.strip_markers:
            return markup
        return markup.replace(self.open_marker, "").replace(self.close_marker, "")


DOCX_FILL_STYLE = FillStyle(
    name="docx",
    open_marker="<!--docfill:begin-->",
    close_marker="<!--docfill:end-->",
    strip_markers=True,
)
PREVIEW_FILL_STYLE = FillStyle(
    name="preview",
    open_marker='<span class="docfill-filled">',
    close_marker="</span>",
    strip_markers=False,
)


@dataclass(frozen=True)
class TextMatch:
    """A match in projected text coordinates."""

    start: int
    end: int
    text: str
    contiguous: bool
    locked: bool


class MarkupProjection:
    """Visible text of a markup body with a per-character map back to the markup."""

    def __init__(self, markup: str, style: FillStyle = DOCX_FILL_STYLE) -> None:
        self.markup = markup
        self.style = style
        self._chars: list[str] = []
        self.offsets: list[int] = []
        self.locked: list[bool] = []
        self.synthetic: list[bool] = []
        self._project()
        self.text = "".join(self._chars)

    def _project(self) -> None:
        in_lock = False
        opaque_depth = 0
        cursor = 0

        for match in _TOKEN_RE.finditer(self.markup):
            if match.start() > cursor and opaque_depth == 0:
                self._add_text(cursor, match.start(), in_lock)
            cursor = match.end()

            tag = match.group(0)
            if tag == self.style.open_marker:
                in_lock = True
                continue
            if in_lock and tag == self.style.close_marker:
                in_lock = False
                continue
            if tag.startswith("<!") or tag.startswith("<?"):
                continue

            name_match = _TAG_NAME_RE.match(tag)
            if name_match is None:
                continue
            name = name_match.group(1).lower()
            closing = tag.startswith("</")
            self_closing = tag.endswith("/>")

            if name in OPAQUE_TAGS:
                if self_closing:
                    continue
                opaque_depth = max(0, opaque_depth - 1) if closing else opaque_depth + 1
                continue
            if name in BOUNDARY_TAGS and opaque_depth == 0:
                self._chars.append(BOUNDARY_CHAR)
                self.offsets.append(match.start())
                self.locked.append(False)
                self.synthetic.append(True)

        if cursor < len(self.markup) and opaque_depth == 0:
            self._add_text(cursor, len(self.markup), in_lock)

    def _add_text(self, start: int, end: int, in_lock: bool) -> None:
        text = self.markup[start:end]
        # Indentation between tags of pretty-printed markup.
        if "\n" in text and not text.strip():
            return
        for index, char in enumerate(text):
            self._chars.append(char)
            self.offsets.append(start + index)
            self.locked.append(in_lock)
            self.synthetic.append(False)

    def is_locked(self, start: int, end: int) -> bool:
        return any(self.locked[start:end])

    def is_contiguous(self, start: int, end: int) -> bool:
        return all(
            self.offsets[index + 1] == self.offsets[index] + 1 for index in range(start, end - 1)
        )

    def pieces(self, start: int, end: int) -> list[tuple[int, int]]:
        """Markup ranges holding the projected characters `[start, end)`."""

        ranges: list[tuple[int, int]] = []
        for index in range(start, end):
            if self.synthetic[index]:
                continue
            offset = self.offsets[index]
            if ranges and ranges[-1][1] == offset:
                ranges[-1] = (ranges[-1][0], offset + 1)
            else:
                ranges.append((offset, offset + 1))
        return ranges

    def find_pattern(self, pattern: re.Pattern[str]) -> list[TextMatch]:
        return [
            TextMatch(
                start=match.start(),
                end=match.end(),
                text=match.group(0),
                contiguous=self.is_contiguous(match.start(), match.end()),
                locked=self.is_locked(match.start(), match.end()),
            )
            for match in pattern.finditer(self.text)
            if match.end() > match.start()
        ]

    def find_literal(self, literal: str) -> list[TextMatch]:
        """Case-insensitive literal search; inline tags inside a match are tolerated."""

        if not literal:
            return []
        return self.find_pattern(re.compile(re.escape(literal), re.IGNORECASE))

    def replace(self, start: int, end: int, replacement: str) -> str:
        """Return markup with projected `[start, end)` replaced by raw `replacement`.

        The replacement lands in the first text piece; characters in later
        pieces are deleted and the tags between them are kept.
        """

        return _splice(self.markup, self.pieces(start, end), replacement)

    def replace_many(self, matches: list[TextMatch], replacement: str) -> str:
        """Replace non-overlapping matches, last to first, from this projection."""

        markup = self.markup
        for match in sorted(matches, key=lambda item: item.start, reverse=True):
            markup = _splice(markup, self.pieces(match.start, match.end), replacement)
        return markup

    def wrap(self, start: int, end: int, first_open: str, open_tag: str, close_tag: str) -> str:
        """Wrap every text piece of `[start, end)` in an inline element.

        Each piece gets its own element so the result stays well nested when
        the match crosses inline tags. The first piece uses `first_open`.
        """

        return self.wrap_many([(start, end, first_open, open_tag)], close_tag)

    def wrap_many(self, spans: list[tuple[int, int, str, str]], close_tag: str) -> str:
        """Wrap non-overlapping `(start, end, first_open, open_tag)` spans, last to first."""

        markup = self.markup
        for start, end, first_open, open_tag in sorted(spans, key=lambda span: span[0], reverse=True):
            ranges = self.pieces(start, end)
            for position in range(len(ranges) - 1, -1, -1):
                piece_start, piece_end = ranges[position]
                opener = first_open if position == 0 else open_tag
                markup = (
                    markup[:piece_start]
                    + opener
                    + markup[piece_start:piece_end]
                    + close_tag
                    + markup[piece_end:]
                )
        return markup


def visible_text(markup: str, style: FillStyle = DOCX_FILL_STYLE) -> str:
    """Projected text of `markup` with each run of block boundaries as one newline.

    Character entities are decoded. Placeholders appear in the same order
    `MarkupProjection` finds them in the same markup.
    """

    text = MarkupProjection(markup, style).text
    text = _BOUNDARY_RUN_RE.sub(BOUNDARY_CHAR, text).strip(BOUNDARY_CHAR)
    return html.unescape(text)


def _splice(markup: str, ranges: list[tuple[int, int]], replacement: str) -> str:
    if not ranges:
        return markup
    for piece_start, piece_end in reversed(ranges[1:]):
        markup = markup[:piece_start] + markup[piece_end:]
    first_start, first_end = ranges[0]
    return markup[:first_start] + replacement + markup[first_end:]
