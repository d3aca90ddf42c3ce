"""Label inference for unnamed blank placeholders such as `[________]`.

Blanks carry no lexical identity, so their label comes from the text around
them. Rules are pure functions evaluated in priority order; the first rule that
returns a label wins. Money and dates come first because they are the most
common blank types in this document class.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from core.templates.labels import title_case

CONTEXT_WINDOW = 200
CURRENCY_SIGNS = "$€£¥"

_LEADING_BLANK_RE = re.compile(r"^\[[_\-]{3,}\]")
_BLANK_RE = re.compile(r"\[[_\-]{3,}\]")
_DEFINED_TERM_AFTER_BLANK_RE = re.compile(
    r"^\[[_\-]{3,}\]\s*\(?\s*the\s*(?:[\"“]([^\"”]+)[\"”]|['‘]([^'’]+)['’])",
    re.IGNORECASE,
)
_DEFINED_TERM_RE = re.compile(
    r"\(?\s*\bthe\s*(?:[\"“]([^\"”]+)[\"”]|['‘]([^'’]+)['’])",
    re.IGNORECASE,
)
_DATE_WORD_RE = re.compile(r"\bdate\b")
_SAFE_WORD_RE = re.compile(r"\bsafe\b")
_ARTICLE_TAIL_RE = re.compile(r"\ban?\s*$")
_CORPORATION_AFTER_RE = re.compile(r"^\[[_\-]{3,}\]\s+corporation\b")

_DATE_PHRASES_BEFORE = ("on or about", "date of safe", "effective date")
_FALLBACK_TERMS: tuple[tuple[str, str], ...] = (
    ("purchase amount", "Purchase Amount"),
    ("post-money valuation", "Post-Money Valuation Cap"),
    ("valuation cap", "Post-Money Valuation Cap"),
    ("discount", "Discount Rate"),
    ("date of safe", "Date of Safe"),
    ("effective date", "Effective Date"),
)


@dataclass(frozen=True)
class BlankContext:
    """Text around one blank. `after` starts at the blank itself."""

    index: int
    before: str
    after: str

    @property
    def before_lower(self) -> str:
        return self.before.lower()

    @property
    def after_lower(self) -> str:
        return self.after.lower()

    @property
    def full_lower(self) -> str:
        return f"{self.before} {self.after}".lower()

    @property
    def has_currency_before(self) -> bool:
        stripped = self.before.rstrip()
        return bool(stripped) and stripped[-1] in CURRENCY_SIGNS

    @property
    def trailing(self) -> str:
        """Text after the blank, up to the next blank."""

        rest = _LEADING_BLANK_RE.sub("", self.after, count=1)
        next_blank = _BLANK_RE.search(rest)
        if next_blank is not None:
            rest = rest[: next_blank.start()]
        return rest


BlankRule = Callable[[BlankContext], "str | None"]


def currency_defined_term(context: BlankContext) -> str | None:
    if not context.has_currency_before:
        return None
    match = _DEFINED_TERM_AFTER_BLANK_RE.match(context.after)
    if match is None:
        return None
    term = match.group(1) or match.group(2)
    return title_case(term) or None


def currency_amount(context: BlankContext) -> str | None:
    if not context.has_currency_before:
        return None

    full = context.full_lower
    before = context.before_lower
    if "valuation cap" in full and "post-money" in full:
        return "Post-Money Valuation Cap"
    if "purchase amount" in full or "payment by" in before or "exchange for" in before:
        return "Purchase Amount"
    if "valuation cap" in full:
        return "Valuation Cap"
    if "discount" in full:
        return "Discount Rate"
    return "Amount"


def date_phrase(context: BlankContext) -> str | None:
    full = context.full_lower
    before = context.before_lower
    triggered = any(phrase in before for phrase in _DATE_PHRASES_BEFORE) or bool(
        _DATE_WORD_RE.search(full)
    )
    if not triggered:
        return None

    if "date of safe" in full or _SAFE_WORD_RE.search(full):
        return "Date of Safe"
    if "effective" in full:
        return "Effective Date"
    return "Date"


def incorporation_state(context: BlankContext) -> str | None:
    if "state of incorporation" in context.full_lower:
        return "State of Incorporation"
    if _ARTICLE_TAIL_RE.search(context.before_lower) and _CORPORATION_AFTER_RE.match(
        context.after_lower
    ):
        return "State of Incorporation"
    return None


def governing_law(context: BlankContext) -> str | None:
    full = context.full_lower
    if "governing law" in full or "laws of the state of" in full:
        return "Governing Law Jurisdiction"
    return None


def trailing_defined_term(context: BlankContext) -> str | None:
    match = _DEFINED_TERM_RE.search(context.trailing)
    if match is None:
        return None
    term = match.group(1) or match.group(2)
    return title_case(term) or None


def keyword_fallback(context: BlankContext) -> str | None:
    full = context.full_lower
    for term, label in _FALLBACK_TERMS:
        if term in full:
            return label
    return None


def positional_fallback(context: BlankContext) -> str | None:
    return f"Field {context.index}"


BLANK_LABEL_RULES: tuple[BlankRule, ...] = (
    currency_defined_term,
    currency_amount,
    date_phrase,
    incorporation_state,
    governing_law,
    trailing_defined_term,
    keyword_fallback,
    positional_fallback,
)


def label_for_blank(index: int, text_before: str, text_after: str) -> str:
    """Return the label of the first matching rule for one blank."""

    context = BlankContext(
        index=index,
        before=text_before[-CONTEXT_WINDOW:],
        after=text_after[:CONTEXT_WINDOW],
    )
    for rule in BLANK_LABEL_RULES:
        label = rule(context)
        if label:
            return label
    return f"Field {index}"


def blank_context_windows(text: str, offset: int) -> tuple[str, str]:
    """Slice the before/after windows around a blank starting at `offset`."""

    before = text[max(0, offset - CONTEXT_WINDOW) : offset]
    after = text[offset : offset + CONTEXT_WINDOW]
    return before, after
