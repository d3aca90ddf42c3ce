"""Bracket tokenizer and candidate classifier for placeholder discovery.

Scanning happens in two phases: `tokenize` finds every `[...]` span on a
single line, then `scan_candidates` decides whether each span is a blank,
a named placeholder, or plain bracketed prose.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from core.templates.models import BracketToken, Candidate

BRACKET_TOKEN_RE = re.compile(r"\[([^\[\]\n]*)\]")
BLANK_PLACEHOLDER_RE = re.compile(r"\[[_\-]{3,}\]")

_BLANK_INNER_RE = re.compile(r"[_\-]{3,}")
_NAMED_INNER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_ \t-]*")
_WHITESPACE_RE = re.compile(r"\s+")
_NUMERIC_RE = re.compile(r"\d+")
_ALNUM_RE = re.compile(r"[a-z0-9]")

MIN_KEY_LENGTH = 2


def tokenize(text: str) -> list[BracketToken]:
    """Return every single-line `[...]` span without nested brackets."""

    return [
        BracketToken(
            start=match.start(),
            end=match.end(),
            surface=match.group(0),
            inner=match.group(1),
        )
        for match in BRACKET_TOKEN_RE.finditer(text)
    ]


def normalize_key(inner: str) -> str:
    """`Company  Name` -> `company_name`; `Post-Money` -> `post_money`."""

    collapsed = _WHITESPACE_RE.sub("_", inner.strip())
    return collapsed.replace("-", "_").lower()


def is_blank_inner(inner: str) -> bool:
    return _BLANK_INNER_RE.fullmatch(inner) is not None


def named_key_for(inner: str, stop_words: Iterable[str]) -> str | None:
    """Return the normalized key for a named placeholder, or None when rejected."""

    if _NAMED_INNER_RE.fullmatch(inner) is None:
        return None
    if _NUMERIC_RE.fullmatch(inner.strip()):
        return None

    key = normalize_key(inner)
    if len(key) < MIN_KEY_LENGTH:
        return None
    if key in set(stop_words):
        return None
    if _ALNUM_RE.search(key) is None:
        return None
    return key


def scan_candidates(text: str, stop_words: Iterable[str]) -> list[Candidate]:
    """Tokenize and classify `text`, minting `blank_<n>` keys per blank offset."""

    stop_set = frozenset(stop_words)
    blank_keys_by_offset: dict[int, str] = {}
    candidates: list[Candidate] = []

    for token in tokenize(text):
        if is_blank_inner(token.inner):
            blank_key = blank_keys_by_offset.get(token.start)
            if blank_key is None:
                blank_key = f"blank_{len(blank_keys_by_offset)}"
                blank_keys_by_offset[token.start] = blank_key
            candidates.append(
                Candidate(kind="blank", key=blank_key, surface=token.surface, start=token.start)
            )
            continue

        key = named_key_for(token.inner, stop_set)
        if key is None:
            continue
        candidates.append(Candidate(kind="named", key=key, surface=token.surface, start=token.start))

    return candidates


def blank_offsets(text: str) -> list[int]:
    """Start offsets of bracket-blank matches in document order."""

    return [match.start() for match in BLANK_PLACEHOLDER_RE.finditer(text)]
