"""Human-readable labels for named placeholder keys."""

from __future__ import annotations

import re

from core.templates.models import Lexicon

_WORD_SPLIT_RE = re.compile(r"\s+")
_HYPHEN_PART_RE = re.compile(r"(-)")


def label_for_key(key: str, lexicon: Lexicon) -> str:
    """Derive a label for a named key.

    Lookup order:
    - exact match in the lexicon's known labels;
    - section compound such as `company_title` or `investor_email`;
    - title-cased words, with known abbreviations upper-cased.
    """

    known = lexicon.known_labels.get(key)
    if known is not None:
        return known

    parts = key.split("_")
    if len(parts) >= 2 and parts[0] in lexicon.section_labels:
        section = parts[0]
        suffix = "_".join(parts[1:])
        section_label = lexicon.section_labels[section].get(suffix)
        if section_label is not None:
            return section_label
        suffix_label = _words_label(suffix.split("_"), lexicon)
        return f"{_capitalize(section)} {suffix_label}".strip()

    return _words_label(parts, lexicon)


def title_case(text: str) -> str:
    """Title-case free text, capitalizing each hyphenated part.

    `post-money valuation cap` -> `Post-Money Valuation Cap`.
    """

    words = [word for word in _WORD_SPLIT_RE.split(text.strip()) if word]
    return " ".join(_title_word(word) for word in words)


def _words_label(parts: list[str], lexicon: Lexicon) -> str:
    abbreviations = set(lexicon.abbreviations)
    words: list[str] = []
    for part in parts:
        if not part:
            continue
        if part.lower() in abbreviations:
            words.append(part.upper())
        else:
            words.append(_capitalize(part))

    if not words:
        return "Value"
    return " ".join(words)


def _title_word(word: str) -> str:
    pieces = _HYPHEN_PART_RE.split(word)
    return "".join(piece if piece == "-" else _capitalize(piece) for piece in pieces)


def _capitalize(word: str) -> str:
    if not word:
        return word
    return word[0].upper() + word[1:].lower()
