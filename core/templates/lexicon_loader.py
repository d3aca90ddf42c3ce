"""Lexicon loading utilities for placeholder filtering and labels."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from core.templates.models import Lexicon


def load_lexicon(path: Path | None = None) -> Lexicon:
    """Load and validate the label lexicon from YAML."""

    lexicon_path = path or Path(__file__).with_name("lexicon.yaml")

    try:
        raw = yaml.safe_load(lexicon_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Lexicon file not found: {lexicon_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in lexicon file: {lexicon_path}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Lexicon file must contain a mapping: {lexicon_path}")

    try:
        lexicon = Lexicon.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid lexicon schema: {lexicon_path}") from exc

    return _normalize_lexicon(lexicon, lexicon_path)


def _normalize_lexicon(lexicon: Lexicon, lexicon_path: Path) -> Lexicon:
    for key in lexicon.known_labels:
        if key != key.lower() or " " in key:
            raise ValueError(
                f"Invalid known label key '{key}' in {lexicon_path}. "
                "Keys must be lowercase and underscore-joined."
            )

    return lexicon.model_copy(
        update={
            "stop_words": sorted({word.strip().lower() for word in lexicon.stop_words}),
            "abbreviations": sorted({word.strip().lower() for word in lexicon.abbreviations}),
        }
    )
