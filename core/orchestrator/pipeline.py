"""Orchestration pipeline for batch document filling."""

from __future__ import annotations

from collections.abc import Mapping

from docx.document import Document as DocxDocument

from core.orchestrator.session import FillSession
from core.render.models import FillOutput
from core.templates.models import Lexicon
from core.utils.errors import UnfilledPlaceholdersError


def run_fill(
    document: DocxDocument,
    answers: Mapping[str, str | None],
    *,
    lexicon: Lexicon | None = None,
    require_complete: bool = False,
) -> FillOutput:
    """Execute extract -> substitute -> rebuild for a full answer map."""

    session = FillSession(document, lexicon=lexicon)
    session.fill_all(answers)
    output = session.generate()

    if require_complete and output.unfilled_keys:
        raise UnfilledPlaceholdersError(
            "Unfilled placeholders remain",
            unfilled=output.unfilled_keys,
            fill_output=output,
        )

    return output
