"""Human-readable fill summary rendering for CLI output."""

from __future__ import annotations

from collections import Counter

from core.render.models import FillOutput
from core.templates.models import DocumentSchema


def render_fill_summary(output: FillOutput, *, command_base: str = "docfill fill") -> str:
    """Render one-screen human-readable fill summary."""

    report = output.report
    summary = report.summary
    total_keys = len(output.document_schema.records)

    lines: list[str] = []
    lines.append("fill_summary:")
    lines.append(
        f"placeholders={total_keys} answered={summary.replaced_count} "
        f"not_found={summary.not_found_count} unanswered={summary.unanswered_count}"
    )
    lines.append(f"result={'COMPLETE' if output.complete else 'INCOMPLETE'}")

    strategies: Counter[str] = Counter(
        entry.strategy for entry in report.entries if entry.strategy is not None
    )
    if strategies:
        strategy_text = ", ".join(f"{name}={strategies[name]}" for name in sorted(strategies))
        lines.append(f"strategies: {strategy_text}")
    else:
        lines.append("strategies: none")

    if report.not_found_keys:
        lines.append(f"not_found: {', '.join(report.not_found_keys)}")

    if output.unfilled_keys:
        labels = _labels_by_key(output.document_schema)
        shown = output.unfilled_keys[:5]
        unfilled_text = ", ".join(f"{key} ({labels.get(key, key)})" for key in shown)
        if len(output.unfilled_keys) > len(shown):
            unfilled_text += f", ... (+{len(output.unfilled_keys) - len(shown)})"
        lines.append(f"unfilled: {unfilled_text}")
        lines.append("suggestion: answer the remaining placeholders before download")
        lines.append(f"next_cmd: {command_base} --answers <answers.json> --strict")
    else:
        lines.append("suggestion: none")
        lines.append("next_cmd: none")

    return "\n".join(lines)


def render_schema_table(schema: DocumentSchema) -> str:
    """Render the extracted schema as aligned text rows."""

    if not schema.records:
        return "no placeholders found"

    key_width = max(len(record.key) for record in schema.records)
    lines = []
    for record in schema.records:
        lines.append(f"{record.position:>3}  {record.key:<{key_width}}  {record.label}")
    return "\n".join(lines)


def _labels_by_key(schema: DocumentSchema) -> dict[str, str]:
    return {record.key: record.label for record in schema.records}
