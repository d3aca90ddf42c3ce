"""Typer CLI entrypoint for docfill-agent."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer

from apps.cli.format_human import render_fill_summary, render_schema_table
from apps.cli.io import (
    OutputPaths,
    build_output_paths,
    existing_output_files,
    write_fallback_report_atomic,
    write_fill_output_atomic,
    write_preview_atomic,
    write_schema_atomic,
)
from core.orchestrator.pipeline import run_fill
from core.orchestrator.session import FillSession
from core.render.models import FillOutput
from core.skills.registry import create_phraser, list_supported_phrasers
from core.templates.lexicon_loader import load_lexicon
from core.templates.models import Lexicon
from core.templates.placeholder_parser import parse_document
from core.utils.docx_xml import open_document
from core.utils.errors import DecodeError, UnfilledPlaceholdersError

app = typer.Typer(help="Document placeholder fill CLI", rich_markup_mode=None)

_INVALID_DOCUMENT_MESSAGE = "please provide a valid document"

TemplateOption = Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)]
OutDirOption = Annotated[Path, typer.Option()]
LexiconOption = Annotated[
    Path | None,
    typer.Option(exists=True, dir_okay=False, file_okay=True, help="Custom lexicon YAML."),
]


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands explicit."""


@app.command("extract")
def extract_command(
    template: TemplateOption,
    out_dir: OutDirOption = Path("."),
    lexicon: LexiconOption = None,
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the schema payload as JSON.")
    ] = False,
) -> None:
    """List placeholders in document order and write out.schema.json."""

    paths = build_output_paths(out_dir)
    try:
        lexicon_model = _load_lexicon(lexicon)
        schema = parse_document(open_document(template), lexicon=lexicon_model)
    except DecodeError:
        typer.echo(f"ERROR: {_INVALID_DOCUMENT_MESSAGE}")
        raise typer.Exit(code=1)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(schema.to_payload(), ensure_ascii=False, indent=2))
    else:
        typer.echo(render_schema_table(schema))

    write_schema_atomic(paths.schema, schema)
    typer.echo(f"INFO: wrote {paths.schema.name} ({len(schema.records)} placeholders)")


@app.command("fill")
def fill_command(
    template: TemplateOption,
    answers: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    out_dir: OutDirOption = Path("."),
    lexicon: LexiconOption = None,
    strict: Annotated[
        bool, typer.Option("--strict", help="Exit 2 when any placeholder stays unfilled.")
    ] = False,
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite outputs when they already exist.")
    ] = False,
    no_overwrite: Annotated[
        bool,
        typer.Option(
            "--no-overwrite",
            help="Fail when outputs already exist.",
        ),
    ] = False,
) -> None:
    """Fill a template from an answers JSON object and write fixed output artifacts."""

    paths = build_output_paths(out_dir)
    if force and no_overwrite:
        typer.echo("ERROR: --force and --no-overwrite cannot be used together.")
        raise typer.Exit(code=1)

    existing = existing_output_files(paths)
    if existing and no_overwrite:
        typer.echo("ERROR: outputs already exist and --no-overwrite is enabled.")
        raise typer.Exit(code=1)
    if existing:
        names = ", ".join(path.name for path in existing)
        typer.echo(f"INFO: overwriting existing outputs: {names}")

    output: FillOutput | None = None
    exit_code = 1
    failure_stage = "unknown"

    try:
        failure_stage = "load_answers"
        answer_map = _load_answers(answers)
        failure_stage = "load_lexicon"
        lexicon_model = _load_lexicon(lexicon)
        failure_stage = "load_template"
        document = open_document(template)
        failure_stage = "pipeline"
        output = run_fill(document, answer_map, lexicon=lexicon_model, require_complete=strict)
        exit_code = 0
    except UnfilledPlaceholdersError as exc:
        output = exc.fill_output
        exit_code = 2
        typer.echo(f"ERROR: unfilled placeholders: {', '.join(exc.unfilled)}")
    except DecodeError as exc:
        exit_code = 1
        typer.echo(f"ERROR: {_INVALID_DOCUMENT_MESSAGE}")
        _safe_write_fallback(paths, type(exc).__name__, str(exc), failure_stage)
    except Exception as exc:  # noqa: BLE001
        exit_code = 1
        typer.echo(f"ERROR: {type(exc).__name__}: {exc}")
        _safe_write_fallback(paths, type(exc).__name__, str(exc), failure_stage)

    if output is not None:
        typer.echo(render_fill_summary(output))
        try:
            write_fill_output_atomic(paths, output)
        except Exception as write_exc:  # noqa: BLE001
            exit_code = 1
            typer.echo(f"ERROR: write output failed: {write_exc}")
            _safe_write_fallback(paths, type(write_exc).__name__, str(write_exc), "write_docx")

    if exit_code == 0:
        typer.echo("INFO: success")
    raise typer.Exit(code=exit_code)


@app.command("preview")
def preview_command(
    template: TemplateOption,
    answers: Annotated[
        Path | None, typer.Option(exists=True, dir_okay=False, file_okay=True)
    ] = None,
    current_key: Annotated[str | None, typer.Option("--current-key")] = None,
    out_dir: OutDirOption = Path("."),
    lexicon: LexiconOption = None,
) -> None:
    """Write out.preview.html with filled answers and pending placeholders highlighted."""

    paths = build_output_paths(out_dir)
    try:
        answer_map = _load_answers(answers) if answers is not None else {}
        session = FillSession.from_source(template, lexicon=_load_lexicon(lexicon))
        session.fill_all(answer_map)
        preview = session.preview(current_key)
    except DecodeError:
        typer.echo(f"ERROR: {_INVALID_DOCUMENT_MESSAGE}")
        raise typer.Exit(code=1)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=1)

    for warning in preview.warnings:
        typer.echo(f"WARNING(preview): {warning.message}")

    write_preview_atomic(paths.preview, preview.html)
    typer.echo(
        f"INFO: wrote {paths.preview.name} (pending={len(preview.pending_keys)}, "
        f"current={preview.current_key or 'none'})"
    )


@app.command("chat")
def chat_command(
    template: TemplateOption,
    out_dir: OutDirOption = Path("."),
    lexicon: LexiconOption = None,
    phraser: Annotated[
        str,
        typer.Option(help=f"Question phraser: {', '.join(list_supported_phrasers())}."),
    ] = "template",
) -> None:
    """Ask one question per placeholder, then write the filled document."""

    paths = build_output_paths(out_dir)
    try:
        selected_phraser = create_phraser(phraser.strip().lower())
        session = FillSession.from_source(
            template, lexicon=_load_lexicon(lexicon), phraser=selected_phraser
        )
    except DecodeError:
        typer.echo(f"ERROR: {_INVALID_DOCUMENT_MESSAGE}")
        raise typer.Exit(code=1)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=1)

    if not session.schema.records:
        typer.echo("INFO: no placeholders found")

    skipped: set[str] = set()
    while True:
        question = session.next_question(skip=skipped)
        if question is None:
            break
        progress = session.progress()
        reply = typer.prompt(
            f"[{progress.answered + 1}/{progress.total}] {question.text}",
            default="",
            show_default=False,
        )
        if not reply.strip():
            skipped.add(question.key)
            continue
        session.answer(question.key, reply)

    output = session.generate()
    typer.echo(render_fill_summary(output, command_base="docfill chat"))
    write_fill_output_atomic(paths, output)
    typer.echo("INFO: success")


def _load_answers(path: Path) -> dict[str, str | None]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Answers JSON must be an object")

    answers: dict[str, str | None] = {}
    for key, value in raw.items():
        if value is not None and not isinstance(value, str):
            raise ValueError(f"Answer for '{key}' must be a string or null")
        answers[str(key)] = value
    return answers


def _load_lexicon(path: Path | None) -> Lexicon | None:
    if path is None:
        return None
    return load_lexicon(path)


def _safe_write_fallback(
    paths: OutputPaths,
    error_type: str,
    error_message: str,
    stage: str,
) -> None:
    try:
        write_fallback_report_atomic(
            paths,
            error_type=error_type,
            error_message=error_message,
            stage=stage,
        )
    except Exception:  # noqa: BLE001
        pass


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
