import json
import statistics
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from ..chunking.base import BaseChunker
from ..chunking.recursive import RecursiveChunker
from ..chunking.sentence import SentenceChunker
from ..chunking.token import TokenChunker
from ..chunking.verify import verify_chunks
from ..core.config import Settings
from ..core.logging import log, setup_logging
from ..recipes import RecipeNotFoundError, load_recipe
from ..tokenizer import get_tokenizer
from ..types import Chunk, RecursiveRules

app = typer.Typer(add_completion=False, help="textcarve: split text into token-budgeted chunks")


@app.callback()
def _init(
    ctx: typer.Context,
    log_format: Optional[str] = typer.Option(None, "--log-format", help="json|plain|auto"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="debug|info|warning|error"),
    config_file: Optional[str] = typer.Option(
        None, "--config", help="Config file (.textcarve.yaml auto-discovered)"
    ),
) -> None:
    try:
        settings = Settings.load_config(config_file)
    except Exception as e:
        typer.echo(f"❌ Config error: {e}", err=True)
        raise typer.Exit(1) from e
    setup_logging(log_format or settings.LOG_FORMAT, log_level or settings.LOG_LEVEL)
    log.debug("config.loaded", config_file=config_file or "auto-discovered")
    ctx.obj = settings


def _settings(ctx: typer.Context) -> Settings:
    """Settings loaded by the app callback (config file < env)."""
    return ctx.obj if isinstance(ctx.obj, Settings) else Settings.load_config()


def _pick(value, default):
    """CLI flag if given, else the configured value."""
    return default if value is None else value


def _parse_include_delim(value: Optional[str]) -> Optional[str]:
    if value is None or value.lower() in ("none", "drop", ""):
        return None
    return value


def _read_texts(paths: Sequence[Path]) -> List[str]:
    return [p.read_text(encoding="utf-8") for p in paths]


def _write_chunks(
    paths: Sequence[Path], results: Sequence[Sequence[Chunk]], out: Optional[Path]
) -> None:
    lines = [
        json.dumps({"source": str(path), "chunk_index": i, **chunk.to_dict()}, ensure_ascii=False)
        for path, chunks in zip(paths, results)
        for i, chunk in enumerate(chunks)
    ]
    if out is None:
        for line in lines:
            typer.echo(line)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")
    typer.echo(f"📄 Wrote {len(lines)} chunks to {out}", err=True)


def _print_stats(paths: Sequence[Path], results: Sequence[Sequence[Chunk]]) -> None:
    table = Table(title="Chunk statistics")
    table.add_column("Source")
    table.add_column("Chunks", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Median", justify="right")
    table.add_column("Max", justify="right")
    for path, chunks in zip(paths, results):
        counts = [c.token_count for c in chunks]
        table.add_row(
            str(path),
            str(len(chunks)),
            str(sum(counts)),
            str(min(counts)) if counts else "-",
            str(int(statistics.median(counts))) if counts else "-",
            str(max(counts)) if counts else "-",
        )
    Console(stderr=True).print(table)


def _run_chunker(
    chunker: BaseChunker,
    paths: Sequence[Path],
    out: Optional[Path],
    stats: bool,
    workers: int,
    progress: bool,
) -> None:
    results = chunker.chunk_batch(_read_texts(paths), show_progress=progress, workers=workers)
    log.info(
        "cli.chunked",
        chunker=type(chunker).__name__,
        docs=len(paths),
        chunks=sum(len(r) for r in results),
    )
    _write_chunks(paths, results, out)
    if stats:
        _print_stats(paths, results)


@app.command()
def version() -> None:
    from .. import __version__

    typer.echo(__version__)


@app.command()
def sentence(
    ctx: typer.Context,
    paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Text files to chunk"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Maximum tokens per chunk"),
    chunk_overlap: Optional[int] = typer.Option(None, "--chunk-overlap", help="Tokens shared between chunks"),
    min_sentences: Optional[int] = typer.Option(None, "--min-sentences", help="Minimum sentences per chunk"),
    min_chars: Optional[int] = typer.Option(
        None, "--min-chars", help="Minimum characters per sentence"
    ),
    delim: Optional[List[str]] = typer.Option(None, "--delim", help="Sentence delimiter (repeatable)"),
    include_delim: Optional[str] = typer.Option(None, "--include-delim", help="prev|next|none"),
    recipe: Optional[str] = typer.Option(None, "--recipe", help="Recipe name for delimiters"),
    language: Optional[str] = typer.Option(None, "--language", help="Recipe language"),
    tokenizer: Optional[str] = typer.Option(None, "--tokenizer", help="character|word|<tiktoken name>"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write ndjson here instead of stdout"),
    stats: bool = typer.Option(False, "--stats", help="Print a summary table to stderr"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Documents chunked in parallel"),
    progress: bool = typer.Option(False, "--progress", help="Show a progress bar on stderr"),
) -> None:
    """
    Chunk files into groups of whole sentences.

    Writes one JSON object per chunk (ndjson). Config precedence:
    config file < env vars < CLI flags.
    """
    settings = _settings(ctx)

    try:
        if recipe is not None:
            r = load_recipe(
                recipe, language or settings.RECIPE_LANGUAGE, recipe_dir=settings.RECIPE_DIR
            )
            delimiters: Optional[List[str]] = delim or r.delimiters
            policy = r.include_delim if include_delim is None else _parse_include_delim(include_delim)
        else:
            delimiters = delim or settings.SENTENCE_DELIMITERS
            policy = _parse_include_delim(
                include_delim if include_delim is not None else settings.INCLUDE_DELIM
            )
        chunker = SentenceChunker(
            tokenizer=get_tokenizer(tokenizer or settings.TOKENIZER),
            chunk_size=_pick(chunk_size, settings.CHUNK_SIZE),
            chunk_overlap=_pick(chunk_overlap, settings.CHUNK_OVERLAP),
            min_sentences_per_chunk=_pick(min_sentences, settings.MIN_SENTENCES_PER_CHUNK),
            min_characters_per_sentence=_pick(min_chars, settings.MIN_CHARACTERS_PER_SENTENCE),
            delim=delimiters,
            include_delim=policy,
        )
    except (ValueError, RecipeNotFoundError) as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(1) from e

    _run_chunker(
        chunker,
        paths,
        out,
        stats,
        workers or settings.BATCH_WORKERS,
        progress or settings.PROGRESS,
    )


@app.command()
def recursive(
    ctx: typer.Context,
    paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Text files to chunk"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Maximum tokens per chunk"),
    min_chars: Optional[int] = typer.Option(
        None, "--min-chars", help="Minimum characters per fragment at delimiter levels"
    ),
    recipe: Optional[str] = typer.Option(None, "--recipe", help="Recipe name for the rule hierarchy"),
    language: Optional[str] = typer.Option(None, "--language", help="Recipe language"),
    rules_file: Optional[Path] = typer.Option(
        None, "--rules", exists=True, dir_okay=False, help="JSON/YAML recipe file with recursive rules"
    ),
    tokenizer: Optional[str] = typer.Option(None, "--tokenizer", help="character|word|<tiktoken name>"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write ndjson here instead of stdout"),
    stats: bool = typer.Option(False, "--stats", help="Print a summary table to stderr"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Documents chunked in parallel"),
    progress: bool = typer.Option(False, "--progress", help="Show a progress bar on stderr"),
) -> None:
    """
    Chunk files by descending a rule hierarchy (paragraphs, sentences, words, tokens).
    """
    settings = _settings(ctx)

    try:
        rules: Optional[RecursiveRules] = None
        if rules_file is not None or recipe is not None:
            rules = RecursiveRules.from_recipe(
                recipe or "default",
                language or settings.RECIPE_LANGUAGE,
                str(rules_file) if rules_file else None,
                settings.RECIPE_DIR,
            )
        chunker = RecursiveChunker(
            tokenizer=get_tokenizer(tokenizer or settings.TOKENIZER),
            chunk_size=_pick(chunk_size, settings.CHUNK_SIZE),
            rules=rules,
            min_characters_per_chunk=_pick(min_chars, settings.MIN_CHARACTERS_PER_CHUNK),
        )
    except (ValueError, RecipeNotFoundError) as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(1) from e

    _run_chunker(
        chunker,
        paths,
        out,
        stats,
        workers or settings.BATCH_WORKERS,
        progress or settings.PROGRESS,
    )


@app.command()
def token(
    ctx: typer.Context,
    paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Text files to chunk"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Tokens per window"),
    chunk_overlap: Optional[int] = typer.Option(None, "--chunk-overlap", help="Tokens shared between windows"),
    tokenizer: Optional[str] = typer.Option(None, "--tokenizer", help="character|word|<tiktoken name>"),
    out: Optional[Path] = typer.Option(None, "--out", help="Write ndjson here instead of stdout"),
    stats: bool = typer.Option(False, "--stats", help="Print a summary table to stderr"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Documents chunked in parallel"),
    progress: bool = typer.Option(False, "--progress", help="Show a progress bar on stderr"),
) -> None:
    """Chunk files into fixed-size token windows."""
    settings = _settings(ctx)

    try:
        chunker = TokenChunker(
            tokenizer=get_tokenizer(tokenizer or settings.TOKENIZER),
            chunk_size=_pick(chunk_size, settings.CHUNK_SIZE),
            chunk_overlap=_pick(chunk_overlap, settings.CHUNK_OVERLAP),
        )
    except ValueError as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(1) from e

    _run_chunker(
        chunker,
        paths,
        out,
        stats,
        workers or settings.BATCH_WORKERS,
        progress or settings.PROGRESS,
    )


@app.command()
def verify(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source text file"),
    chunks_file: Path = typer.Option(..., "--chunks", exists=True, dir_okay=False, help="ndjson chunks for PATH"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Budget to check against"),
    tokenizer: Optional[str] = typer.Option(
        None, "--tokenizer", help="Recount tokens with this tokenizer instead of trusting token_count"
    ),
) -> None:
    """
    Check chunks against their source text: offsets, coverage, token budget.

    Prints the report as JSON; exits 1 when any problem is found.
    """
    text = path.read_text(encoding="utf-8")
    try:
        chunks = [
            Chunk.from_dict(json.loads(line))
            for line in chunks_file.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
    except ValueError as e:
        typer.echo(f"❌ Cannot read chunks: {e}", err=True)
        raise typer.Exit(1) from e

    report = verify_chunks(
        text,
        chunks,
        chunk_size=chunk_size,
        tokenizer=get_tokenizer(tokenizer) if tokenizer else None,
    )
    typer.echo(json.dumps(report, indent=2))

    if not report["ok"]:
        log.warning(
            "verify.failed",
            offset_issues=len(report["offsetIssues"]),
            breaches=report["breaches"]["count"],
        )
        raise typer.Exit(1)


@app.command("recipe")
def show_recipe(
    ctx: typer.Context,
    name: str = typer.Argument("default", help="Recipe name"),
    language: Optional[str] = typer.Option(None, "--language", help="Recipe language"),
    path: Optional[str] = typer.Option(None, "--path", help="Explicit recipe file"),
) -> None:
    """Print a resolved recipe as JSON."""
    settings = _settings(ctx)
    try:
        r = load_recipe(name, language or settings.RECIPE_LANGUAGE, path, settings.RECIPE_DIR)
    except (ValueError, RecipeNotFoundError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1) from e
    payload = r.model_dump()
    payload["recursive"] = r.recursive_rules().to_dict()
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    app()
