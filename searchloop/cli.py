"""Command-line interface for the search engine."""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer

from .config.factory import create_adapters, create_engine
from .config.loader import list_profiles, load_config
from .engine.citations import CitationExtractor
from .engine.models import DocumentContext, EngineEvent
from .errors import ConfigError
from .settings import SEARCHLOOP_PROFILE

app = typer.Typer(
    name="searchloop",
    help="Iterative multi-source search with attributed citations.",
    add_completion=False,
)


def _print_event(event: EngineEvent) -> None:
    details = ", ".join(f"{k}={v}" for k, v in event.data.items())
    typer.echo(f"  [{event.iteration}] {event.type}: {details}", err=True)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Search query")],
    sources: Annotated[
        list[str],
        typer.Option(
            "--source", "-s",
            help="Sources to use by tag or kind (can specify multiple; default: all in profile)",
        ),
    ] = None,
    iterations: Annotated[
        int,
        typer.Option("--iterations", "-i", help="Maximum search iterations"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Results per source and query"),
    ] = None,
    profile: Annotated[
        str,
        typer.Option("--profile", "-p", help="Configuration profile"),
    ] = SEARCHLOOP_PROFILE,
    documents: Annotated[
        Path,
        typer.Option("--documents", "-d", help="YAML/JSON documents file to search locally"),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: text or json"),
    ] = "text",
    show_events: Annotated[
        bool,
        typer.Option("--events", "-e", help="Print progress events to stderr"),
    ] = False,
):
    """
    Search all configured sources and print ranked, cited results.

    Examples:

        # Search with the default profile
        searchloop search "Mietpreisbremse Verlängerung"

        # Only the web source, at most two iterations
        searchloop search "Wärmepumpen Förderung 2025" -s web -i 2

        # Search a local documents file with the offline test profile
        searchloop search "Klimaschutz" -p test -d docs.yaml --format json
    """
    if output_format not in ("text", "json"):
        typer.echo("Error: Format must be one of: text, json", err=True)
        raise typer.Exit(1)

    try:
        asyncio.run(_search_async(
            query=query,
            sources=sources,
            iterations=iterations,
            limit=limit,
            profile_name=profile,
            documents=documents,
            output_format=output_format,
            show_events=show_events,
        ))
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


async def _search_async(
    query: str,
    sources: list[str] | None,
    iterations: int | None,
    limit: int | None,
    profile_name: str,
    documents: Path | None,
    output_format: str,
    show_events: bool,
):
    """Async implementation of search."""
    from .sources.documents import DocumentIndexAdapter, KeywordDocumentIndex, load_documents

    profile = load_config(profile_name)
    adapters = create_adapters(profile, source_selection=sources)
    if documents is not None:
        index = KeywordDocumentIndex(load_documents(documents))
        adapters.insert(0, DocumentIndexAdapter(index))

    if not adapters:
        typer.echo("Error: No sources selected. Check the profile or --source options.", err=True)
        raise typer.Exit(1)

    engine = create_engine(profile, adapters=adapters, listener=_print_event if show_events else None)
    async with engine:
        result = await engine.run(query, max_iterations=iterations, per_iteration_limit=limit)

    if output_format == "json":
        typer.echo(result.model_dump_json(indent=2))
        return

    if result.no_data_found:
        typer.echo(f"No results: {result.message}")
        for failure in result.metadata.get("adapter_failures", []):
            typer.echo(f"  {failure}")
        return

    typer.echo(
        f"Found {len(result.results)} results in {result.iterations_used} iteration(s) "
        f"for '{result.metadata.get('final_query', query)}':\n"
    )
    for citation, r in zip(result.citations, result.results):
        typer.echo(f"[{citation.index}] {r.title}  ({r.source_tag}, score {r.score:.2f})")
        if r.url:
            typer.echo(f"    {r.url}")
        typer.echo(f"    {citation.cited_text[:200]}")
        typer.echo()

    if result.metadata.get("errors"):
        typer.echo("Errors:", err=True)
        for error in result.metadata["errors"]:
            typer.echo(f"  {error}", err=True)


@app.command()
def cite(
    text_file: Annotated[Path, typer.Argument(help="File with the annotated answer text")],
    context: Annotated[
        Path,
        typer.Option("--context", "-c", help="JSON file with the numbered document context"),
    ],
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: text or json"),
    ] = "text",
):
    """
    Extract citations from an answer written against a document context.

    The context file holds a JSON list of {title, content, url?, metadata?}
    entries; [n] in the text refers to entry n.

    Examples:

        searchloop cite answer.txt --context context.json
    """
    if not text_file.exists() or not context.exists():
        typer.echo("Error: Text file and context file must exist", err=True)
        raise typer.Exit(1)

    text = text_file.read_text(encoding="utf-8")
    raw_context = json.loads(context.read_text(encoding="utf-8"))
    documents = [DocumentContext.model_validate(entry) for entry in raw_context]

    cited = CitationExtractor().process_answer(text, documents)

    if output_format == "json":
        typer.echo(cited.model_dump_json(indent=2))
        return

    typer.echo(f"{len(cited.citations)} citations:\n")
    for c in cited.citations:
        typer.echo(f"[{c.index}] {c.document_title}")
        typer.echo(f"    \"{c.cited_text}\"")
    typer.echo(f"\nAnswer:\n{cited.answer}")


@app.command()
def profiles():
    """List available configuration profiles."""
    try:
        available = list_profiles()
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("Available profiles:\n")
    for name, profile in available.items():
        sources = [s.source_tag or s.kind for s in profile.sources if s.enabled]
        typer.echo(f"  {name}")
        typer.echo(f"    Sources: {', '.join(sources) or '(none)'}")
        typer.echo(f"    Oracle: {profile.oracle.backend}")
        typer.echo(f"    Max iterations: {profile.orchestrator.max_iterations}")
        typer.echo()


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
