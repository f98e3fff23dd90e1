"""
SandboxSQL Backend Entry Point

Command line access to the same pipeline the API serves:
- ingest: build a dataset store from CSV/SQLite files
- ask:    answer a question against a store (in a sandbox copy)
- serve:  run the FastAPI app with uvicorn

Usage:
    python -m backend.main ingest sales.csv customers.csv --clean
    python -m backend.main ask uploads/sales.csv.sqlite "Total sales per region"
    python -m backend.main ask store.sqlite "Top customers" -c orders:customer -c orders:amount
    python -m backend.main serve --port 8000
"""

import argparse
import sys
from pathlib import Path
from typing import List

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from configs import ConfigurationError, validate_configuration

from backend.adapters import DatabaseError
from backend.agents import LLMAgentModel, LLMError
from backend.api.deps import setup_logging
from backend.datasets import resolve_dataset_path
from backend.ingestion import IngestionError, UploadedFile, ingest_files
from backend.models import TableSnapshot
from backend.orchestrator import AskResult, MemoryQueryLogSink, answer_question

console = Console()

MAX_DISPLAY_ROWS = 20


# ============================================================
# RENDERING
# ============================================================

def render_rows(rows: List[dict], title: str = "Result") -> Table:
    table = Table(title=title, box=box.ROUNDED, show_lines=False)
    columns = list(rows[0].keys()) if rows else []
    for col in columns:
        table.add_column(str(col), style="cyan")
    for row in rows[:MAX_DISPLAY_ROWS]:
        table.add_row(*["NULL" if row[c] is None else str(row[c]) for c in columns])
    if len(rows) > MAX_DISPLAY_ROWS:
        table.caption = f"{len(rows) - MAX_DISPLAY_ROWS} more row(s) not shown"
    return table


def render_database_state(state: dict) -> Table:
    table = Table(title="Tables", box=box.SIMPLE_HEAVY)
    table.add_column("Table", style="bold cyan")
    table.add_column("Rows", justify="right")
    table.add_column("Sample", style="dim")
    for name, snapshot in state.items():
        snapshot = snapshot if isinstance(snapshot, TableSnapshot) else TableSnapshot(**snapshot)
        sample = str(snapshot.rows[0]) if snapshot.rows else "-"
        table.add_row(name, str(snapshot.total), sample[:80])
    return table


def render_answer(result: AskResult, verbose: bool = False) -> None:
    if verbose:
        console.print(Panel("\n".join(result.logs), title="Run log", border_style="dim"))

    if result.sql:
        console.print(Panel(Syntax(result.sql, "sql", word_wrap=True), title="SQL", border_style="blue"))

    if result.success:
        console.print(render_rows(result.answer or []))
        if result.query_log:
            console.print(f"[dim]Saved as:[/dim] [bold]{result.query_log.title}[/bold]")
    else:
        console.print(Panel(
            f"[bold red]{result.error}[/bold red]\n\n{result.feedback or ''}",
            title=f"Failed after {result.iterations} attempt(s)",
            border_style="red",
        ))


# ============================================================
# COMMANDS
# ============================================================

def cmd_ingest(args) -> int:
    uploads = [UploadedFile(path=p, original_name=Path(p).name) for p in args.files]
    try:
        result = ingest_files(LLMAgentModel(), uploads, clean=args.clean)
    except IngestionError as e:
        console.print(f"[bold red]Ingestion failed:[/bold red] {e}")
        return 1

    console.print(f"[green]✓[/green] Dataset store: [bold]{result.path}[/bold]")
    for skipped in result.skipped:
        console.print(f"[yellow]Skipped[/yellow] {skipped}")
    console.print(render_database_state(result.snapshot.database_state))
    return 0


def cmd_ask(args) -> int:
    try:
        db_path = resolve_dataset_path(args.db, allow_any_path=True)
        result = answer_question(
            LLMAgentModel(),
            args.question,
            db_path=db_path,
            restricted_columns=args.columns or [],
            sink=MemoryQueryLogSink(),
        )
    except (DatabaseError, LLMError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1

    if result.status == "state":
        console.print(render_database_state(result.database_state))
        return 0

    render_answer(result, verbose=args.verbose)
    return 0 if result.success else 2


def cmd_serve(args) -> int:
    import uvicorn
    uvicorn.run("backend.api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv=None) -> int:
    """Main entry point for CLI usage."""
    parser = argparse.ArgumentParser(
        description="SandboxSQL - sandboxed NL→SQL over uploaded datasets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m backend.main ingest sales.csv
  python -m backend.main ask sales.csv "How many orders per region?"
  python -m backend.main ask store.sqlite "Top customers" -c orders:customer
        """
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Build a dataset store from files")
    ingest.add_argument("files", nargs="+", help="CSV files, or a single SQLite file")
    ingest.add_argument("--clean", action="store_true", help="Apply model-proposed cleanup")
    ingest.set_defaults(func=cmd_ingest)

    ask = sub.add_parser("ask", help="Answer a question against a dataset store")
    ask.add_argument("db", help="Dataset store path (a .csv path maps to its .csv.sqlite store)")
    ask.add_argument("question", nargs="?", default=None, help="Question; omit to show tables")
    ask.add_argument("-c", "--column", dest="columns", action="append",
                     help="Required output column as table:column (repeatable)")
    ask.add_argument("--verbose", "-v", action="store_true", help="Show the run log")
    ask.set_defaults(func=cmd_ask)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "ask" and args.question:
        try:
            validate_configuration()
        except ConfigurationError as e:
            console.print(f"[bold red]{e}[/bold red]")
            return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
