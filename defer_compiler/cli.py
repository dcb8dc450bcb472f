"""CLI for the deferred block compiler."""

import logging
from pathlib import Path
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .dsl.compiler import DeferCompiler
from .core.types import (
    CompileResult,
    DeferredBlock,
    DeferredBlockTriggers,
    DiagnosticLevel,
    TimerDeferredTrigger,
)
from .triggers.registry import TRIGGER_REGISTRY

app = typer.Typer(
    name="defer-compiler",
    help="Deferred block compiler - parse and validate @defer template blocks",
)
console = Console()


def configure_logging(verbose: bool) -> None:
    """Route log records through rich; debug level when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def format_time(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:g}ms"


def format_triggers(triggers: DeferredBlockTriggers) -> str:
    parts = []
    for name, trigger in triggers.items():
        if name == "when":
            parts.append(f"when {trigger.value.source}")
        elif isinstance(trigger, TimerDeferredTrigger):
            parts.append(f"timer({format_time(trigger.delay)})")
        elif getattr(trigger, "reference", None):
            parts.append(f"{name}({trigger.reference})")
        else:
            parts.append(name)
    return ", ".join(parts) or "-"


def describe_connected(block: DeferredBlock) -> str:
    parts = []
    if block.placeholder is not None:
        parts.append(f"placeholder (minimum {format_time(block.placeholder.minimum_time)})")
    if block.loading is not None:
        parts.append(
            f"loading (after {format_time(block.loading.after_time)}, "
            f"minimum {format_time(block.loading.minimum_time)})"
        )
    if block.error is not None:
        parts.append("error")
    return "\n".join(parts) or "-"


def print_result(result: CompileResult) -> None:
    blocks = result.get_deferred_blocks()

    table = Table(title="Deferred Blocks")
    table.add_column("Location", style="cyan")
    table.add_column("Triggers", style="green")
    table.add_column("Prefetch", style="yellow")
    table.add_column("Connected Blocks", style="white")

    for block in blocks:
        table.add_row(
            escape(str(block.start_source_span.start)),
            escape(format_triggers(block.triggers)),
            escape(format_triggers(block.prefetch_triggers)),
            describe_connected(block),
        )

    console.print(table)

    if not result.errors:
        console.print(Panel("[green]NO DIAGNOSTICS[/green]", title="Result"))
        return

    console.print(Panel(f"[red]{len(result.errors)} DIAGNOSTIC(S)[/red]", title="Result"))
    for diagnostic in result.errors:
        style = "red" if diagnostic.level == DiagnosticLevel.ERROR else "yellow"
        console.print(
            f"  - [{style}]{diagnostic.level.value}[/{style}] "
            f"{escape(str(diagnostic.span.start))}: {escape(diagnostic.message)}",
            highlight=False,
        )


@app.command("compile")
def compile_command(
    template_file: Path = typer.Argument(..., help="Path to template file"),
    out: Path = typer.Option(None, "--out", "-o", help="Write the compiled nodes as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Compile a template and report its @defer blocks."""
    configure_logging(verbose)

    if not template_file.exists():
        console.print(f"[red]Error: File {template_file} not found.[/red]")
        raise typer.Exit(1)

    compiler = DeferCompiler()
    result = compiler.compile_file(template_file)

    if out:
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w") as f:
            f.write(result.model_dump_json(indent=2))
        console.print(f"[green]Compiled to {out}[/green]")

    print_result(result)

    if result.has_errors():
        raise typer.Exit(1)


@app.command("triggers")
def triggers_command():
    """List the registered `on` trigger types."""
    table = Table(title="On Triggers")
    table.add_column("Name", style="cyan")
    table.add_column("Factory", style="white")

    for name, factory in TRIGGER_REGISTRY.items():
        table.add_row(name, factory.__name__)

    console.print(table)


if __name__ == "__main__":
    app()
