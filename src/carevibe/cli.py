"""
CareVibe CLI

Command-line interface for exercising the chat pipeline locally.

Usage:
    carevibe resolve-date "a month ago"   - Resolve a date phrase
    carevibe intent "my bmi yesterday"    - Detect the intent of a message
    carevibe classify "how can I sleep"   - Show the response policy
    carevibe chat [message]               - Chat (interactive without a message)
    carevibe validate-data metrics.json   - Check stored documents
    carevibe test-llm                     - Probe the Groq API
"""

import asyncio
import json
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from carevibe import __version__
from carevibe.core.config import get_config_source, settings
from carevibe.services.chat.orchestrator import ChatOrchestrator
from carevibe.services.data_validation import rolling_averages, validate_documents
from carevibe.services.date_resolver import DateResolver
from carevibe.services.intent.classifier import IntentClassifier
from carevibe.services.llm import LLMServiceError, llm_service
from carevibe.services.metrics_store import InMemoryMetricsStore
from carevibe.services.response_policy import ResponsePolicyEngine, format_prompt_instructions

# Initialize Typer app and Rich console
app = typer.Typer(
    name="carevibe",
    help="CareVibe - wellness chat pipeline CLI",
    add_completion=False
)
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================

def parse_reference(reference: Optional[str]) -> Optional[date]:
    """Parse a --reference option, exiting on a malformed date."""
    if not reference:
        return None
    try:
        return date.fromisoformat(reference)
    except ValueError:
        console.print(f"[red]Invalid reference date: {reference} (expected YYYY-MM-DD)[/red]")
        raise typer.Exit(1)


def load_store(metrics_file: Optional[str]) -> Optional[InMemoryMetricsStore]:
    path = metrics_file or settings.data.metrics_file
    if not path:
        return None
    if not Path(path).exists():
        console.print(f"[red]Metrics file not found: {path}[/red]")
        raise typer.Exit(1)
    return InMemoryMetricsStore.from_json_file(path)


def load_documents(path: str) -> List[dict]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("metrics", [])
    return data


# =============================================================================
# Pipeline Commands
# =============================================================================

@app.command("resolve-date")
def resolve_date(
    text: str = typer.Argument(..., help="Message containing a date phrase"),
    reference: Optional[str] = typer.Option(None, "--reference", "-r", help="Reference date (YYYY-MM-DD)"),
    no_model: bool = typer.Option(False, "--no-model", help="Deterministic rules only"),
):
    """Resolve a natural-language date or date range."""
    resolver = DateResolver(use_model=not no_model)
    result = asyncio.run(resolver.resolve(text, reference_date=parse_reference(reference)))

    if result is None:
        console.print("[yellow]No date found[/yellow]")
        raise typer.Exit(1)

    table = Table(title="Date Resolution")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Kind", result.kind)
    table.add_row("Start", result.start.isoformat())
    table.add_row("End", result.end.isoformat())
    table.add_row("Strategy", result.strategy)
    table.add_row("Confidence", f"{result.confidence:.2f}")
    console.print(table)


@app.command()
def intent(
    text: str = typer.Argument(..., help="Message to classify"),
    reference: Optional[str] = typer.Option(None, "--reference", "-r", help="Reference date (YYYY-MM-DD)"),
):
    """Detect the intent of a message."""
    ref = parse_reference(reference)
    classifier = IntentClassifier(today=(lambda: ref) if ref else None)
    detected = asyncio.run(classifier.detect(text))

    if detected is None:
        console.print("[dim]No specific intent (general conversation)[/dim]")
        return
    console.print_json(json.dumps(detected.to_dict()))


@app.command()
def classify(
    text: str = typer.Argument(..., help="Message to classify"),
    verbosity: Optional[str] = typer.Option(None, "--verbosity", "-v", help="brief or detailed"),
):
    """Show the response policy derived for a message."""
    engine = ResponsePolicyEngine()
    policy = asyncio.run(engine.derive_policy(text, len(text), user_preference=verbosity))

    table = Table(title=f"Response Policy: {policy.classification}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Tone", policy.tone)
    table.add_row("Max chars", str(policy.max_chars))
    table.add_row("Max sentences", str(policy.max_sentences))
    table.add_row("Bullets", "Yes" if policy.allow_bullets else "No")
    table.add_row("Key takeaway", "Yes" if policy.include_key_takeaway else "No")
    console.print(table)
    console.print(f"\n[dim]{format_prompt_instructions(policy)}[/dim]")


@app.command()
def chat(
    message: Optional[str] = typer.Argument(None, help="Single message (interactive when omitted)"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User id"),
    metrics_file: Optional[str] = typer.Option(None, "--metrics", "-m", help="JSON file of health metric documents"),
    verbosity: Optional[str] = typer.Option(None, "--verbosity", "-v", help="brief or detailed"),
):
    """Chat with CareVibe."""
    orchestrator = ChatOrchestrator(metrics_store=load_store(metrics_file))
    user_id = user or settings.data.demo_user_id

    async def respond(text: str) -> None:
        with console.status("[yellow]Thinking...[/yellow]", spinner="dots"):
            response = await orchestrator.chat(text, user_id=user_id, verbosity=verbosity)

        console.print("[bold green]CareVibe > [/bold green]")
        console.print(Markdown(response["reply"]))
        if response.get("warning"):
            console.print(f"[dim]Warning: {response['warning']} (status {response.get('status')})[/dim]")
        if response.get("intent"):
            console.print(f"[dim]Intent: {response['intent']['type']}[/dim]")

    async def session() -> None:
        # One event loop for the whole conversation; the LLM client is bound to it
        try:
            if message:
                await respond(message)
            else:
                await interactive()
        finally:
            await llm_service.close()

    async def interactive() -> None:
        console.print("[bold green]CareVibe Terminal Interface[/bold green]")
        console.print("[dim]Type 'exit' or 'quit' to end the session[/dim]\n")

        while True:
            try:
                user_input = console.input("[bold blue]You > [/bold blue]")

                if user_input.lower() in ("exit", "quit", "q"):
                    console.print("[dim]Goodbye![/dim]")
                    break

                if not user_input.strip():
                    continue

                await respond(user_input)
                console.print()  # Blank line

            except KeyboardInterrupt:
                console.print("\n[dim]Use 'exit' to quit[/dim]")
            except EOFError:
                break

    asyncio.run(session())


# =============================================================================
# Data and Connectivity Commands
# =============================================================================

@app.command("validate-data")
def validate_data(
    path: str = typer.Argument(..., help="JSON file of health metric documents"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User for derived metrics"),
):
    """Validate health metric documents and compute 7-day averages."""
    if not Path(path).exists():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)

    documents = load_documents(path)
    report = validate_documents(documents)

    console.print(f"\n[bold]Health metric documents:[/bold] {report.total}")
    if report.ok:
        console.print("[green]All health metric documents passed validation[/green]")
    else:
        table = Table(title=f"{len(report.issues)} issues")
        table.add_column("Document", justify="right")
        table.add_column("Field", style="cyan")
        table.add_column("Problem")
        for issue in report.issues:
            table.add_row(str(issue.index), issue.field, issue.message)
        console.print(table)

    user_id = user or settings.data.demo_user_id
    averages = rolling_averages(documents, user_id, today=datetime.now(settings.user_timezone).date())
    steps, sleep, stress = averages["stepCount"], averages["sleepDurationHr"], averages["stressLevel"]
    if all(v is None for v in averages.values()):
        console.print("\n[yellow]No recent data found for derived metrics[/yellow]")
    else:
        console.print("\n[bold]7-day rolling averages[/bold]")
        console.print(f"  Steps: {f'{steps:.0f}' if steps is not None else 'N/A'} steps/day")
        console.print(f"  Sleep: {f'{sleep:.1f}' if sleep is not None else 'N/A'} hours/night")
        console.print(f"  Stress: {f'{stress:.0f}' if stress is not None else 'N/A'}/100")

    if not report.ok:
        raise typer.Exit(1)


@app.command("test-llm")
def test_llm(
    model: Optional[List[str]] = typer.Option(None, "--model", help="Model(s) to try, in order"),
):
    """Check connectivity to the Groq API through the model fallback loop."""
    if not llm_service.configured:
        console.print("[red]GROQ_API_KEY is not set. Add it to .env before testing.[/red]")
        raise typer.Exit(1)

    console.print(f"[cyan]Base URL:[/cyan] {settings.llm.base_url} [dim]({get_config_source('GROQ_BASE_URL')})[/dim]")
    try:
        result = asyncio.run(llm_service.ping(model or None))
    except LLMServiceError as e:
        console.print(f"[red]Groq request failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Connected using {result['model']}[/green]")
    console.print(f"Response: {result['content']}")


@app.command()
def version():
    """Show CareVibe version."""
    console.print(f"[bold]CareVibe {__version__}[/bold]")


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
