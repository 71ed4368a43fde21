"""Rich-based display functions for Gmail Gatekeeper."""

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from .models import ScreeningResult, SweepResult, SyncOutcome, ThreadSummary, TriageResult

console = Console()

_DECISION_COLORS = {"approved": "green", "denied": "red", "unscreened": "yellow"}


def display_screening_result(result: ScreeningResult) -> None:
    color = _DECISION_COLORS.get(result.decision.value, "white")
    lines = [
        f"[bold]Sender:[/bold] {result.target}",
        f"[bold]Decision:[/bold] [{color}]{result.decision.value}[/{color}]",
        f"[bold]Messages relabeled:[/bold] {len(result.moved_ids)}",
    ]
    if result.filter_id:
        lines.append(f"[bold]Filter:[/bold] [dim]{result.filter_id}[/dim]")
    console.print(Panel("\n".join(lines), title="Screening"))


def display_triage_result(result: TriageResult) -> None:
    console.print(
        f"[green]{len(result.moved_ids)} message(s) moved to {result.state.value}.[/green]"
    )
    if result.failed_ids:
        console.print(f"[yellow]Failed messages: {', '.join(result.failed_ids)}[/yellow]")
    if result.failed_threads:
        console.print(f"[yellow]Missing threads: {', '.join(result.failed_threads)}[/yellow]")


def display_senders(allowed: list[str], screened_out: list[str]) -> None:
    table = Table(title="Sender Decisions")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Sender")
    table.add_column("Decision")

    rows = [(s, "approved") for s in allowed] + [(s, "denied") for s in screened_out]
    for idx, (sender, decision) in enumerate(rows, start=1):
        color = _DECISION_COLORS[decision]
        table.add_row(str(idx), sender, f"[{color}]{decision}[/{color}]")

    console.print(table)
    console.print(
        Panel(
            f"Allowed: {len(allowed)}  |  Screened out: {len(screened_out)}",
            title="Summary",
        )
    )


def display_label_counts(counts: dict[str, int]) -> None:
    table = Table(title="Threads per Label")
    table.add_column("Label")
    table.add_column("Threads", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)


def display_threads(label_name: str, threads: list[ThreadSummary]) -> None:
    if not threads:
        console.print(f"[dim]No threads labeled {label_name}.[/dim]")
        return

    table = Table(title=label_name)
    table.add_column("Thread", style="dim")
    table.add_column("From")
    table.add_column("Subject")
    table.add_column("Msgs", justify="right")
    for thread in threads:
        table.add_row(
            thread.thread_id,
            thread.sender_email or thread.sender,
            thread.subject,
            str(thread.message_count),
        )
    console.print(table)


def display_sweep_result(result: SweepResult) -> None:
    state = "[green]enabled[/green]" if result.enabled else "[yellow]disabled[/yellow]"
    console.print(f"Screener mode {state}.")
    if result.moved_ids:
        console.print(f"  {len(result.moved_ids)} message(s) moved.")


def display_sync_outcome(outcome: SyncOutcome) -> None:
    if outcome.action == "failed":
        console.print(f"[red]Cleanup sync failed: {outcome.error}[/red]")
        return
    console.print(f"[bold]Cleanup sync:[/bold] {outcome.action} (cursor {outcome.cursor})")
    if outcome.cleared_ids:
        console.print(f"  Triage label cleared on {len(outcome.cleared_ids)} message(s).")


def confirm_sweep() -> bool:
    """Prompt before moving existing Inbox mail into the Screener."""
    return Confirm.ask(
        "[bold]Move existing Inbox mail from unknown senders into the Screener?[/bold]",
        console=console,
    )
