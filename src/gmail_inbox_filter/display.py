"""Rich-based display functions for Gmail Inbox Filter."""

from collections import Counter

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from .models import (
    CATEGORY_ACTIONS,
    NEVER_ARCHIVE,
    Category,
    Checkpoint,
    ClassificationResult,
    PhaseReport,
    RunReport,
)
from .read_archiver import ArchivePlan
from .synthesizer import RuleIssue

console = Console()

_CATEGORY_COLORS = {
    Category.VIP: "bold green",
    Category.PROTECTED: "green",
    Category.NEWSLETTER: "yellow",
    Category.PROMOTIONAL: "yellow",
    Category.AUTOMATED: "red",
    Category.SOCIAL: "blue",
    Category.FORUMS: "blue",
    Category.RECEIPT: "green",
    Category.CONFIRMATION: "cyan",
    Category.UNKNOWN: "dim",
}

TOP_SENDERS_LIMIT = 10


def _action_text(category: Category) -> str:
    action = CATEGORY_ACTIONS.get(category)
    if action is None:
        return "[dim]none[/dim]"
    if action.archive and category not in NEVER_ARCHIVE:
        return f"label {action.label}, archive"
    return f"label {action.label}"


def display_classification(result: ClassificationResult) -> None:
    """Show per-category counts, the planned action and the most frequent senders."""
    table = Table(title="Classification Summary")
    table.add_column("Category")
    table.add_column("Messages", justify="right")
    table.add_column("Action")

    for category in Category:
        count = result.count(category)
        color = _CATEGORY_COLORS[category]
        table.add_row(f"[{color}]{category.value}[/{color}]", str(count), _action_text(category))

    console.print(table)

    archived = sum(
        result.count(c)
        for c, a in CATEGORY_ACTIONS.items()
        if a.archive and c not in NEVER_ARCHIVE
    )
    share = (archived / result.total * 100) if result.total else 0.0
    console.print(
        Panel(
            f"Total messages: {result.total}  |  "
            f"To be archived: {archived} ({share:.1f}%)  |  "
            f"VIP kept: {result.count(Category.VIP)}",
            title="Summary",
        )
    )

    frequency = result.sender_frequency()
    if frequency:
        senders = Table(title="Most Frequent Senders")
        senders.add_column("#", justify="right", style="dim")
        senders.add_column("Email")
        senders.add_column("Count", justify="right")
        for idx, (email, count) in enumerate(frequency.most_common(TOP_SENDERS_LIMIT), start=1):
            senders.add_row(str(idx), email, str(count))
        console.print(senders)


def confirm_apply(result: ClassificationResult) -> bool:
    """Show the classification and ask whether to apply labels and filters."""
    display_classification(result)
    return Confirm.ask("[bold yellow]Apply filtering rules?[/bold yellow]", console=console, default=False)


def _phase_row(table: Table, report: PhaseReport) -> None:
    color = "green" if not report.failures else "yellow"
    table.add_row(
        report.phase,
        str(report.attempted),
        f"[{color}]{report.succeeded}[/{color}]",
        str(report.skipped),
        str(len(report.failures)),
    )


def display_run_report(report: RunReport) -> None:
    """Display attempted vs succeeded per phase, with failure reasons."""
    table = Table(title="Run Report")
    table.add_column("Phase")
    table.add_column("Attempted", justify="right")
    table.add_column("Succeeded", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    for phase in report.phases():
        _phase_row(table, phase)
    console.print(table)

    failures = [(p.phase, f) for p in report.phases() for f in p.failures]
    if failures:
        lines = [f"  - [{phase}] {f.item}: {f.reason}" for phase, f in failures]
        console.print(Panel("\n".join(lines), title="Failures", border_style="yellow"))

    if not report.confirmed:
        console.print("[dim]No changes were made. Checkpoint not updated.[/dim]")
    elif report.checkpoint is not None:
        display_checkpoint(report.checkpoint)

    if report.has_more:
        console.print("[yellow]More messages are waiting. Run again to continue.[/yellow]")


def display_checkpoint(checkpoint: Checkpoint) -> None:
    lines = [
        f"[bold]Last processed date:[/bold] {checkpoint.last_processed_date or 'never'}",
        f"[bold]Resume page token:[/bold] {checkpoint.last_page_token or '-'}",
        f"[bold]Total processed:[/bold] {checkpoint.total_processed}",
        f"[bold]Last run:[/bold] {checkpoint.last_run_timestamp or 'never'}",
    ]
    console.print(Panel("\n".join(lines), title="Checkpoint"))


def display_rule_issues(issues: list[RuleIssue]) -> None:
    if not issues:
        console.print("[green]No problems found in existing filters.[/green]")
        return

    table = Table(title="Filter Audit")
    table.add_column("Filter id", style="dim")
    table.add_column("From")
    table.add_column("Problem")
    table.add_column("Detail")
    for issue in issues:
        table.add_row(issue.rule.rule_id, issue.rule.sender, issue.kind, issue.detail)
    console.print(table)


def confirm_continue() -> bool:
    return Confirm.ask(
        "[bold yellow]More emails available. Continue processing?[/bold yellow]",
        console=console,
        default=False,
    )


def display_archive_plan(plan: ArchivePlan) -> None:
    """Show what archive-read would archive and what it keeps, with reasons."""
    console.print(
        Panel(
            f"Read emails in inbox: {len(plan.archivable) + plan.kept_count}  |  "
            f"To be archived: {len(plan.archivable)}  |  "
            f"Kept: {plan.kept_count}",
            title="Read Email Analysis",
        )
    )

    if plan.kept:
        kept = Table(title="Kept in Inbox")
        kept.add_column("Reason")
        kept.add_column("Messages", justify="right")
        for reason, messages in sorted(plan.kept.items()):
            kept.add_row(reason, str(len(messages)))
        console.print(kept)

    if plan.archivable:
        frequency = Counter(m.sender_email for m in plan.archivable if m.sender_email)
        senders = Table(title="Top Senders to Archive")
        senders.add_column("Email")
        senders.add_column("Count", justify="right")
        for email, count in frequency.most_common(TOP_SENDERS_LIMIT):
            senders.add_row(email, str(count))
        console.print(senders)

    if plan.has_more:
        console.print("[dim]More read mail is waiting beyond this batch.[/dim]")


def confirm_archive(plan: ArchivePlan) -> bool:
    display_archive_plan(plan)
    return Confirm.ask(
        f"[bold yellow]Archive {len(plan.archivable)} read emails?[/bold yellow]",
        console=console,
        default=False,
    )
