"""CLI entry point for Gmail Inbox Filter."""

from __future__ import annotations

import logging

import click
from google.auth.exceptions import GoogleAuthError
from rich.logging import RichHandler

from . import constants
from .auth import check_auth, get_gmail_service
from .checkpoint import CheckpointStore
from .config import ProtectedConfiguration
from .display import (
    confirm_apply,
    confirm_archive,
    confirm_continue,
    console,
    display_checkpoint,
    display_archive_plan,
    display_classification,
    display_rule_issues,
    display_run_report,
)
from .errors import FilterError
from .export import export_report
from .gateway import GmailGateway, ProviderGateway
from .labels import LabelRegistry
from .models import ClassificationResult
from .orchestrator import FilterRun
from .rate_limiter import RateLimiter
from .read_archiver import ReadMailArchiver
from .retry import RetryPolicy, throttled
from .synthesizer import RuleSynthesizer, audit_rules

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    """Route log records through Rich, plus an optional plain log file."""
    handlers: list[logging.Handler] = [
        RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
    ]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)
    logging.getLogger("googleapiclient.discovery").setLevel(logging.WARNING)


def _gateway() -> ProviderGateway:
    try:
        return GmailGateway(get_gmail_service())
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    except GoogleAuthError as e:
        raise click.ClickException(f"Authorization failed: {e}") from e


def _checkpoint_store() -> CheckpointStore:
    return CheckpointStore(db_path=constants.CHECKPOINT_DB_PATH)


@click.group()
@click.version_option(version="0.1.0", prog_name="gmail-inbox-filter")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.option("--log-file", default=None, help="Also write logs to this file.")
def cli(verbose: bool, log_file: str | None) -> None:
    """Gmail Inbox Filter - classify mail, archive the noise, and create Gmail filters."""
    setup_logging(verbose, log_file)


@cli.command()
@click.option(
    "-m",
    "--max-messages",
    default=constants.DEFAULT_MAX_MESSAGES,
    type=int,
    show_default=True,
    help="Maximum messages to process this run.",
)
@click.option("-q", "--query", default=None, help="Extra Gmail search query (e.g. 'in:inbox').")
@click.option("-y", "--yes", is_flag=True, help="Apply without asking for confirmation.")
@click.option("--dry-run", is_flag=True, help="Classify and summarize only; change nothing.")
@click.option("--no-rules", is_flag=True, help="Do not create filters for frequent senders.")
@click.option("--no-service-rules", is_flag=True, help="Do not create the named-service filters.")
@click.option(
    "--continue",
    "keep_going",
    is_flag=True,
    help="Keep processing batches while more messages are waiting.",
)
@click.option("--report", "report_path", default=None, help="Write the last batch's run report to this file.")
@click.option(
    "--report-format",
    type=click.Choice(["json", "csv"]),
    default="json",
    help="Run report format.",
)
def run(
    max_messages: int,
    query: str | None,
    yes: bool,
    dry_run: bool,
    no_rules: bool,
    no_service_rules: bool,
    keep_going: bool,
    report_path: str | None,
    report_format: str,
) -> None:
    """Classify new mail, label and archive it, and create filters."""
    if max_messages <= 0:
        raise click.BadParameter("must be positive", param_hint="--max-messages")

    config = ProtectedConfiguration.from_env()
    console.print(
        f"[dim]{len(config.vip_senders)} VIP senders, "
        f"{len(config.protected_senders)} protected senders, "
        f"{len(config.protected_domains)} protected domains, "
        f"{len(config.protected_keywords)} protected keywords[/dim]"
    )

    def confirm(result: ClassificationResult) -> bool:
        if dry_run:
            display_classification(result)
            console.print("\n[yellow][DRY RUN] Nothing was changed.[/yellow]")
            return False
        if yes:
            display_classification(result)
            return True
        return confirm_apply(result)

    gateway = _gateway()
    with _checkpoint_store() as store:
        checkpoint = store.load()
        if checkpoint.last_processed_date:
            console.print(
                f"[dim]Last processed {checkpoint.last_processed_date}, "
                f"{checkpoint.total_processed} messages so far[/dim]"
            )
        filter_run = FilterRun(
            gateway,
            store,
            config,
            max_messages=max_messages,
            base_query=query,
            create_rules=not no_rules,
            service_rules=not no_service_rules,
        )
        batch = 1
        while True:
            try:
                report = filter_run.run(confirm=confirm)
            except (FilterError, GoogleAuthError) as e:
                raise click.ClickException(f"Run aborted: {e}") from e
            display_run_report(report)

            if not (report.has_more and report.confirmed):
                break
            if not keep_going and (yes or not confirm_continue()):
                break
            batch += 1
            console.print(f"\n[bold]Batch {batch}[/bold]")

    if report_path:
        export_report(report, report_path, format=report_format)
        console.print(f"[dim]Report saved to {report_path}[/dim]")


@cli.command(name="archive-read")
@click.option(
    "-m",
    "--max-messages",
    default=constants.ARCHIVE_READ_MAX_MESSAGES,
    type=int,
    show_default=True,
    help="Maximum read messages to inspect.",
)
@click.option("-y", "--yes", is_flag=True, help="Archive without asking for confirmation.")
@click.option("--dry-run", is_flag=True, help="Show what would be archived; change nothing.")
def archive_read(max_messages: int, yes: bool, dry_run: bool) -> None:
    """Archive read inbox mail, keeping VIP, protected, recent and important messages."""
    if max_messages <= 0:
        raise click.BadParameter("must be positive", param_hint="--max-messages")

    config = ProtectedConfiguration.from_env()
    gateway = _gateway()
    archiver = ReadMailArchiver(gateway, config, max_messages=max_messages)
    try:
        plan = archiver.plan()
        if not plan.archivable:
            display_archive_plan(plan)
            console.print("[green]No read emails to archive.[/green]")
            return
        if dry_run:
            display_archive_plan(plan)
            console.print("\n[yellow][DRY RUN] Nothing was changed.[/yellow]")
            return
        if yes:
            display_archive_plan(plan)
        elif not confirm_archive(plan):
            console.print("[yellow]No emails were archived.[/yellow]")
            return
        report = archiver.archive(plan)
    except (FilterError, GoogleAuthError) as e:
        raise click.ClickException(f"Archive aborted: {e}") from e

    console.print(
        f"[green]Archived {report.succeeded} of {report.attempted} read emails.[/green]"
    )
    for failure in report.failures:
        console.print(f"[yellow]  - {failure.item}: {failure.reason}[/yellow]")


@cli.command()
def auth() -> None:
    """Test Gmail authentication."""
    try:
        address = check_auth()
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    except GoogleAuthError as e:
        raise click.ClickException(f"Authentication failed: {e}") from e
    console.print(f"[green]Authenticated as {address}[/green]")


@cli.group(name="checkpoint")
def checkpoint_group() -> None:
    """Inspect or reset the incremental-run checkpoint."""


@checkpoint_group.command(name="show")
def checkpoint_show() -> None:
    """Show the stored checkpoint."""
    with _checkpoint_store() as store:
        display_checkpoint(store.load())


@checkpoint_group.command(name="reset")
def checkpoint_reset() -> None:
    """Forget the checkpoint so the next run starts from the beginning."""
    with _checkpoint_store() as store:
        store.reset()
    console.print("[green]Checkpoint cleared.[/green]")


@cli.group(name="rules")
def rules_group() -> None:
    """Audit existing Gmail filters or create the named-service filters."""


def _synthesizer(gateway: ProviderGateway, config: ProtectedConfiguration) -> RuleSynthesizer:
    limiter = RateLimiter()
    retry_policy = RetryPolicy()
    labels = LabelRegistry(gateway, limiter, retry_policy)
    return RuleSynthesizer(gateway, limiter, retry_policy, labels, config)


@rules_group.command(name="audit")
@click.option("--prune", is_flag=True, help="Delete the filters that were flagged.")
def rules_audit(prune: bool) -> None:
    """Flag duplicate, overly broad, and protection-breaking filters."""
    config = ProtectedConfiguration.from_env()
    gateway = _gateway()
    synthesizer = _synthesizer(gateway, config)
    try:
        existing = throttled(synthesizer.limiter, synthesizer.retry_policy, gateway.list_rules)
        issues = audit_rules(existing, config)
        display_rule_issues(issues)
        if prune and issues:
            report = synthesizer.prune_rules(issues)
            console.print(
                f"[green]Deleted {report.succeeded} of {report.attempted} flagged filters.[/green]"
            )
            for failure in report.failures:
                console.print(f"[yellow]  - {failure.item}: {failure.reason}[/yellow]")
    except (FilterError, GoogleAuthError) as e:
        raise click.ClickException(str(e)) from e


@rules_group.command(name="services")
def rules_services() -> None:
    """Create keep/archive filter pairs for the named services."""
    config = ProtectedConfiguration.from_env()
    gateway = _gateway()
    synthesizer = _synthesizer(gateway, config)
    try:
        existing = throttled(synthesizer.limiter, synthesizer.retry_policy, gateway.list_rules)
        report = synthesizer.apply_service_rules(existing)
    except (FilterError, GoogleAuthError) as e:
        raise click.ClickException(str(e)) from e
    console.print(
        f"[green]Created {report.succeeded} service filters "
        f"({report.skipped} already present or skipped).[/green]"
    )
    for failure in report.failures:
        console.print(f"[yellow]  - {failure.item}: {failure.reason}[/yellow]")
