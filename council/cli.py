"""Click CLI: config loading, evaluation runs, consensus lookups, inbox processing."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from council.errors import CouncilError, EvaluationNotFoundError, SecurityRejection
from council.healthcheck import run_health_checks
from council.inbox import STATUS_FAILED, STATUS_SECURITY, archive_file, ensure_dirs, load_submission, scan_inbox
from council.models import EvaluationResult, Submission
from council.output import print_consensus, print_evaluation, save_report, verdict_label
from council.service import CouncilService

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

EXIT_SECURITY_REJECTION = 2


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_service(config: AppConfig, require_judges: bool = True) -> CouncilService:
    try:
        service = CouncilService.from_config(config)
    except CouncilError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)
    if require_judges and not service.orchestrator.adapters:
        console.print("[bold red]Error:[/bold red] No judges available. Check API keys in .env.")
        sys.exit(1)
    return service


async def _evaluate_one(
    service: CouncilService,
    submission: Submission,
    output_dir: Path | None,
) -> EvaluationResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Council evaluating {submission.project_id}...", total=None)
        result = await service.evaluate(
            submission.project_id,
            submission.submission_url,
            submission.submission_notes,
        )

    print_evaluation(result)
    if output_dir is not None:
        saved = save_report(result, output_dir)
        console.print(f"\n[dim]Saved to: {saved}[/dim]")
    return result


async def _run_evaluate(service: CouncilService, submission: Submission, output_dir: Path | None) -> EvaluationResult:
    try:
        return await _evaluate_one(service, submission, output_dir)
    finally:
        await service.flush()
        for err in service.writer.errors:
            console.print(f"[yellow]Vote ledger warning:[/yellow] {err}")


async def _run_inbox(
    service: CouncilService,
    inbox_dir: Path,
    archive_dir: Path,
    output_dir: Path | None,
) -> None:
    """Evaluate every .md submission in the inbox folder, oldest first."""
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    try:
        for file_path in files:
            try:
                submission = load_submission(file_path)
                result = await _evaluate_one(service, submission, output_dir)
            except Exception as e:
                logger.error("Failed: %s -- %s", file_path.name, e)
                archive_file(file_path, archive_dir, STATUS_FAILED)
                continue
            archived = archive_file(file_path, archive_dir, STATUS_SECURITY if result.aborted else None)
            click.echo(f"Processed: {file_path.name} -> {verdict_label(result)} (archived: {archived.name})")
    finally:
        await service.flush()


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True, path_type=Path), default=None,
              help="Path to settings.yaml (default: bundled config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Blob Council -- multi-model evaluation of work submissions.

    \b
    Examples:
      python -m council.cli evaluate p-42 https://github.com/org/repo --notes "Built the bridge UI"
      python -m council.cli evaluate p-42 https://youtu.be/abc --channel deliberate
      python -m council.cli consensus p-42
      python -m council.cli inbox --inbox-dir ./queue
      python -m council.cli check
    """
    # Model responses can contain non-ASCII text; keep Windows consoles from crashing on it.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        ctx.obj = load_config(config_path) if config_path else load_config()
    except (FileNotFoundError, CouncilError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


@main.command()
@click.argument("project_id")
@click.argument("submission_url")
@click.option("--notes", default="", help="Submission notes")
@click.option("--notes-file", type=click.Path(exists=True, path_type=Path), default=None,
              help="Read submission notes from a file")
@click.option("--channel", type=click.Choice(["off", "share", "deliberate"]), default=None,
              help="Inter-judge exchange mode (default: from config)")
@click.option("--output", "output_path", default=None, help="Report directory (default: from config)")
@click.option("--no-report", is_flag=True, default=False, help="Do not write a markdown report")
@click.pass_obj
def evaluate(
    config: AppConfig,
    project_id: str,
    submission_url: str,
    notes: str,
    notes_file: Path | None,
    channel: str | None,
    output_path: str | None,
    no_report: bool,
) -> None:
    """Evaluate one submission with the full council."""
    if notes_file:
        notes = notes_file.read_text(encoding="utf-8").strip()
    if channel:
        config.channel.mode = channel

    output_dir = None if no_report else (Path(output_path) if output_path else config.defaults.output_dir)
    service = _build_service(config)
    submission = Submission(project_id=project_id, submission_url=submission_url, submission_notes=notes)

    result = asyncio.run(_run_evaluate(service, submission, output_dir))
    try:
        result.raise_for_security()
    except SecurityRejection as exc:
        console.print(f"[bold red]Security validation failed:[/bold red] {escape(str(exc))}")
        sys.exit(EXIT_SECURITY_REJECTION)


@main.command()
@click.argument("project_id")
@click.pass_obj
def consensus(config: AppConfig, project_id: str) -> None:
    """Recompute consensus from the votes stored for PROJECT_ID."""
    service = _build_service(config, require_judges=False)
    try:
        result = service.consensus(project_id)
    except EvaluationNotFoundError as exc:
        console.print(f"[yellow]{exc}[/yellow]")
        sys.exit(1)
    except CouncilError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)
    print_consensus(project_id, result)


@main.command()
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--output", "output_path", default=None, help="Report directory (default: from config)")
@click.pass_obj
def inbox(config: AppConfig, inbox_dir_override: str | None, output_path: str | None) -> None:
    """Evaluate every submission file in the inbox folder."""
    inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    service = _build_service(config)
    asyncio.run(_run_inbox(service, inbox_dir, config.inbox.archive_dir, output_dir))


@main.command()
@click.pass_obj
def check(config: AppConfig) -> None:
    """Ping every configured judge's provider."""
    service = _build_service(config)
    console.print("\n[bold]Checking judges...[/bold]")
    results = asyncio.run(run_health_checks(service.orchestrator.adapters))

    failed = 0
    for health in results:
        label = f"{health.judge_id} ({health.provider}/{health.model})"
        if health.ok:
            console.print(f"  [green]OK  [/green] {label} {health.latency_sec:.1f}s")
        else:
            short_err = health.error.splitlines()[0][:120] if health.error else "unknown error"
            console.print(f"  [red]FAIL[/red] {label}: {short_err}")
            failed += 1
    for judge_id in service.orchestrator.absent_judges:
        console.print(f"  [dim]ABSENT[/dim] {judge_id}")

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
