"""Rich console output and markdown report files for evaluation results."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from council.models import Consensus, EvaluationResult, Vote

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def format_rate(consensus: Consensus) -> str:
    if consensus.approval_rate is None:
        return "n/a"
    return f"{consensus.approval_rate * 100:.0f}%"


def verdict_label(result_or_consensus: EvaluationResult | Consensus) -> str:
    if isinstance(result_or_consensus, EvaluationResult):
        if result_or_consensus.aborted:
            return "REJECTED (security)"
        consensus = result_or_consensus.consensus
    else:
        consensus = result_or_consensus
    if consensus.votes_received == 0:
        return "INCONCLUSIVE"
    label = "APPROVED" if consensus.approved else "REJECTED"
    return f"{label} (below quorum)" if consensus.inconclusive else label


def _vote_panel(vote: Vote) -> Panel:
    style = "green" if vote.approve else "red"
    decision = "APPROVE" if vote.approve else "REJECT"
    return Panel(
        Text(vote.reasoning),
        title=f"[bold]{vote.judge_name}[/bold] ({vote.provider_kind})",
        subtitle=f"[{style}]{decision}[/{style}]",
        border_style=style,
    )


def print_consensus(project_id: str, consensus: Consensus) -> None:
    """Print a one-table consensus summary."""
    table = Table(title=f"Consensus for {escape(project_id)}", show_header=False)
    table.add_row("Verdict", verdict_label(consensus))
    table.add_row("Approvals", str(consensus.approval_count))
    table.add_row("Rejections", str(consensus.rejection_count))
    table.add_row("Approval rate", format_rate(consensus))
    table.add_row("Votes received", f"{consensus.votes_received}/{consensus.seats}")
    console.print(table)


def print_evaluation(result: EvaluationResult) -> None:
    """Print the security summary, every vote, and the consensus."""
    console.print(Rule(f"[bold cyan]Council Evaluation: {escape(result.project_id)}[/bold cyan]"))
    analysis = result.security_analysis
    console.print(
        Text(
            f"URL: {result.submission_url} | Content: {result.content_type} | "
            f"Risk: {analysis.risk_level} | Duration: {result.duration_sec:.1f}s",
            style="dim",
        )
    )
    for reason in analysis.reasons:
        console.print(f"  [yellow]![/yellow] {escape(reason)}")

    if result.aborted:
        console.print("[bold red]Submission rejected by the security screen; no judge was consulted.[/bold red]")
        return

    for vote in result.votes:
        console.print(_vote_panel(vote))
    for judge_id in result.failed_judges:
        console.print(f"  [red]no response[/red] {judge_id}")
    for judge_id in result.absent_judges:
        console.print(f"  [dim]absent[/dim] {judge_id}")

    print_consensus(result.project_id, result.consensus)


def save_report(result: EvaluationResult, output_dir: Path) -> Path:
    """Save the evaluation as a markdown report.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = output_dir / f"{timestamp}_{_slug(result.project_id)}.md"
    consensus = result.consensus
    analysis = result.security_analysis

    lines: list[str] = [
        f"# Council Evaluation: {result.project_id}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Submission:** {result.submission_url}",
        f"**Content type:** {result.content_type}",
        f"**Verdict:** {verdict_label(result)}",
        f"**Approval rate:** {format_rate(consensus)} "
        f"({consensus.approval_count} approve / {consensus.rejection_count} reject, "
        f"{consensus.votes_received}/{consensus.seats} seats voted)",
        f"**Duration:** {result.duration_sec:.1f}s",
        "",
        "## Security screen",
        "",
        f"**Risk level:** {analysis.risk_level}",
    ]
    lines += [f"- {reason}" for reason in analysis.reasons] or ["- no findings"]
    lines.append("")

    if result.votes:
        lines += ["## Votes", ""]
        for vote in result.votes:
            decision = "APPROVE" if vote.approve else "REJECT"
            lines += [
                f"### {vote.judge_name} ({vote.provider_kind}): {decision}",
                "",
                vote.reasoning,
                "",
                f"*{vote.timestamp.isoformat()} | parsed via {vote.parse_strategy}*",
                "",
            ]

    if result.failed_judges or result.absent_judges:
        lines += ["## Missing judges", ""]
        lines += [f"- {j}: no response" for j in result.failed_judges]
        lines += [f"- {j}: absent (not configured)" for j in result.absent_judges]
        lines.append("")

    if result.communications:
        lines += ["## Inter-judge communications", ""]
        for comm in result.communications:
            lines.append(f"- **{comm.sender} -> {comm.recipient}** ({comm.content_type}): {comm.content_summary}")
        lines.append("")

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Evaluation report saved to: %s", filepath)
    return filepath
