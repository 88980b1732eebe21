"""cueguard CLI: try the moderation pipeline from a terminal."""

import asyncio
import json
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cueguard import __version__

console = Console()
err_console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show pipeline debug logging")
def main(verbose: bool):
    """cueguard: content-safety pipeline for TheCueRoom.

    Masks contact details, classifies posts with an LLM (falling back
    safely when it is unavailable) and decides when the community bot
    should reply.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


# ── Scan ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
@click.option("--rules", "rules_path", default=None, help="YAML rule file to use instead of the defaults")
def scan(text: str, rules_path: str | None):
    """Run only the pattern pre-filter on TEXT (no network calls)."""
    from cueguard.moderation.prefilter import PatternPreFilter
    from cueguard.moderation.rules import load_rules

    prefilter = PatternPreFilter(load_rules(rules_path) if rules_path else None)
    result = prefilter.scan(text)

    console.print("\n[bold blue]cueguard[/] — Pre-filter scan\n")
    console.print(Panel(escape(result.masked_content), title="Masked content"))

    if not result.has_violations:
        console.print("  [green]v[/] No violations")
        return

    console.print(f"  Severity: [bold]{result.severity.value}[/]")
    for category in sorted(v.value for v in result.violations):
        console.print(f"  [yellow]![/] {category}")
    console.print(f"  [dim]Rules: {', '.join(result.matched_rules)}[/]")


# ── Check ────────────────────────────────────────────────────────────


@main.command()
@click.argument("text")
@click.option(
    "--kind",
    default="post",
    type=click.Choice(["post", "comment", "memePrompt", "bio"]),
    help="Kind of submission",
)
@click.option("--author", default="", help="Author display name")
@click.option("--config", "config_path", default=None, help="YAML pipeline config")
@click.option("--json", "as_json", is_flag=True, help="Print the raw outcome as JSON")
def check(text: str, kind: str, author: str, config_path: str | None, as_json: bool):
    """Run TEXT through the full pipeline (pre-filter, classifier, bot)."""
    from cueguard.config import load_config
    from cueguard.moderation.models import (
        ContentKind,
        InvalidRequestError,
        ModerationRequest,
    )
    from cueguard.moderation.pipeline import ModerationPipeline

    pipeline = ModerationPipeline(load_config(config_path))
    request = ModerationRequest(
        content=text,
        content_kind=ContentKind(kind),
        author_display_name=author,
    )

    try:
        outcome = asyncio.run(pipeline.process(request))
    except InvalidRequestError as e:
        console.print(f"[red]Invalid request:[/] {e}")
        raise SystemExit(2)

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
        return

    verdict = outcome.verdict
    bot = outcome.bot_decision

    console.print("\n[bold blue]cueguard[/] — Moderation check\n")

    table = Table(title="Verdict")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    status = "[green]approved[/]" if verdict.approved else "[red]rejected[/]"
    table.add_row("Status", status)
    table.add_row("Confidence", f"{verdict.confidence:.2f}")
    table.add_row("Violations", ", ".join(sorted(v.value for v in verdict.violations)) or "-")
    table.add_row("Human review", "yes" if verdict.requires_human_review else "no")
    table.add_row("Suggestion", escape(verdict.suggestion or "-"))
    console.print(table)

    if verdict.masked_content is not None:
        console.print(Panel(escape(verdict.masked_content), title="Masked content"))

    if bot.should_respond:
        console.print(
            Panel(escape(bot.response_text or ""), title=f"Bot reply ({bot.trigger_reason.value})")
        )
    else:
        console.print("  [dim]Bot stays silent.[/]")


# ── Rules ────────────────────────────────────────────────────────────


@main.command(name="rules")
@click.option("--rules", "rules_path", default=None, help="YAML rule file to list instead of the defaults")
def list_rules(rules_path: str | None):
    """List the pattern rules and flagged phrases in effect."""
    from cueguard.moderation.rules import default_rule_set, load_rules

    rule_set = load_rules(rules_path) if rules_path else default_rule_set()

    table = Table(title=f"Pattern rules ({len(rule_set.rules)})")
    table.add_column("Id", style="cyan")
    table.add_column("Category")
    table.add_column("Strategy")
    table.add_column("Severity", justify="center")
    for rule in rule_set.rules:
        table.add_row(rule.id, rule.category.value, rule.mask_strategy.value, rule.severity.value)
    console.print(table)

    for category, phrases in rule_set.flagged_phrases.items():
        console.print(f"\n[bold]{category.value}[/] phrases: {', '.join(phrases)}")


if __name__ == "__main__":
    main()
