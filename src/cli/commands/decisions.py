"""Decision CLI commands."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, get_team, short_id
from knowledge import KnowledgeError

console = Console()


@click.command("decide")
@click.argument("what")
@click.option("--why", default=None, help="Rationale")
@click.option("--alt", "alternatives", multiple=True, help="Alternative considered (repeatable)")
@click.option("--by", "made_by", default=None, help="Who made the decision")
@click.option("--fact", "related_facts", multiple=True, help="Related fact ID (repeatable)")
@click.pass_context
def decide(ctx, what: str, why: str | None, alternatives: tuple, made_by: str | None, related_facts: tuple):
    """Record a decision and its rationale."""
    c = get_components((ctx.obj or {}).get("config_path"))
    team = get_team(ctx, c["config_model"])
    try:
        decision = c["service"].create_decision(
            team,
            what,
            why=why,
            alternatives=list(alternatives),
            made_by=made_by,
            related_facts=list(related_facts),
        )
    except KnowledgeError as e:
        raise click.ClickException(str(e))
    console.print(f"[green]Recorded decision[/] {short_id(decision.id)}: {decision.what}")


@click.command("decisions")
@click.option("--limit", "-n", default=20)
@click.pass_context
def decisions(ctx, limit: int):
    """List recent decisions."""
    c = get_components((ctx.obj or {}).get("config_path"))
    team = get_team(ctx, c["config_model"])
    items = c["service"].get_decisions(team, limit=limit)
    if not items:
        console.print("No decisions recorded.")
        return

    table = Table(title=f"Decisions ({team})")
    table.add_column("ID", style="dim", width=8)
    table.add_column("What")
    table.add_column("Why")
    table.add_column("By", width=12)
    for d in items:
        table.add_row(short_id(d.id), d.what, d.why or "", d.made_by or "")
    console.print(table)
