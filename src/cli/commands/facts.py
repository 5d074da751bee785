"""Fact CLI commands: add, remember, list, search, knowledge, edit, invalidate, history, stats, confirm."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, get_team, resolve_fact_id, short_id
from knowledge import FactCategory, KnowledgeError
from knowledge.service import CHOICES, parse_confirmation_reply

console = Console()

_CATEGORY_CHOICE = click.Choice([c.value for c in FactCategory])


def _components(ctx):
    return get_components((ctx.obj or {}).get("config_path"))


def _print_outcome(outcome) -> None:
    if outcome.status == "saved":
        console.print(f"[green]Saved[/] {short_id(outcome.fact.id)}: {outcome.fact.content}")
    elif outcome.status == "updated":
        console.print(
            f"[green]Updated[/] {short_id(outcome.replaced.id)} -> {short_id(outcome.fact.id)}: "
            f"{outcome.fact.content}"
        )
    elif outcome.status == "awaiting_user":
        console.print(f"[yellow]Needs confirmation[/] (key: {outcome.conversation_key})")
        console.print(outcome.question())
        console.print(f"Run: factstore confirm '{outcome.conversation_key}' <yes|save anyway|cancel>")
    else:
        console.print("[dim]Discarded.[/]")


def _facts_table(title: str, rows) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim", width=8)
    table.add_column("Category", width=13)
    table.add_column("Fact")
    table.add_column("Score", width=6)
    table.add_column("Created", width=10)
    for fact, score in rows:
        table.add_row(
            short_id(fact.id),
            fact.category.value,
            fact.content if fact.is_active else f"[strike]{fact.content}[/]",
            "-" if score is None else f"{score:.2f}",
            fact.created_at.strftime("%Y-%m-%d"),
        )
    return table


@click.command("add")
@click.argument("content")
@click.option("--category", "-c", type=_CATEGORY_CHOICE, default=None, help="Fact category")
@click.option("--by", "created_by", default=None, help="Who stated the fact")
@click.option("--key", "conversation_key", default=None, help="Key for a pending confirmation")
@click.option("--force", is_flag=True, help="Skip conflict checking and save directly")
@click.pass_context
def add(ctx, content: str, category: str | None, created_by: str | None,
        conversation_key: str | None, force: bool):
    """Add a fact, checking it against what the team already knows."""
    c = _components(ctx)
    team = get_team(ctx, c["config_model"])
    service = c["service"]
    try:
        if force:
            fact = service.create_fact(
                team, content, category=category or "general", created_by=created_by
            )
            console.print(f"[green]Saved[/] {short_id(fact.id)}: {fact.content}")
            return
        outcome = service.propose_fact(
            team, content, category=category, created_by=created_by,
            conversation_key=conversation_key,
        )
    except KnowledgeError as e:
        raise click.ClickException(str(e))
    _print_outcome(outcome)


@click.command("remember")
@click.argument("text")
@click.option("--question", "-q", default=None, help="Question this text answers")
@click.option("--by", "created_by", default=None, help="Who said it")
@click.option("--direct", is_flag=True, help="Store extracted facts without conflict checks")
@click.pass_context
def remember(ctx, text: str, question: str | None, created_by: str | None, direct: bool):
    """Extract atomic facts from free text and store them."""
    c = _components(ctx)
    team = get_team(ctx, c["config_model"])
    service = c["service"]

    if direct:
        batch = service.create_atomic_facts(
            team, text, created_by=created_by, source_question=question
        )
        for fact in batch.facts:
            console.print(f"[green]Saved[/] {short_id(fact.id)}: {fact.content}")
        if batch.dropped:
            console.print(f"[dim]{batch.dropped} low-confidence candidate(s) dropped[/]")
        for err in batch.errors:
            console.print(f"[red]Failed:[/] {err}")
        return

    outcomes = service.remember(team, text, created_by=created_by, source_question=question)
    if not outcomes:
        console.print("No facts above the confidence threshold.")
        return
    for outcome in outcomes:
        _print_outcome(outcome)


@click.command("list")
@click.option("--category", "-c", type=_CATEGORY_CHOICE, default=None, help="Filter by category")
@click.option("--all", "include_invalid", is_flag=True, help="Include invalidated facts")
@click.option("--limit", "-n", default=50)
@click.pass_context
def list_facts(ctx, category: str | None, include_invalid: bool, limit: int):
    """List facts, newest first."""
    c = _components(ctx)
    team = get_team(ctx, c["config_model"])
    facts = c["service"].get_facts(team, category=category, limit=limit, include_invalid=include_invalid)
    if not facts:
        console.print("No facts stored.")
        return
    console.print(_facts_table(f"Facts ({team})", [(f, None) for f in facts]))


@click.command("search")
@click.argument("query")
@click.option("--limit", "-n", default=None, type=int)
@click.pass_context
def search(ctx, query: str, limit: int | None):
    """Hybrid search over active facts."""
    c = _components(ctx)
    team = get_team(ctx, c["config_model"])
    hits = c["service"].search_facts(team, query, limit=limit)
    if not hits:
        console.print("No matching facts.")
        return
    console.print(_facts_table(f"Results for '{query}'", [(h.fact, h.similarity) for h in hits]))


@click.command("knowledge")
@click.argument("query")
@click.option("--prompt", is_flag=True, help="Print the prompt-ready context block")
@click.pass_context
def knowledge(ctx, query: str, prompt: bool):
    """Facts and decisions relevant to a query."""
    c = _components(ctx)
    team = get_team(ctx, c["config_model"])
    results, context = c["service"].get_knowledge_context(team, query)
    if prompt:
        click.echo(context)
        return

    if results.facts:
        console.print(_facts_table("Facts", [(h.fact, h.similarity) for h in results.facts]))
    if results.decisions:
        console.print("\n[bold]Decisions[/]")
        for d in results.decisions:
            why = f" [dim](why: {d.why})[/]" if d.why else ""
            console.print(f"  {short_id(d.id)} {d.what}{why}")
    if not results.facts and not results.decisions:
        console.print("No relevant team knowledge found.")


@click.command("edit")
@click.argument("fact_id")
@click.option("--content", default=None, help="New content")
@click.option("--category", "-c", type=_CATEGORY_CHOICE, default=None, help="New category")
@click.pass_context
def edit(ctx, fact_id: str, content: str | None, category: str | None):
    """Edit a fact in place (no new version)."""
    c = _components(ctx)
    team = get_team(ctx, c["config_model"])
    service = c["service"]
    try:
        fact = service.update_fact(resolve_fact_id(service, fact_id, team), content=content, category=category)
    except KnowledgeError as e:
        raise click.ClickException(str(e))
    console.print(f"[green]Updated[/] {short_id(fact.id)}: {fact.content} [{fact.category.value}]")


@click.command("invalidate")
@click.argument("fact_id")
@click.option("--superseded-by", default=None, help="ID of the fact that replaces this one")
@click.pass_context
def invalidate(ctx, fact_id: str, superseded_by: str | None):
    """Mark a fact as no longer valid."""
    c = _components(ctx)
    team = get_team(ctx, c["config_model"])
    service = c["service"]
    try:
        successor = resolve_fact_id(service, superseded_by, team) if superseded_by else None
        fact = service.invalidate_fact(resolve_fact_id(service, fact_id, team), superseded_by=successor)
    except KnowledgeError as e:
        raise click.ClickException(str(e))
    console.print(f"[yellow]Invalidated[/] {short_id(fact.id)}: {fact.content}")


@click.command("history")
@click.argument("fact_id")
@click.pass_context
def history(ctx, fact_id: str):
    """Show the supersession chain of a fact, oldest first."""
    c = _components(ctx)
    team = get_team(ctx, c["config_model"])
    service = c["service"]
    try:
        chain = service.get_history(resolve_fact_id(service, fact_id, team))
    except KnowledgeError as e:
        raise click.ClickException(str(e))
    for fact in chain:
        state = "[green]active[/]" if fact.is_active else f"[dim]until {fact.valid_until:%Y-%m-%d %H:%M}[/]"
        console.print(f"{short_id(fact.id)} {fact.valid_from:%Y-%m-%d %H:%M} {state}  {fact.content}")


@click.command("stats")
@click.pass_context
def stats(ctx):
    """Show fact counts for the team."""
    c = _components(ctx)
    team = get_team(ctx, c["config_model"])
    s = c["service"].get_stats(team)
    console.print(f"Active facts: {s['total_active']}")
    console.print(f"Invalidated: {s['total_invalid']}")
    console.print(f"Without embedding: {s['unembedded']}")
    console.print(f"Pending confirmations: {s['pending']}")
    if s["by_category"]:
        console.print("\nBy category:")
        for cat, cnt in sorted(s["by_category"].items()):
            console.print(f"  {cat}: {cnt}")


@click.command("confirm")
@click.argument("key")
@click.argument("reply", nargs=-1, required=True)
@click.pass_context
def confirm(ctx, key: str, reply: tuple[str, ...]):
    """Answer a pending confirmation: yes / save anyway / cancel."""
    text = " ".join(reply)
    choice = text if text in CHOICES else parse_confirmation_reply(text)
    if choice is None:
        raise click.BadParameter(f"Could not understand reply: {text!r}", param_hint="REPLY")

    c = _components(ctx)
    try:
        outcome = c["service"].resolve_pending(key, choice)
    except KnowledgeError as e:
        raise click.ClickException(str(e))
    _print_outcome(outcome)
