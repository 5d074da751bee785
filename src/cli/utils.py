"""Shared CLI utilities."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

console = Console()


def get_components(config_path: Optional[Path] = None) -> dict:
    """Initialize config and the knowledge service.

    Args:
        config_path: Explicit config file; None searches the standard locations.
    """
    from cli.config import load_config_model
    from knowledge import KnowledgeService

    try:
        config_model = load_config_model(config_path)
    except ValueError as e:
        console.print(f"[red]Config error:[/] {escape(str(e))}")
        sys.exit(1)

    service = KnowledgeService.from_config(config_model)
    return {
        "config_model": config_model,
        "service": service,
    }


def get_team(ctx: click.Context, config_model=None) -> str:
    """Team from --team / $FACTSTORE_TEAM, falling back to the configured default."""
    team = (ctx.obj or {}).get("team")
    if team:
        return team
    if config_model is not None:
        return config_model.knowledge.default_team
    return "default"


def short_id(fact_id: str) -> str:
    return fact_id[:8]


def resolve_fact_id(service, fact_id: str, team: str) -> str:
    """Expand an id prefix (as printed by `list`) to a full id within team.

    Facts of other teams are never resolved; an exact id from another team
    is rejected.
    """
    fact = service.store.get_fact(fact_id)
    if fact is not None:
        if fact.team_id != team:
            raise click.ClickException(f"Fact not found in team {team}: {fact_id}")
        return fact_id
    matches = service.store.find_ids_by_prefix(team, fact_id)
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise click.BadParameter(f"Ambiguous fact id prefix: {fact_id}")
    return fact_id
