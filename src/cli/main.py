"""CLI entry point for the team knowledge fact store."""

from pathlib import Path

import click

from cli.commands import (
    add,
    confirm,
    decide,
    decisions,
    edit,
    history,
    invalidate,
    knowledge,
    list_facts,
    remember,
    search,
    stats,
)
from cli.config import load_config_model
from cli.logging_config import bind_team, setup_logging


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="Config file (default: ./factstore.yaml or ~/.factstore/config.yaml)")
@click.option("--team", envvar="FACTSTORE_TEAM", default=None, help="Team ID to operate on")
@click.pass_context
def cli(ctx, verbose: bool, json_logs: bool, config_path: Path | None, team: str | None):
    """Factstore - team knowledge with versioned facts and conflict checks."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["team"] = team

    try:
        log_cfg = load_config_model(config_path)
        level = log_cfg.logging.level
        json_mode = log_cfg.logging.json_mode
        log_file = log_cfg.paths.log_file
    except ValueError:
        # Reported properly by the command itself
        level, json_mode, log_file = "WARNING", False, None

    setup_logging(
        json_mode=json_logs or json_mode,
        level="DEBUG" if verbose else level,
        log_file=log_file,
    )
    if team:
        bind_team(team)


cli.add_command(add)
cli.add_command(remember)
cli.add_command(list_facts)
cli.add_command(search)
cli.add_command(knowledge)
cli.add_command(edit)
cli.add_command(invalidate)
cli.add_command(history)
cli.add_command(stats)
cli.add_command(confirm)
cli.add_command(decide)
cli.add_command(decisions)


if __name__ == "__main__":
    cli()
