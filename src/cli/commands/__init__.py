"""CLI command modules."""

from .decisions import decide, decisions
from .facts import (
    add,
    confirm,
    edit,
    history,
    invalidate,
    knowledge,
    list_facts,
    remember,
    search,
    stats,
)

__all__ = [
    "add",
    "remember",
    "list_facts",
    "search",
    "knowledge",
    "edit",
    "invalidate",
    "history",
    "stats",
    "confirm",
    "decide",
    "decisions",
]
