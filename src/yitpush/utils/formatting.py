"""Columnar display strings for interactive menus."""

from __future__ import annotations

from yitpush.storage.models import Branch, VariableGroup

MAX_DESCRIPTION_WIDTH = 30


def shorten(text: str, width: int = MAX_DESCRIPTION_WIDTH) -> str:
    """Cut text to `width` characters, ending with "..." when shortened."""
    if len(text) <= width:
        return text
    return text[: width - 3] + "..."


def format_branch_rows(branches: list[Branch]) -> list[str]:
    """One aligned "name  type  date" row per branch, in input order."""
    if not branches:
        return []
    name_width = max(len(b.name) for b in branches) + 2
    return [f"{b.name.ljust(name_width)} {b.type.ljust(8)} {b.date}" for b in branches]


def format_variable_group_rows(groups: list[VariableGroup]) -> list[str]:
    """One aligned "id  name  description  Vars: n" row per group."""
    if not groups:
        return []
    id_width = max(len(g.id) for g in groups) + 2
    name_width = max(len(g.name) for g in groups) + 2
    desc_width = min(max(len(g.description) for g in groups), MAX_DESCRIPTION_WIDTH) + 2

    rows = []
    for g in groups:
        desc = shorten(g.description)
        rows.append(
            f"{g.id.ljust(id_width)} {g.name.ljust(name_width)} {desc.ljust(desc_width)} Vars: {len(g.variables)}"
        )
    return rows


def safe_filename_part(name: str) -> str:
    """Make a branch name usable inside a file name."""
    return name.replace("/", "-").replace("\\", "-")
