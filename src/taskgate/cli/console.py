"""Rich console rendering for the taskgate command line."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from taskgate import (
        BlockedItem,
        BlockerInfo,
        Dependency,
        RoleTransition,
        TransitionOutcome,
        WorkItem,
    )

# Shared console instances
console = Console()
error_console = Console(stderr=True)

_ROLE_STYLES = {
    "queue": "cyan",
    "work": "yellow",
    "review": "magenta",
    "blocked": "red",
    "terminal": "green",
}


def _role(value: str) -> Text:
    return Text(value, style=_ROLE_STYLES.get(value, ""))


def print_error(message: str, hint: str | None = None) -> None:
    """Print formatted error message to stderr."""
    content = Text(f"ERROR: {message}", style="bold red")
    if hint:
        content.append(f"\n\nHint: {hint}", style="yellow")
    error_console.print(Panel(content, title="Error", border_style="red"))


def print_success(message: str) -> None:
    console.print(Panel(message, title="Success", border_style="green"))


def print_item(item: WorkItem) -> None:
    """Print every field of one work item."""
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", overflow="fold")

    table.add_row("ID", item.id)
    table.add_row("Title", item.title)
    table.add_row("Role", _role(item.role.value))
    if item.status_label:
        table.add_row("Status", item.status_label)
    if item.previous_role:
        table.add_row("Previous role", item.previous_role.value)
    table.add_row("Priority", item.priority.value)
    table.add_row("Complexity", str(item.complexity) if item.complexity else "-")
    if item.parent_id:
        table.add_row("Parent", item.parent_id)
    table.add_row("Depth", str(item.depth))
    if item.tags:
        table.add_row("Tags", ", ".join(item.tags))
    if item.summary:
        table.add_row("Summary", item.summary)
    table.add_row("Version", str(item.version))
    table.add_row("Modified", item.modified_at.isoformat())

    console.print(Panel(table, title=item.title, expand=False))


def print_items(items: Sequence[WorkItem], title: str, total: int | None = None) -> None:
    """Print a compact table of work items."""
    caption = f"{total} unblocked candidate(s)" if total is not None else None
    table = Table(title=title, caption=caption, show_header=True)
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Title")
    table.add_column("Role")
    table.add_column("Priority")
    table.add_column("Cx", justify="right")

    for item in items:
        table.add_row(
            item.id,
            item.title,
            _role(item.role.value),
            item.priority.value,
            str(item.complexity) if item.complexity else "-",
        )
    console.print(table)


def print_dependencies(dependencies: Sequence[Dependency]) -> None:
    if not dependencies:
        return
    table = Table(title="Dependencies", show_header=True)
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("From", overflow="fold")
    table.add_column("Type", style="magenta")
    table.add_column("To", overflow="fold")
    table.add_column("Unblock at")
    for dep in dependencies:
        threshold = dep.effective_unblock_role()
        table.add_row(
            dep.id,
            dep.from_item_id,
            dep.type.value,
            dep.to_item_id,
            threshold.value if threshold else "-",
        )
    console.print(table)


def print_blockers(blockers: Sequence[BlockerInfo]) -> None:
    if not blockers:
        console.print("[green]Not blocked[/green]")
        return
    table = Table(title="Unmet prerequisites", show_header=True)
    table.add_column("Blocker", overflow="fold")
    table.add_column("Current role")
    table.add_column("Required")
    for blocker in blockers:
        current = blocker.current_role.value if blocker.current_role else "unresolved"
        table.add_row(blocker.blocker_id, _role(current), blocker.required_role.value)
    console.print(table)


def print_blocked_items(blocked: Sequence[BlockedItem]) -> None:
    table = Table(title="Blocked items", show_header=True)
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Title")
    table.add_column("Kind")
    table.add_column("Blockers", justify="right")
    for entry in blocked:
        table.add_row(
            entry.item.id,
            entry.item.title,
            entry.block_type,
            str(len(entry.blockers)),
        )
    console.print(table)


def print_transition(outcome: TransitionOutcome) -> None:
    content = Text(f"{outcome.item.title}: ")
    content.append_text(_role(outcome.previous_role.value))
    content.append(" -> ")
    content.append_text(_role(outcome.new_role.value))
    for released in outcome.unblocked_items:
        content.append(f"\nUnblocked: {released.title}", style="green")
    for event in outcome.cascade_events:
        content.append(f"\nReady to complete: {event.item_id}", style="cyan")
    console.print(Panel(content, title="Transition", border_style="green"))


def print_history(records: Sequence[RoleTransition]) -> None:
    table = Table(title="Transition history", show_header=True)
    table.add_column("When")
    table.add_column("Trigger", style="magenta")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Summary")
    for record in records:
        table.add_row(
            record.transitioned_at.isoformat(timespec="seconds"),
            record.trigger.value,
            _role(record.from_role.value),
            _role(record.to_role.value),
            record.summary or "",
        )
    console.print(table)
