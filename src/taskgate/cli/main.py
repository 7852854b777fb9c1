"""taskgate command line.

Usage:
    taskgate create "Write parser" --priority high --complexity 3
    taskgate depend <blocker-id> <blocked-id> --unblock-at review
    taskgate transition <item-id> start
    taskgate next --limit 5
    taskgate blocked
    taskgate history <item-id>

State lives under --store (default ./.taskgate). Each invocation runs
in its own session, which is closed on exit so no lock outlives the
process.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any

import click

from taskgate.application.config import EngineConfig
from taskgate.application.engine import WorkflowEngine
from taskgate.cli.console import (
    print_blocked_items,
    print_blockers,
    print_dependencies,
    print_error,
    print_history,
    print_item,
    print_items,
    print_success,
    print_transition,
)
from taskgate.cli.logging_setup import setup_logging
from taskgate.domain.exceptions import DependencyBlocked, WorkflowError
from taskgate.domain.models import (
    DependencyType,
    ItemScope,
    Priority,
    Role,
    Trigger,
    new_id,
)
from taskgate.infrastructure.config import ConfigurationError, load_engine_config
from taskgate.infrastructure.factory import build_filesystem_engine

logger = logging.getLogger("taskgate.cli")

_PRIORITIES = [p.value for p in Priority]
_TRIGGERS = [t.value for t in Trigger]
_DEPENDENCY_TYPES = [t.value for t in DependencyType]
_THRESHOLDS = [r.value for r in Role if r != Role.BLOCKED]


@dataclass
class CliState:
    """Per-invocation objects shared by every command."""

    engine: WorkflowEngine
    session_id: str


def handle_errors[F: Callable[..., Any]](func: F) -> F:
    """Turn domain and configuration errors into an error panel and exit 1."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except WorkflowError as e:
            hint = "Retry shortly." if e.retriable else None
            print_error(f"[{e.code}] {e}", hint=hint)
            sys.exit(1)
        except ConfigurationError as e:
            print_error(str(e))
            sys.exit(1)

    return wrapper  # type: ignore[return-value]


def _scope(parent: str | None, recursive: bool, tags: tuple[str, ...]) -> ItemScope | None:
    if parent is None and not tags:
        return None
    return ItemScope(parent_id=parent, recursive=recursive, tags=tags)


@click.group()
@click.option(
    "--store",
    default=".taskgate",
    envvar="TASKGATE_STORE",
    type=click.Path(file_okay=False),
    help="Directory holding items, dependencies and the audit log",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    envvar="TASKGATE_CONFIG",
    type=click.Path(dir_okay=False),
    help="Path to an engine config JSON file",
)
@click.option(
    "--session",
    "session_id",
    default=None,
    help="Session id to act under (default: a fresh session)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose (DEBUG) logging to console",
)
@click.option(
    "--log-file",
    default=None,
    type=click.Path(),
    help="Path to log file",
)
@click.pass_context
@handle_errors
def cli(
    ctx: click.Context,
    store: str,
    config_path: str | None,
    session_id: str | None,
    verbose: bool,
    log_file: str | None,
) -> None:
    """Coordinate work items: life-cycle, dependencies and next-up ranking."""
    setup_logging("taskgate", log_file=log_file, verbose=verbose)
    config = load_engine_config(config_path) if config_path else EngineConfig()
    engine = build_filesystem_engine(store, config=config)
    session = engine.open_session(client_id="cli", session_id=session_id or new_id())
    logger.debug("Using store %s with session %s", store, session.session_id)
    ctx.obj = CliState(engine=engine, session_id=session.session_id)
    ctx.call_on_close(lambda: engine.close_session(session.session_id))


pass_state = click.make_pass_decorator(CliState)


# =========================================================================
# Work items
# =========================================================================


@cli.command()
@click.argument("title")
@click.option("--parent", default=None, help="Parent item id")
@click.option("--summary", default="", help="Free-text summary")
@click.option("--priority", type=click.Choice(_PRIORITIES), default="medium")
@click.option("--complexity", type=click.IntRange(1, 10), default=None)
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@pass_state
@handle_errors
def create(
    state: CliState,
    title: str,
    parent: str | None,
    summary: str,
    priority: str,
    complexity: int | None,
    tags: tuple[str, ...],
) -> None:
    """Create a work item in QUEUE."""
    item = state.engine.create_item(
        state.session_id,
        title,
        parent_id=parent,
        summary=summary,
        priority=priority,
        complexity=complexity,
        tags=tags,
    )
    print_item(item)


@cli.command()
@click.argument("item_id")
@pass_state
@handle_errors
def show(state: CliState, item_id: str) -> None:
    """Show an item with its dependencies and unmet prerequisites."""
    item = state.engine.get_item(item_id)
    print_item(item)
    print_dependencies(state.engine.dependencies_of(item_id))
    print_blockers(state.engine.find_blockers(item_id))


@cli.command()
@click.argument("item_id")
@click.option("--title", default=None)
@click.option("--summary", default=None)
@click.option("--priority", type=click.Choice(_PRIORITIES), default=None)
@click.option("--complexity", type=click.IntRange(1, 10), default=None)
@click.option("--tag", "tags", multiple=True, help="Replace tags (repeatable)")
@click.option(
    "--expected-version",
    type=int,
    default=None,
    help="Fail with VERSION_CONFLICT unless the item is at this version",
)
@pass_state
@handle_errors
def update(
    state: CliState,
    item_id: str,
    title: str | None,
    summary: str | None,
    priority: str | None,
    complexity: int | None,
    tags: tuple[str, ...],
    expected_version: int | None,
) -> None:
    """Change fields of an item (roles change through `transition`)."""
    changes: dict[str, Any] = {
        key: value
        for key, value in (
            ("title", title),
            ("summary", summary),
            ("priority", priority),
            ("complexity", complexity),
        )
        if value is not None
    }
    if tags:
        changes["tags"] = tags
    if not changes:
        print_error("Nothing to update", hint="Pass at least one field option")
        sys.exit(1)
    item = state.engine.update_item(
        item_id, state.session_id, expected_version=expected_version, **changes
    )
    print_item(item)


@cli.command()
@click.argument("item_id")
@pass_state
@handle_errors
def delete(state: CliState, item_id: str) -> None:
    """Delete a leaf item and its dependency edges."""
    removed = state.engine.delete_item(item_id, state.session_id)
    print_success(f"Deleted {item_id} ({removed} dependency edge(s) removed)")


# =========================================================================
# Life-cycle
# =========================================================================


@cli.command()
@click.argument("item_id")
@click.argument("trigger", type=click.Choice(_TRIGGERS, case_sensitive=False))
@click.option("--summary", default=None, help="Note stored on the audit record")
@pass_state
@handle_errors
def transition(state: CliState, item_id: str, trigger: str, summary: str | None) -> None:
    """Apply a trigger (start, complete, block, hold, resume, cancel)."""
    result = state.engine.perform_role_transition(
        item_id, trigger, state.session_id, summary=summary
    )
    if result.outcome is None:
        if isinstance(result.error, DependencyBlocked):
            print_blockers(result.error.blockers)
        raise result.error
    print_transition(result.outcome)


@cli.command()
@click.argument("item_id")
@pass_state
@handle_errors
def history(state: CliState, item_id: str) -> None:
    """Show the transition audit trail of an item."""
    print_history(state.engine.transition_history(item_id))


# =========================================================================
# Dependencies
# =========================================================================


@cli.command()
@click.argument("from_item_id")
@click.argument("to_item_id")
@click.option(
    "--type",
    "dependency_type",
    type=click.Choice(_DEPENDENCY_TYPES),
    default=DependencyType.BLOCKS.value,
)
@click.option(
    "--unblock-at",
    type=click.Choice(_THRESHOLDS),
    default=None,
    help="Role the blocker must reach (default: terminal)",
)
@pass_state
@handle_errors
def depend(
    state: CliState,
    from_item_id: str,
    to_item_id: str,
    dependency_type: str,
    unblock_at: str | None,
) -> None:
    """Add a dependency edge FROM -> TO."""
    dependency = state.engine.add_dependency(
        from_item_id,
        to_item_id,
        state.session_id,
        dependency_type=dependency_type,
        unblock_at=unblock_at,
    )
    print_dependencies([dependency])


@cli.command()
@click.argument("dependency_id")
@pass_state
@handle_errors
def undepend(state: CliState, dependency_id: str) -> None:
    """Remove a dependency edge."""
    if not state.engine.remove_dependency(dependency_id, state.session_id):
        print_error(f"dependency not found: {dependency_id}")
        sys.exit(1)
    print_success(f"Removed dependency {dependency_id}")


# =========================================================================
# Queries
# =========================================================================


@cli.command("next")
@click.option("--parent", default=None, help="Restrict to children of this item")
@click.option("--recursive", is_flag=True, help="Include the whole subtree of --parent")
@click.option("--tag", "tags", multiple=True, help="Keep items with any of these tags")
@click.option("--limit", type=click.IntRange(min=1), default=1)
@pass_state
@handle_errors
def next_(
    state: CliState,
    parent: str | None,
    recursive: bool,
    tags: tuple[str, ...],
    limit: int,
) -> None:
    """Recommend the next unblocked QUEUE items."""
    recommendation = state.engine.recommend_next(
        _scope(parent, recursive, tags), limit=limit, session_id=state.session_id
    )
    print_items(
        recommendation.recommendations,
        title="Next up",
        total=recommendation.total_candidates,
    )


@cli.command()
@click.option("--parent", default=None, help="Restrict to children of this item")
@click.option("--recursive", is_flag=True, help="Include the whole subtree of --parent")
@pass_state
@handle_errors
def blocked(state: CliState, parent: str | None, recursive: bool) -> None:
    """List explicitly blocked items and items waiting on prerequisites."""
    print_blocked_items(state.engine.find_blocked_items(_scope(parent, recursive, ())))

