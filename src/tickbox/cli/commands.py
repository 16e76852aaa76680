# src/tickbox/cli/commands.py

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

import click
from rich.console import Console

from ..core.state import AppState
from ..errors import StoreError
from ..reporting.query import ShowParams, TimeWindow, build_report, build_task_detail
from ..reporting.render import render_report
from ..tasks import task_api
from ..tasks.task_models import Priority, TaskStatus
from .bootstrap import create_initial_state

logger = logging.getLogger(__name__)

console = Console()

F = TypeVar("F", bound=Callable[..., Any])

PRIORITY_CHOICE = click.Choice([p.value for p in Priority], case_sensitive=False)
STATUS_CHOICE = click.Choice([s.value for s in TaskStatus], case_sensitive=False)
WINDOW_CHOICE = click.Choice([w.value for w in TimeWindow], case_sensitive=False)


def get_state(ctx: click.Context) -> AppState:
    """AppState for this invocation (built once, or injected through ctx.obj)."""
    obj = ctx.ensure_object(dict)
    state = obj.get("STATE")
    if state is None:
        state = create_initial_state(settings=obj.get("SETTINGS"))
        obj["STATE"] = state
        ctx.call_on_close(state.task_store.close)
    return cast(AppState, state)


def handle_store_errors(func: F) -> F:
    """Store/lifecycle errors end the command with a message and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except StoreError as exc:
            logger.debug("Command failed (%s)", exc.category, exc_info=True)
            raise click.ClickException(str(exc)) from exc
        except ValueError as exc:
            raise click.UsageError(str(exc)) from exc

    return cast(F, wrapper)


def _descr(words: tuple[str, ...]) -> str:
    return " ".join(words)


# =============================================================================
# task
# =============================================================================


@click.group()
def task() -> None:
    """Work on tasks."""


def _task_id_option(func: F) -> F:
    return click.option("-t", "--task", "task_id", type=int, required=True, help="The task id")(func)


@task.command("new")
@click.option("-l", "--label", "labels", multiple=True, help="Attach a label (repeatable)")
@click.option("-r", "--reference", default=None, help="Set a reference")
@click.option("-p", "--priority", type=PRIORITY_CHOICE, default=None, help="Set a priority")
@click.option("-S", "--story-points", type=click.IntRange(min=0), default=None, help="Story points")
@click.argument("descr", nargs=-1, required=True)
@click.pass_context
@handle_store_errors
def task_new(ctx, labels, reference, priority, story_points, descr) -> None:
    """Create a new task."""
    state = get_state(ctx)
    text = _descr(descr)
    logger.info("add a task with description %s", text)
    task_id = state.lifecycle.create(
        text,
        labels=labels,
        priority=priority,
        story_points=story_points,
        reference=reference,
    )
    click.echo(f"Created a new task, with id {task_id}")


@task.command("add-label")
@_task_id_option
@click.option("-l", "--label", "labels", multiple=True, required=True, help="Label (repeatable)")
@click.pass_context
@handle_store_errors
def task_add_label(ctx, task_id, labels) -> None:
    """Add labels to an existing task."""
    state = get_state(ctx)
    current = task_api.attach_labels(state, task_id, labels)
    click.echo(f"Task {task_id} labels: {', '.join(current)}")


@task.command("edit")
@_task_id_option
@click.option("-p", "--priority", type=PRIORITY_CHOICE, default=None, help="The priority level")
@click.option("-s", "--status", type=STATUS_CHOICE, default=None, help="The task's status")
@click.option("-S", "--story-points", type=click.IntRange(min=0), default=None, help="Story points")
@click.option("-r", "--reference", default=None, help="Set a new reference")
@click.argument("descr", nargs=-1)
@click.pass_context
@handle_store_errors
def task_edit(ctx, task_id, priority, status, story_points, reference, descr) -> None:
    """Edit a task's description and/or attributes."""
    state = get_state(ctx)
    state.lifecycle.edit(
        task_id,
        description=_descr(descr) if descr else None,
        priority=priority,
        story_points=story_points,
        reference=reference,
        status=status,
    )
    click.echo(f"Task {task_id} updated")


@task.command("done")
@_task_id_option
@click.pass_context
@handle_store_errors
def task_done(ctx, task_id) -> None:
    """Close a task."""
    get_state(ctx).lifecycle.complete(task_id)
    click.echo(f"Task {task_id} done")


@task.command("start")
@_task_id_option
@click.pass_context
@handle_store_errors
def task_start(ctx, task_id) -> None:
    """Start to work on a task."""
    get_state(ctx).lifecycle.start(task_id)
    click.echo(f"Task {task_id} in progress")


@task.command("block")
@_task_id_option
@click.pass_context
@handle_store_errors
def task_block(ctx, task_id) -> None:
    """Mark the task as blocked."""
    get_state(ctx).lifecycle.block(task_id)
    click.echo(f"Task {task_id} blocked")


@task.command("delete")
@_task_id_option
@click.pass_context
@handle_store_errors
def task_delete(ctx, task_id) -> None:
    """Delete a task with its steps and labels."""
    get_state(ctx).lifecycle.delete(task_id)
    click.echo(f"Task {task_id} deleted")


@task.command("prio")
@_task_id_option
@click.pass_context
@handle_store_errors
def task_prio(ctx, task_id) -> None:
    """Increase the priority of a task."""
    priority = get_state(ctx).lifecycle.increase_priority(task_id)
    click.echo(f"Task {task_id} priority: {priority.value}")


# =============================================================================
# step
# =============================================================================


@click.group()
def step() -> None:
    """Work on task steps."""


@step.command("add")
@_task_id_option
@click.argument("descr", nargs=-1, required=True)
@click.pass_context
@handle_store_errors
def step_add(ctx, task_id, descr) -> None:
    """Add a new step to a task."""
    step_id = get_state(ctx).lifecycle.add_step(task_id, _descr(descr))
    click.echo(f"Added step {step_id} to task {task_id}")


@step.command("done")
@_task_id_option
@click.option("-s", "--step", "step_id", type=int, required=True, help="The step id")
@click.pass_context
@handle_store_errors
def step_done(ctx, task_id, step_id) -> None:
    """Mark a step as completed."""
    get_state(ctx).lifecycle.complete_step(task_id, step_id)
    click.echo(f"Step {step_id} of task {task_id} done")


@step.command("delete")
@_task_id_option
@click.option("-s", "--step", "step_id", type=int, required=True, help="The step id")
@click.pass_context
@handle_store_errors
def step_delete(ctx, task_id, step_id) -> None:
    """Delete a step."""
    get_state(ctx).lifecycle.delete_step(task_id, step_id)
    click.echo(f"Step {step_id} of task {task_id} deleted")


# =============================================================================
# show
# =============================================================================


def _show_options(func: F) -> F:
    for opt in reversed(
        [
            click.option("-H", "--hidden", is_flag=True, help="Show hidden fields (story points)"),
            click.option("-l", "--label", "labels", multiple=True, help="Filter by label (repeatable)"),
            click.option("-r", "--reference", is_flag=True, help="Show references"),
            click.option("-s", "--steps", is_flag=True, help="Show open steps"),
        ]
    ):
        func = opt(func)
    return func


def _params(hidden: bool, labels: tuple[str, ...], reference: bool, steps: bool) -> ShowParams:
    return ShowParams(labels=tuple(labels), story_points=hidden, reference=reference, steps=steps)


def _run_view(ctx: click.Context, view: str, local: ShowParams, window: str | None = None) -> None:
    state = get_state(ctx)
    base: ShowParams = ctx.ensure_object(dict).get("SHOW", ShowParams())
    tw = None
    if view == "done":
        tw = TimeWindow.parse(window or getattr(state.settings, "default_window", "today"))
    params = ShowParams.for_view(view, base.merge(local), window=tw)
    report = build_report(state.task_store, params, state.clock.now(), view=view)
    render_report(report, console)


@click.group(invoke_without_command=True)
@_show_options
@click.option("-t", "--task", "task_id", type=int, default=None, help="Show a single task")
@click.pass_context
@handle_store_errors
def show(ctx, hidden, labels, reference, steps, task_id) -> None:
    """Show tasks (default view: all)."""
    obj = ctx.ensure_object(dict)
    obj["SHOW"] = _params(hidden, labels, reference, steps)
    if ctx.invoked_subcommand is not None:
        if task_id is not None:
            raise click.UsageError(
                f"--task cannot be combined with the {ctx.invoked_subcommand} view", ctx=ctx
            )
        return
    if task_id is not None:
        state = get_state(ctx)
        render_report(build_task_detail(state.task_store, task_id, labels=labels), console)
        return
    _run_view(ctx, "all", ShowParams())


@show.command("all")
@_show_options
@click.pass_context
@handle_store_errors
def show_all(ctx, hidden, labels, reference, steps) -> None:
    """Show tasks, except the completed ones."""
    _run_view(ctx, "all", _params(hidden, labels, reference, steps))


@show.command("short")
@_show_options
@click.pass_context
@handle_store_errors
def show_short(ctx, hidden, labels, reference, steps) -> None:
    """Show few tasks: high priority and/or in progress."""
    _run_view(ctx, "short", _params(hidden, labels, reference, steps))


@show.command("backlog")
@_show_options
@click.pass_context
@handle_store_errors
def show_backlog(ctx, hidden, labels, reference, steps) -> None:
    """Show the backlog, all the tasks in todo."""
    _run_view(ctx, "backlog", _params(hidden, labels, reference, steps))


@show.command("work")
@_show_options
@click.pass_context
@handle_store_errors
def show_work(ctx, hidden, labels, reference, steps) -> None:
    """Show the tasks that are in progress."""
    _run_view(ctx, "work", _params(hidden, labels, reference, steps))


@show.command("done")
@_show_options
@click.option("-T", "--time", "window", type=WINDOW_CHOICE, default=None, help="Time window")
@click.pass_context
@handle_store_errors
def show_done(ctx, hidden, labels, reference, steps, window) -> None:
    """Show completed tasks within a time window (today, yesterday, week, month)."""
    _run_view(ctx, "done", _params(hidden, labels, reference, steps), window)
