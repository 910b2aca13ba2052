"""tasksync CLI main entry point."""

from __future__ import annotations

from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from tasksync.cli._helpers import (
    configure_logging,
    get_config,
    get_orchestrator,
    get_storage,
    output_result,
    run_async,
)
from tasksync.core.task import SyncStatus, Task
from tasksync.services.task_service import TaskService
from tasksync.sync.protocol import SyncResult

app = typer.Typer(
    name="tasksync",
    help="Offline task list that syncs with a remote server",
    no_args_is_help=True,
)

console = Console()

_STATUS_STYLES = {
    SyncStatus.PENDING: "yellow",
    SyncStatus.SYNCED: "green",
    SyncStatus.ERROR: "red",
}

JsonOption = Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    configure_logging(verbose)


def _exit_if_error(data: dict[str, Any], as_json: bool) -> None:
    if "error" in data:
        output_result(data, as_json)
        raise typer.Exit(1)


@app.command()
def add(
    title: Annotated[str, typer.Argument(help="Task title")],
    description: Annotated[
        str, typer.Option("--description", "-d", help="Longer description")
    ] = "",
    json_output: JsonOption = False,
) -> None:
    """Create a task locally and queue it for sync.

    Examples:
        tasksync add "Buy milk"
        tasksync add "Write report" -d "Q3 numbers"
    """

    async def _add() -> dict[str, Any]:
        service = TaskService(await get_storage(get_config()))
        task = await service.create_task(title=title, description=description)
        return {"message": f"Created task {task.id}", "task": task.to_dict()}

    output_result(run_async(_add()), json_output)


@app.command()
def edit(
    task_id: Annotated[str, typer.Argument(help="Task id")],
    title: Annotated[str | None, typer.Option("--title", "-t", help="New title")] = None,
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="New description")
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Edit a task's title or description."""
    changes: dict[str, Any] = {}
    if title is not None:
        changes["title"] = title
    if description is not None:
        changes["description"] = description
    if not changes:
        typer.secho("Nothing to change. Pass --title or --description.", fg=typer.colors.YELLOW)
        raise typer.Exit(1)

    async def _edit() -> dict[str, Any]:
        service = TaskService(await get_storage(get_config()))
        task = await service.update_task(task_id, **changes)
        if task is None:
            return {"error": f"Task {task_id} not found"}
        return {"message": f"Updated task {task.id}", "task": task.to_dict()}

    data = run_async(_edit())
    _exit_if_error(data, json_output)
    output_result(data, json_output)


@app.command()
def done(
    task_id: Annotated[str, typer.Argument(help="Task id")],
    undo: Annotated[bool, typer.Option("--undo", help="Mark as not completed")] = False,
    json_output: JsonOption = False,
) -> None:
    """Mark a task completed (or not, with --undo)."""

    async def _done() -> dict[str, Any]:
        service = TaskService(await get_storage(get_config()))
        task = await service.update_task(task_id, completed=not undo)
        if task is None:
            return {"error": f"Task {task_id} not found"}
        state = "open" if undo else "completed"
        return {"message": f"Task {task.id} marked {state}", "task": task.to_dict()}

    data = run_async(_done())
    _exit_if_error(data, json_output)
    output_result(data, json_output)


@app.command()
def rm(
    task_id: Annotated[str, typer.Argument(help="Task id")],
    json_output: JsonOption = False,
) -> None:
    """Delete a task. The deletion is synced before the task is purged."""

    async def _rm() -> dict[str, Any]:
        service = TaskService(await get_storage(get_config()))
        if not await service.delete_task(task_id):
            return {"error": f"Task {task_id} not found"}
        return {"message": f"Deleted task {task_id}"}

    data = run_async(_rm())
    _exit_if_error(data, json_output)
    output_result(data, json_output)


@app.command("list")
def list_tasks(
    unsynced: Annotated[
        bool, typer.Option("--unsynced", "-u", help="Only tasks that still need sync")
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """List tasks with their sync state."""

    async def _list() -> list[Task]:
        service = TaskService(await get_storage(get_config()))
        if unsynced:
            return await service.get_tasks_needing_sync()
        return await service.get_all_tasks()

    tasks = run_async(_list())
    if json_output:
        output_result({"tasks": [t.to_dict() for t in tasks], "count": len(tasks)}, True)
        return
    if not tasks:
        console.print("[yellow]No tasks found.[/yellow]")
        return

    table = Table(title=f"Tasks ({len(tasks)})")
    table.add_column("ID", style="bright_black", no_wrap=True)
    table.add_column("Title")
    table.add_column("Done", justify="center")
    table.add_column("Sync")
    for task in tasks:
        style = _STATUS_STYLES[task.sync_status]
        title = f"[strike]{task.title}[/strike]" if task.is_deleted else task.title
        table.add_row(
            task.id[:8],
            title,
            "x" if task.completed else "",
            f"[{style}]{task.sync_status.value}[/{style}]",
        )
    console.print(table)


@app.command()
def show(
    task_id: Annotated[str, typer.Argument(help="Task id")],
    json_output: JsonOption = False,
) -> None:
    """Show a task and its queued mutations."""

    async def _show() -> dict[str, Any]:
        storage = await get_storage(get_config())
        task = await storage.get_task(task_id)
        if task is None:
            return {"error": f"Task {task_id} not found"}
        queue = await storage.get_queue_items(task_id)
        return {
            "task": task.to_dict(),
            "queue": [
                {
                    "id": item.id,
                    "operation": item.operation.value,
                    "created_at": item.created_at.isoformat(),
                    "retry_count": item.retry_count,
                    "error_message": item.error_message,
                }
                for item in queue
            ],
        }

    data = run_async(_show())
    _exit_if_error(data, json_output)
    if json_output:
        output_result(data, True)
        return

    task = data["task"]
    console.print(f"[bold]{task['title']}[/bold] ({task['id']})")
    if task["description"]:
        console.print(task["description"])
    console.print(
        f"sync: {task['sync_status']}  server_id: {task['server_id'] or '-'}  "
        f"last synced: {task['last_synced_at'] or 'never'}"
    )
    for item in data["queue"]:
        error = f"  [red]{item['error_message']}[/red]" if item["error_message"] else ""
        console.print(
            f"  queued {item['operation']} at {item['created_at']} "
            f"(retries: {item['retry_count']}){error}"
        )


@app.command()
def sync(
    skip_check: Annotated[
        bool, typer.Option("--skip-check", help="Do not probe connectivity first")
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """Push queued changes to the server.

    Checks that the server is reachable first and exits with status 1 if
    it is not.
    """

    async def _sync() -> dict[str, Any]:
        orchestrator = await get_orchestrator(get_config())
        if not skip_check and not await orchestrator.check_connectivity():
            return {"error": "Server not reachable. Please try again later."}
        result: SyncResult = await orchestrator.sync()
        return result.to_dict()

    data = run_async(_sync())
    _exit_if_error(data, json_output)
    if json_output:
        output_result(data, True)
    else:
        color = typer.colors.GREEN if data["success"] else typer.colors.YELLOW
        typer.secho(
            f"Synced {data['synced_items']}, failed {data['failed_items']}", fg=color
        )
        for error in data["errors"]:
            typer.secho(
                f"  {error['task_id'] or 'sync'} ({error['operation']}): {error['error']}",
                fg=typer.colors.RED,
            )
    if not data["success"]:
        raise typer.Exit(2)


@app.command()
def status(json_output: JsonOption = False) -> None:
    """Show connectivity, queued items and the last successful sync."""

    async def _status() -> dict[str, Any]:
        orchestrator = await get_orchestrator(get_config())
        report = await orchestrator.get_status()
        return report.to_dict()

    data = run_async(_status())
    if json_output:
        output_result(data, True)
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Server", "[green]online[/green]" if data["online"] else "[red]offline[/red]")
    table.add_row("Pending", str(data["pending"]))
    table.add_row("Failed", f"[red]{data['failed']}[/red]" if data["failed"] else "0")
    table.add_row("Last sync", data["last_sync"] or "never")
    console.print(table)


@app.command()
def retry(
    task_id: Annotated[
        str | None, typer.Argument(help="Task id (default: all failed tasks)")
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Re-enqueue permanently failed tasks for the next sync."""

    async def _retry() -> dict[str, Any]:
        orchestrator = await get_orchestrator(get_config())
        count = await orchestrator.requeue_failed(task_id)
        return {"requeued": count, "message": f"Re-enqueued {count} task(s)"}

    output_result(run_async(_retry()), json_output)


@app.command()
def purge(json_output: JsonOption = False) -> None:
    """Remove deleted tasks whose deletion the server has confirmed."""

    async def _purge() -> dict[str, Any]:
        storage = await get_storage(get_config())
        count = await storage.purge_synced_deletions()
        return {"purged": count, "message": f"Purged {count} deleted task(s)"}

    output_result(run_async(_purge()), json_output)


@app.command("config")
def show_config(json_output: JsonOption = False) -> None:
    """Show the effective configuration."""
    config = get_config()
    data = config.to_dict()
    if json_output:
        output_result(data, True)
        return
    console.print(f"[bold]Config:[/bold] {config.config_path}")
    console.print(f"Database: {config.db_path}")
    for section in ("remote", "sync"):
        console.print(f"[bold]\\[{section}][/bold]")
        for key, value in data[section].items():
            console.print(f"  {key} = {value}")


if __name__ == "__main__":
    app()
