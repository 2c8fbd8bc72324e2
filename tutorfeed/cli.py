import asyncio
import json
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

console = Console()
cli_app = typer.Typer(name="tutorfeed-admin", help="Tutor activity feed administrative CLI")


def _run_async(coro):
    """Run async code from sync CLI context."""
    return asyncio.run(coro)


async def _ensure_db():
    from tutorfeed.core.database import init_db
    await init_db()


@cli_app.command("show-feed")
def show_feed(
    teacher: int = typer.Option(..., "--teacher", help="Teacher (tenant) id"),
    limit: int = typer.Option(20, "--limit", help="Page size (1-50)"),
    cursor: str = typer.Option(None, "--cursor", help="Resume token from a previous page"),
    categories: str = typer.Option(None, "--categories", help="Comma-separated categories, e.g. PAYMENT,LESSON"),
    student: int = typer.Option(None, "--student", help="Only events for this student id"),
):
    """Print one page of a teacher's activity feed."""
    async def _list():
        await _ensure_db()
        from tutorfeed.services.feed import ActivityFeedService
        from tutorfeed.services.feed.planner import parse_categories
        from tutorfeed.services.feed.types import FeedQuery

        service = ActivityFeedService()
        query = FeedQuery(
            limit=limit,
            cursor=cursor,
            categories=parse_categories(categories),
            student_id=student,
        )
        return await service.list_feed(teacher, query)

    page = _run_async(_list())

    if not page.items:
        console.print("[dim]No activity found.[/dim]")
        return

    table = Table(title=f"Activity feed, teacher {teacher}")
    table.add_column("When", style="cyan")
    table.add_column("Source")
    table.add_column("Category", style="green")
    table.add_column("Title")
    table.add_column("Student")
    table.add_column("Status")

    for item in page.items:
        status_style = "red" if item.status.value == "FAILED" else "green"
        table.add_row(
            item.occurred_at.strftime("%Y-%m-%d %H:%M:%S"),
            item.source_record_kind.value,
            item.category.value,
            item.title,
            item.student_name or "-",
            f"[{status_style}]{item.status.value}[/{status_style}]",
        )

    console.print(table)
    if page.next_cursor:
        console.print(f"\n  Next cursor: [bold]{page.next_cursor}[/bold]\n")
    else:
        console.print("\n  [dim]End of feed.[/dim]\n")


@cli_app.command("log-event")
def log_event(
    teacher: int = typer.Option(..., "--teacher", help="Teacher (tenant) id"),
    category: str = typer.Option(..., "--category", help="LESSON, STUDENT, HOMEWORK or SETTINGS"),
    action: str = typer.Option(..., "--action", help="Machine action name, e.g. LESSON_CREATED"),
    title: str = typer.Option(..., "--title", help="Human-readable title"),
    student: int = typer.Option(None, "--student", help="Related student id"),
    lesson: int = typer.Option(None, "--lesson", help="Related lesson id"),
    payload: str = typer.Option(None, "--payload", help="JSON object stored with the event"),
    dedupe_key: str = typer.Option(None, "--dedupe-key", help="Idempotency key"),
    occurred_at: datetime = typer.Option(None, "--occurred-at", help="Event time (defaults to now)"),
):
    """Append an event to the activity log."""
    from pydantic import ValidationError

    from tutorfeed.schemas.activity_feed import ActivityEventCreate

    try:
        event = ActivityEventCreate(
            category=category.strip().upper(),
            action=action,
            title=title,
            student_id=student,
            lesson_id=lesson,
            payload=json.loads(payload) if payload else None,
            dedupe_key=dedupe_key,
            occurred_at=occurred_at,
        )
    except (ValidationError, ValueError) as exc:
        console.print(f"[bold red]Invalid event:[/bold red] {exc}")
        raise typer.Exit(code=2)

    async def _log():
        await _ensure_db()
        from tutorfeed.services.feed import ActivityLogWriter
        return await ActivityLogWriter().log_event(teacher, event)

    row = _run_async(_log())

    if row is None:
        console.print(f"[yellow]Already recorded (dedupe key '{dedupe_key}').[/yellow]")
        return
    console.print(f"[bold green]Event recorded.[/bold green] id={row.id}")


def main():
    cli_app()


if __name__ == "__main__":
    main()
