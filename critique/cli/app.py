"""Critique CLI application using Typer."""

import asyncio
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from PIL import Image, UnidentifiedImageError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from critique import __version__
from critique.config import settings
from critique.core.annotations import AnnotationStore, JobManager
from critique.core.capture import CaptureEngine, ImageSurface, RenderSurface
from critique.core.gallery import GalleryRenderer
from critique.core.users import UserDirectory
from critique.core.viewer.automation import ViewerAutomation
from critique.db.session import AsyncSessionLocal, close_db, init_db
from critique.storage.image_store import HttpImageStore
from critique.storage.local_cache import LocalCache
from critique.utils.exceptions import CritiqueError
from critique.utils.logging import configure_logging

T = TypeVar("T")

app = typer.Typer(
    name="critique",
    help="Critique - screenshot review and annotation for 3D model viewers",
    add_completion=False,
)
console = Console()

UserOption = Annotated[
    str | None,
    typer.Option("--user", "-u", envvar="CRITIQUE_USER", help="Reviewer access token"),
]
JobOption = Annotated[
    str | None,
    typer.Option("--job", "-j", help="Job id (defaults to the current job)"),
]


def version_callback(value: bool) -> None:
    """Display version and exit."""
    if value:
        console.print(f"[bold cyan]Critique[/bold cyan] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Critique - screenshot review and annotation for 3D model viewers."""
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        stream=sys.stderr,
    )


def run(action: Callable[[], Awaitable[T]]) -> T:
    """
    Run an async command body, reporting failures the same way for every command.

    Raises:
        typer.Exit: 1 on a review error, 130 on Ctrl+C
    """
    try:
        return asyncio.run(action())  # type: ignore[arg-type]
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Cancelled by user (Ctrl+C)[/yellow]")
        raise typer.Exit(code=130) from None
    except CritiqueError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        raise typer.Exit(code=1) from None


@asynccontextmanager
async def open_store(user_token: str | None, job_id: str | None) -> AsyncIterator[AnnotationStore]:
    """Build an AnnotationStore for the acting user and job."""
    user = UserDirectory().resolve(user_token)
    if user is None:
        console.print("[bold red]❌ Unknown user token[/bold red]")
        raise typer.Exit(code=1)

    await init_db()
    try:
        cache = LocalCache(AsyncSessionLocal)
        jobs = JobManager(cache)
        if job_id:
            await jobs.use_job(job_id)
        else:
            job_id = await jobs.current_job_id()
        yield await AnnotationStore.open(job_id, user, HttpImageStore(), cache)
    finally:
        await close_db()


def print_gallery(renderer: GalleryRenderer) -> None:
    """Render the visible gallery page as a table."""
    store = renderer.store
    if renderer.storage_notice:
        console.print(
            "[yellow]⚠️  Cloud storage unavailable: some screenshots are stored locally only[/yellow]"
        )
    if renderer.is_empty:
        console.print("\n[dim]No screenshots yet. Run 'critique capture' to add one.[/dim]\n")
        return

    table = Table(title=f"Screenshots for {store.job_id}")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Created", style="dim")
    table.add_column("By")
    table.add_column("Model", style="cyan")
    table.add_column("Comments", justify="right")
    table.add_column("Tags")
    table.add_column("Status")

    for item in renderer.visible_items:
        chips = " ".join(
            f"[{chip.text_color} on {chip.color}] {chip.name} [/]" for chip in item.tags
        )
        status = "[green]Resolved[/green]" if item.is_resolved else "[yellow]Open[/yellow]"
        if not item.durably_stored:
            status += " [red](local)[/red]"
        table.add_row(
            str(item.screenshot_id),
            item.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            item.created_by,
            item.model_version,
            str(item.comment_count),
            chips or "-",
            status,
        )

    console.print(table)
    if renderer.hidden_count:
        console.print(f"[dim]{renderer.hidden_count} more hidden. Use --all to show them.[/dim]")


@app.command()
def capture(
    source: Annotated[
        str,
        typer.Argument(help="Rendered frame (image file) or review page URL"),
    ],
    x1: Annotated[float, typer.Argument(help="Drag start x")],
    y1: Annotated[float, typer.Argument(help="Drag start y")],
    x2: Annotated[float, typer.Argument(help="Drag end x")],
    y2: Annotated[float, typer.Argument(help="Drag end y")],
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model label (defaults to the viewer's src)"),
    ] = None,
    unreadable: Annotated[
        bool,
        typer.Option("--unreadable", help="Treat the frame's pixel buffer as inaccessible"),
    ] = False,
    headless: Annotated[
        bool, typer.Option("--headless/--headed", help="Browser mode for URLs")
    ] = True,
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """
    Capture a selected region and add it to the gallery.

    Examples:
      critique capture frame.png 100 80 420 300 --model chair-v3.glb
      critique capture https://review.example.com/model/42 10 10 400 300
    """
    engine = CaptureEngine()

    async def capture_and_store(surface: RenderSurface, label: str) -> None:
        rect = engine.prepare(surface, x1, y1, x2, y2)
        async with open_store(user, job) as store:
            outcome = await engine.capture(surface, rect, label)
            screenshot = await store.create(outcome.image, label, outcome.strategy.value)

        strategy_style = "yellow" if outcome.degraded else "green"
        storage = (
            "[green]Cloud[/green]" if screenshot.durably_stored else "[red]Local only[/red]"
        )
        console.print(
            Panel.fit(
                f"[bold green]✓ Screenshot saved[/bold green]\n\n"
                f"ID: {screenshot.id}\n"
                f"Job: {screenshot.job_id}\n"
                f"Area: {rect.width}x{rect.height}px at ({rect.x}, {rect.y})\n"
                f"Strategy: [{strategy_style}]{outcome.strategy.value}[/{strategy_style}]\n"
                f"Storage: {storage}",
                border_style="green",
            )
        )

    async def run_capture() -> None:
        if source.startswith(("http://", "https://")):
            async with ViewerAutomation(headless=headless) as viewer:
                surface = await viewer.open(source)
                label = model or await viewer.model_label()
                await capture_and_store(surface, label)
            return

        path = Path(source)
        try:
            frame = Image.open(path)
            frame.load()
        except (OSError, UnidentifiedImageError) as e:
            console.print(f"[bold red]❌ Cannot read frame {path}:[/bold red] {e}")
            raise typer.Exit(code=1) from None
        await capture_and_store(ImageSurface(frame, readable=not unreadable), model or path.stem)

    run(run_capture)


@app.command(name="list")
def list_screenshots(
    show_all: Annotated[
        bool, typer.Option("--all", "-a", help="Show every screenshot, not just the first page")
    ] = False,
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """
    List screenshots, unresolved first and newest first.

    Examples:
      critique list
      critique list --all
    """

    async def run_list() -> None:
        async with open_store(user, job) as store:
            renderer = GalleryRenderer(store)
            if show_all:
                renderer.show_more()
            print_gallery(renderer)
            renderer.close()

    run(run_list)


@app.command()
def show(
    screenshot_id: Annotated[int, typer.Argument(help="Screenshot id")],
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Show a screenshot's details and comment thread."""

    async def run_show() -> None:
        async with open_store(user, job) as store:
            screenshot = store.get(screenshot_id)
            tag_names = ", ".join(t.name for t in store.tags_on(screenshot)) or "-"
            console.print(
                Panel.fit(
                    f"[bold cyan]Screenshot {screenshot.id}[/bold cyan]\n\n"
                    f"Model: {screenshot.model_version}\n"
                    f"By: {screenshot.created_by} ({screenshot.created_by_role.value})\n"
                    f"Created: {screenshot.created_at:%Y-%m-%d %H:%M:%S}\n"
                    f"Tags: {tag_names}\n"
                    f"Resolved: {'yes' if screenshot.is_resolved else 'no'}\n"
                    f"Image: {screenshot.image_ref[:80]}\n"
                    f"Stored as: {screenshot.storage_key or 'inline only (not uploaded)'}",
                    border_style="cyan",
                )
            )
            if not screenshot.comments:
                console.print("[dim]No comments yet[/dim]")
            for comment in screenshot.comments:
                console.print(
                    f"[dim]{comment.id}[/dim] [bold]{comment.author}[/bold] "
                    f"[dim]({comment.author_role.value}, {comment.created_at:%Y-%m-%d %H:%M})[/dim]: "
                    f"{comment.text}"
                )

    run(run_show)


@app.command()
def comment(
    screenshot_id: Annotated[int, typer.Argument(help="Screenshot id")],
    text: Annotated[str, typer.Argument(help="Comment text")],
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Add a comment to a screenshot."""

    async def run_comment() -> None:
        async with open_store(user, job) as store:
            added = await store.add_comment(screenshot_id, text)
        console.print(f"[green]✓ Comment {added.id} added by {added.author}[/green]")

    run(run_comment)


@app.command(name="delete-comment")
def delete_comment(
    screenshot_id: Annotated[int, typer.Argument(help="Screenshot id")],
    comment_id: Annotated[int, typer.Argument(help="Comment id")],
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Delete a comment (admins: any comment, clients: their own)."""

    async def run_delete_comment() -> None:
        async with open_store(user, job) as store:
            removed = await store.delete_comment(screenshot_id, comment_id)
        if removed:
            console.print(f"[green]✓ Comment {comment_id} deleted[/green]")
        else:
            console.print(f"[dim]Comment {comment_id} not found[/dim]")

    run(run_delete_comment)


@app.command()
def tags(
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """List the tags available to the acting reviewer."""

    async def run_tags() -> None:
        async with open_store(user, job) as store:
            renderer = GalleryRenderer(store)
            chips = renderer.available_tags()
            renderer.close()

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Tag")
        table.add_column("Color")
        table.add_column("Client visible")
        for chip in chips:
            table.add_row(
                str(chip.tag_id),
                f"[{chip.text_color} on {chip.color}] {chip.name} [/]",
                chip.color,
                "✓" if chip.client_visible else "-",
            )
        console.print(table)

    run(run_tags)


@app.command(name="tag-toggle")
def tag_toggle(
    screenshot_id: Annotated[int, typer.Argument(help="Screenshot id")],
    tag_id: Annotated[int, typer.Argument(help="Tag id")],
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Apply a tag to a screenshot, or remove it if already applied."""

    async def run_toggle() -> None:
        async with open_store(user, job) as store:
            added = await store.toggle_tag(screenshot_id, tag_id)
            name = store.get_tag(tag_id).name
        verb = "added to" if added else "removed from"
        console.print(f"[green]✓ Tag '{name}' {verb} screenshot {screenshot_id}[/green]")

    run(run_toggle)


@app.command(name="tag-create")
def tag_create(
    name: Annotated[str, typer.Argument(help="Tag name (up to 20 characters)")],
    color: Annotated[str, typer.Argument(help="Hex color, e.g. #17a2b8")],
    client_visible: Annotated[
        bool, typer.Option("--client-visible", help="Let clients see and apply the tag")
    ] = False,
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Create a tag (admin only)."""

    async def run_create() -> None:
        async with open_store(user, job) as store:
            tag = await store.create_tag(name, color, client_visible)
        console.print(f"[green]✓ Tag {tag.id} '{tag.name}' created[/green]")

    run(run_create)


@app.command(name="tag-visibility")
def tag_visibility(
    tag_id: Annotated[int, typer.Argument(help="Tag id")],
    visible: Annotated[
        bool, typer.Option("--visible/--hidden", help="Client visibility")
    ] = True,
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Change whether clients can see a tag (admin only)."""

    async def run_visibility() -> None:
        async with open_store(user, job) as store:
            tag = await store.set_tag_visibility(tag_id, visible)
        state = "visible to" if tag.client_visible else "hidden from"
        console.print(f"[green]✓ Tag '{tag.name}' is now {state} clients[/green]")

    run(run_visibility)


@app.command(name="tag-delete")
def tag_delete(
    tag_id: Annotated[int, typer.Argument(help="Tag id")],
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Delete a tag and remove it from every screenshot (admin only)."""

    async def run_tag_delete() -> None:
        async with open_store(user, job) as store:
            affected = await store.delete_tag(tag_id)
        console.print(f"[green]✓ Tag {tag_id} deleted ({affected} screenshots updated)[/green]")

    run(run_tag_delete)


@app.command()
def resolve(
    screenshot_id: Annotated[int, typer.Argument(help="Screenshot id")],
    reopen: Annotated[bool, typer.Option("--reopen", help="Mark as open again")] = False,
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Mark a screenshot resolved, or reopen it (admin only)."""

    async def run_resolve() -> None:
        async with open_store(user, job) as store:
            await store.set_resolved(screenshot_id, not reopen)
        state = "reopened" if reopen else "resolved"
        console.print(f"[green]✓ Screenshot {screenshot_id} {state}[/green]")

    run(run_resolve)


@app.command()
def delete(
    screenshot_id: Annotated[int, typer.Argument(help="Screenshot id")],
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Delete a screenshot (admin only)."""

    async def run_delete() -> None:
        async with open_store(user, job) as store:
            remote_deleted = await store.delete(screenshot_id)
        console.print(f"[green]✓ Screenshot {screenshot_id} deleted[/green]")
        if not remote_deleted:
            console.print("[yellow]⚠️  Remote image was not removed[/yellow]")

    run(run_delete)


@app.command()
def clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    user: UserOption = None,
    job: JobOption = None,
) -> None:
    """Delete every screenshot in the job (admin only)."""
    if not yes and not typer.confirm("Delete all screenshots in this job?"):
        raise typer.Exit()

    async def run_clear() -> None:
        async with open_store(user, job) as store:
            result = await store.clear_all()
        console.print(
            f"[green]✓ Removed {result.removed} screenshots[/green] "
            f"(remote deleted: {result.remote_deleted}, failed: {result.remote_failed}, "
            f"local only: {result.inline_only})"
        )

    run(run_clear)


@app.command()
def session(
    action: Annotated[
        str,
        typer.Argument(help="Action to perform: 'status', 'new', 'use <job>' or 'forget <job>'"),
    ] = "status",
    job_id: Annotated[
        str | None,
        typer.Argument(help="Job id for use/forget"),
    ] = None,
    user: UserOption = None,
) -> None:
    """
    Manage review jobs and show the acting reviewer.

    Examples:
      critique session
      critique session new
      critique session use job-1718000000000
      critique session forget job-1718000000000
    """
    reviewer = UserDirectory().resolve(user)
    if reviewer is None:
        console.print("[bold red]❌ Unknown user token[/bold red]")
        raise typer.Exit(code=1)

    async def run_session() -> None:
        await init_db()
        jobs = JobManager(LocalCache(AsyncSessionLocal))

        try:
            await manage_jobs(jobs)
        finally:
            await close_db()

    async def manage_jobs(jobs: JobManager) -> None:
        if action == "status":
            console.print(
                f"\n[bold]Reviewer:[/bold] {reviewer.name} "
                f"({reviewer.role.value}{', can delete' if reviewer.can_delete else ''})\n"
            )
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Job")
            table.add_column("Screenshots", justify="right")
            table.add_column("Current")
            for info in await jobs.list_jobs():
                table.add_row(
                    info.job_id,
                    str(info.screenshot_count),
                    "[green]✓[/green]" if info.is_current else "",
                )
            console.print(table)
        elif action == "new":
            console.print(f"[green]✓ Started {await jobs.start_new_job()}[/green]")
        elif action in ("use", "forget") and job_id:
            if action == "use":
                await jobs.use_job(job_id)
                console.print(f"[green]✓ Now reviewing {job_id}[/green]")
            elif await jobs.forget_job(job_id):
                console.print(f"[green]✓ Forgot cached metadata for {job_id}[/green]")
            else:
                console.print(f"[dim]No cached metadata for {job_id}[/dim]")
        else:
            console.print(f"[red]❌ Unknown or incomplete action: {action}[/red]")
            console.print("Valid actions: status, new, use <job>, forget <job>")
            raise typer.Exit(code=1)

    run(run_session)


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Bind port")] = 8000,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Run the blob storage and review API."""
    import uvicorn

    console.print(
        Panel.fit(
            f"[bold cyan]Critique API[/bold cyan]\n\n"
            f"Listening on http://{host}:{port}\n"
            f"Blobs: {settings.blob_dir}",
            border_style="cyan",
        )
    )
    uvicorn.run("critique.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
