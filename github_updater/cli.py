"""
Command-line interface for GitHub Updater
"""

import asyncio

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, DownloadColumn, Progress, TextColumn, TimeRemainingColumn
from rich.table import Table

from github_updater import __version__
from github_updater.core.config import UpdaterSettings, setup_logging
from github_updater.core.exceptions import UpdaterError
from github_updater.update.models import (
    DownloadCompleted,
    DownloadFailed,
    DownloadProgressed,
    DownloadStarted,
    HandoffLaunched,
    InstallationFailed,
    InstallationStarted,
)
from github_updater.update.updater import Updater

console = Console()


def _build_updater(ctx: click.Context) -> Updater:
    options = ctx.obj
    overrides = {
        "github_owner": options["owner"],
        "github_repo": options["repo"],
        "github_token": options["token"],
        "current_version": options["current_version"],
    }
    try:
        settings = UpdaterSettings(**{key: value for key, value in overrides.items() if value is not None})
        setup_logging("DEBUG" if options["verbose"] else settings.log_level)
        return Updater(settings=settings)
    except UpdaterError as e:
        raise click.ClickException(str(e))
    except ValidationError as e:
        missing = ", ".join(".".join(str(part) for part in error["loc"]) for error in e.errors())
        raise click.ClickException(f"Missing or invalid settings: {missing} (use --owner/--repo)")


@click.group()
@click.version_option(version=__version__)
@click.option("--owner", envvar="GITHUB_UPDATER_GITHUB_OWNER", help="GitHub user or organization")
@click.option("--repo", envvar="GITHUB_UPDATER_GITHUB_REPO", help="GitHub repository name")
@click.option("--token", envvar="GITHUB_UPDATER_GITHUB_TOKEN", default=None, help="GitHub access token")
@click.option("--current-version", default=None, help="Version of the installed application")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def main(ctx: click.Context, owner, repo, token, current_version, verbose: bool) -> None:
    """GitHub Updater - self-update client for GitHub Releases"""
    ctx.obj = {
        "owner": owner,
        "repo": repo,
        "token": token,
        "current_version": current_version,
        "verbose": verbose,
    }


@main.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Check for a newer release"""
    updater = _build_updater(ctx)

    try:
        cycle = asyncio.run(updater.check_for_updates())
    except UpdaterError as e:
        raise click.ClickException(str(e))

    if not cycle.update_available:
        console.print(f"✅ Up to date ([green]{cycle.current_version}[/green])")
        return

    source = "downloaded" if cycle.downloaded else "available"
    console.print(
        Panel.fit(
            f"[bold cyan]Update {source}[/bold cyan]\n"
            f"{cycle.current_version} → [green]{cycle.latest_version}[/green]",
            border_style="cyan",
        )
    )
    if cycle.changelog:
        console.print(escape(cycle.changelog))


@main.command()
@click.pass_context
def download(ctx: click.Context) -> None:
    """Check for a newer release and download it"""
    updater = _build_updater(ctx)

    async def run() -> bool:
        cycle = await updater.check_for_updates()
        if not cycle.update_available:
            console.print(f"✅ Up to date ([green]{cycle.current_version}[/green])")
            return True
        if cycle.downloaded:
            console.print(f"✅ Update {cycle.latest_version} already downloaded")
            return True

        with Progress(
            TextColumn("[cyan]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TimeRemainingColumn(),
            console=console,
        ) as progress:
            task_id = progress.add_task("Downloading", total=None)
            async for event in updater.download_update(cycle):
                if isinstance(event, DownloadStarted):
                    progress.update(task_id, description=f"Downloading {event.version}")
                elif isinstance(event, DownloadProgressed):
                    progress.update(task_id, completed=event.bytes_received, total=event.bytes_total or None)
                elif isinstance(event, DownloadCompleted):
                    console.print(f"✅ Update {event.latest_version} downloaded and staged")
                    return True
                elif isinstance(event, DownloadFailed):
                    console.print(f"[red]❌ {escape(str(event.error))}[/red]")
                    return False
        return False

    try:
        ok = asyncio.run(run())
    except UpdaterError as e:
        raise click.ClickException(str(e))
    if not ok:
        raise SystemExit(1)


@main.command()
@click.pass_context
def install(ctx: click.Context) -> None:
    """Launch the handoff process for the downloaded update"""
    updater = _build_updater(ctx)

    async def run() -> bool:
        async for event in updater.install_update():
            if isinstance(event, InstallationStarted):
                console.print(f"Installing {event.latest_version}...")
            elif isinstance(event, HandoffLaunched):
                console.print("✅ Handoff launched; the update applies when the application exits")
                return True
            elif isinstance(event, InstallationFailed):
                console.print(f"[red]❌ {escape(str(event.error))}[/red]")
                return False
        return False

    if not asyncio.run(run()):
        raise SystemExit(1)


@main.command()
@click.pass_context
def clean(ctx: click.Context) -> None:
    """Delete downloaded and staged update files"""
    updater = _build_updater(ctx)
    updater.delete_update_files()
    console.print("✅ Update files deleted")


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show updater paths and whether an update is downloaded"""
    updater = _build_updater(ctx)

    table = Table(title="GitHub Updater")
    table.add_column("Item", style="cyan")
    table.add_column("Value")

    table.add_row("Repository", f"{updater.github_owner}/{updater.github_repo}")
    table.add_row("Current version", str(updater.current_version))
    for name, path in updater.paths.items():
        table.add_row(name.replace("_", " ").capitalize(), str(path))

    if updater.is_update_downloaded():
        try:
            downloaded = f"[green]{updater.cache.read_cached_version()}[/green]"
        except UpdaterError as e:
            downloaded = f"[red]{escape(str(e))}[/red]"
        table.add_row("Downloaded update", downloaded)
    else:
        table.add_row("Downloaded update", "none")

    console.print(table)


if __name__ == "__main__":
    main()
