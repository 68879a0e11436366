"""Command line entry point for maintenance tasks."""

import asyncio
from collections.abc import Awaitable, Callable
from urllib.parse import urlparse

import structlog
import typer

from spacenote_keys.config import Config
from spacenote_keys.core.core import Core
from spacenote_keys.core.modules.rename.models import RenameKind, RenameResult
from spacenote_keys.errors import UserError
from spacenote_keys.logging import setup_logging

app = typer.Typer(
    name="spacenote-keys",
    help="Maintenance commands for SpaceNote natural keys",
    no_args_is_help=True,
)

logger = structlog.get_logger(__name__)


def _run[T](action: Callable[[Core], Awaitable[T]]) -> T:
    """Start the core (indexes, admin bootstrap), run action, shut down."""
    config = Config()
    setup_logging(config.debug)

    async def _main() -> T:
        core = Core(config)
        async with core.lifespan():
            return await action(core)

    try:
        return asyncio.run(_main())
    except UserError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _echo_rename(result: RenameResult) -> None:
    typer.echo(f"Renamed {result.kind} '{result.old_value}' to '{result.new_value}'")
    for relationship, count in result.updated.items():
        typer.echo(f"  {relationship}: {count}")


@app.command("init")
def init() -> None:
    """Create indexes and the configured admin user."""

    async def _init(core: Core) -> None:
        # on_start already did the work
        logger.info("init_complete", users=await core.services.user.count_users())

    _run(_init)
    typer.echo("Initialized")


@app.command("status")
def status() -> None:
    """Show the database and document counts."""

    async def _status(core: Core) -> dict[str, int]:
        services = core.services
        return {
            "users": await services.user.count_users(),
            "sessions": await services.session.count_sessions(),
            "spaces": await services.space.count_spaces(),
            "notes": await services.note.count_notes(),
            "attachments": await services.attachment.count_attachments(),
        }

    counts = _run(_status)
    parsed = urlparse(Config().database_url)
    typer.echo(f"Database: {parsed.hostname}{parsed.path}")
    for name, count in counts.items():
        typer.echo(f"  {name}: {count}")


@app.command("purge-sessions")
def purge_sessions() -> None:
    """Delete expired sessions."""

    async def _purge(core: Core) -> int:
        return await core.services.session.purge_expired_sessions()

    deleted = _run(_purge)
    typer.echo(f"Deleted {deleted} expired session(s)")


@app.command("rename-user")
def rename_user(
    old_username: str = typer.Argument(..., help="Current username"),
    new_username: str = typer.Argument(..., help="New username"),
) -> None:
    """Rename a user and every reference to them."""

    async def _rename(core: Core) -> RenameResult:
        return await core.services.rename.rename(RenameKind.USERNAME, old_username, new_username)

    _echo_rename(_run(_rename))


@app.command("rename-space")
def rename_space(
    old_slug: str = typer.Argument(..., help="Current space slug"),
    new_slug: str = typer.Argument(..., help="New space slug"),
) -> None:
    """Change a space slug, keeping note and attachment numbers."""

    async def _rename(core: Core) -> RenameResult:
        return await core.services.rename.rename(RenameKind.SPACE_SLUG, old_slug, new_slug)

    _echo_rename(_run(_rename))


if __name__ == "__main__":
    app()
