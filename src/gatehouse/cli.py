"""Command-line interface for Gatehouse.

Provides commands for running the HTTP surface and for the maintenance
tasks an operator needs before the first admin can sign in.
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Any, NoReturn

import click

from gatehouse.core.config import get_settings
from gatehouse.core.logging import configure_logging, get_logger
from gatehouse.domain.entities.audit_entry import SYSTEM_ACTOR
from gatehouse.domain.entities.role import ADMIN_ROLE
from gatehouse.domain.entities.user import UserData
from gatehouse.domain.exceptions import GatehouseError


def _run_with_app(action: Callable[[Any], Awaitable[None]]) -> None:
    """Build the application state, run ``action(app)`` and release the store."""
    from gatehouse.infrastructure.api import bootstrap, create_app

    settings = get_settings()
    configure_logging(settings)
    logger = get_logger(__name__)

    async def run() -> None:
        app = create_app(settings=settings)
        try:
            await bootstrap(app)
            await action(app)
        finally:
            await app.state.gateway.close()

    try:
        asyncio.run(run())
    except GatehouseError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error("Command failed", error=e.message)
        raise SystemExit(1)


@click.group()
@click.version_option(version="0.1.0", prog_name="Gatehouse")
def cli() -> None:
    """Gatehouse - role and module based access control."""


@cli.command()
@click.option("--host", type=str, default=None, help="Host to bind to (overrides config)")
@click.option("--port", type=int, default=None, help="Port to bind to (overrides config)")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the Gatehouse HTTP server."""
    import uvicorn

    settings = get_settings()
    bind_host = host or settings.host
    bind_port = port or settings.port

    configure_logging(settings)
    logger = get_logger(__name__)
    logger.info(
        "Starting Gatehouse server",
        host=bind_host,
        port=bind_port,
        reload=reload,
        environment=settings.environment,
    )

    uvicorn.run(
        "gatehouse.infrastructure.api.app:create_app",
        factory=True,
        host=bind_host,
        port=bind_port,
        reload=reload,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


@cli.command()
@click.option(
    "--modules/--no-modules",
    default=True,
    help="Also seed the default module catalog",
)
def seed(modules: bool) -> None:
    """Seed the system roles and, optionally, the default modules."""

    async def action(app: Any) -> None:
        roles = app.state.role_registry.roles
        click.echo(f"Roles: {', '.join(r.value for r in roles)}")
        if modules:
            created = await app.state.module_registry.initialize_default_modules(SYSTEM_ACTOR)
            click.echo(f"Modules created: {len(created)}")

    _run_with_app(action)


@cli.command("create-admin")
@click.argument("email")
@click.argument("display_name")
def create_admin(email: str, display_name: str) -> None:
    """Provision an administrator ahead of their first login."""

    async def action(app: Any) -> None:
        registry = app.state.role_registry
        modules = [m.value for m in app.state.module_registry.get_active_modules()]
        user = await app.state.user_directory.create_user(
            UserData(
                email=email,
                display_name=display_name,
                role=ADMIN_ROLE,
                permissions=registry.suggest_permissions(ADMIN_ROLE),
                modules=modules,
            )
        )
        click.echo(
            f"\nAdministrator provisioned!\n"
            f"  Document ID: {user.doc_id}\n"
            f"  Email:       {user.email}\n"
            f"  Name:        {user.display_name}\n"
            f"  Status:      {user.account_status}\n"
        )

    _run_with_app(action)


@cli.command()
def recount() -> None:
    """Recompute the cached user counts of modules and roles."""

    async def action(app: Any) -> None:
        module_counts = await app.state.module_registry.update_all_modules_user_count()
        role_counts = await app.state.role_registry.refresh_user_counts()
        for value, count in sorted(module_counts.items()):
            click.echo(f"module {value}: {count}")
        for value, count in sorted(role_counts.items()):
            click.echo(f"role {value}: {count}")

    _run_with_app(action)


@cli.command("issue-token")
@click.argument("uid")
@click.argument("email")
@click.option("--minutes", type=int, default=None, help="Token lifetime in minutes")
def issue_token(uid: str, email: str, minutes: int | None) -> None:
    """Issue a development identity token."""
    from datetime import timedelta

    from gatehouse.infrastructure.auth import IdentityTokenService

    settings = get_settings()
    if settings.is_production:
        click.echo("Error: identity tokens cannot be issued in production", err=True)
        raise SystemExit(1)
    expires = timedelta(minutes=minutes) if minutes else None
    click.echo(IdentityTokenService(settings.secret_key).issue(uid, email, expires))


@cli.command()
def info() -> None:
    """Show the effective configuration."""
    settings = get_settings()
    click.echo(f"""
Gatehouse {settings.app_version}
  Environment:        {settings.environment}
  Storage backend:    {settings.storage_backend}
  Database URL:       {settings.database_url}
  Bulk delete policy: {settings.bulk_delete_policy}
  Log level:          {settings.log_level}
  Log format:         {settings.log_format}
""")


def main() -> NoReturn:
    """Main entry point for the CLI."""
    cli()
    sys.exit(0)


if __name__ == "__main__":
    main()
