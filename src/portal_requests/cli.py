"""Command line interface for the portal requests server.

Provides commands to initialize configuration, run the server and inspect
stored portal settings without going through the HTTP API.
"""

import json
import sys
from contextlib import contextmanager
from dataclasses import asdict
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__

console = Console()


def _load_config(server_dir: Optional[str]):
    """Load, override and validate configuration, exiting on invalid values."""
    from .server.utils.config_manager import ServerConfigManager

    manager = ServerConfigManager(server_dir)
    try:
        config = manager.load_or_create_config()
        manager.validate_config(config)
    except ValueError as e:
        raise click.ClickException(str(e))
    return manager, config


@contextmanager
def _settings_service(config):
    """Settings service over the configured database; closes its resources on exit."""
    from .server.clients.jira_client import JiraClient
    from .server.services.portal_settings_service import PortalSettingsService
    from .server.services.query_engine import JiraQueryEngine
    from .server.services.query_validator import QueryValidator
    from .server.startup.database_init import initialize_settings_database
    from .server.storage.kv_store import SqliteKVStore

    db_path = str(config.database_path)
    initialize_settings_database(db_path)
    kv_store = SqliteKVStore(db_path)
    jira_client = JiraClient(config.jira_config.base_url)
    try:
        yield PortalSettingsService(
            kv_store,
            QueryValidator(JiraQueryEngine(jira_client)),
            fallback_project_key=config.portal_defaults_config.fallback_project_key,
            default_query_template=config.portal_defaults_config.default_query_template,
        )
    finally:
        jira_client.close()
        kv_store.close()


@click.group()
@click.version_option(__version__, prog_name="portal-requests")
@click.option(
    "--server-dir",
    envvar="PORTAL_SERVER_DATA_DIR",
    help="Server directory holding config.json and the settings database",
)
@click.pass_context
def cli(ctx: click.Context, server_dir: Optional[str]):
    """Portal requests server: recent service-desk requests and portal settings."""
    ctx.ensure_object(dict)
    ctx.obj["server_dir"] = server_dir


@cli.command("init-config")
@click.option("--force", is_flag=True, help="Overwrite an existing config.json")
@click.pass_context
def init_config(ctx: click.Context, force: bool):
    """Write a default config.json and create the server directories."""
    from .server.utils.config_manager import ServerConfigManager

    manager = ServerConfigManager(ctx.obj["server_dir"])
    if manager.config_file_path.exists() and not force:
        raise click.ClickException(
            f"{manager.config_file_path} already exists (use --force to overwrite)"
        )

    manager.save_config(manager.create_default_config())
    manager.create_server_directories()
    console.print(f"[green]Wrote {manager.config_file_path}[/green]")


@cli.command("show-config")
@click.pass_context
def show_config(ctx: click.Context):
    """Print the effective configuration (file plus environment overrides)."""
    _, config = _load_config(ctx.obj["server_dir"])
    console.print_json(json.dumps(asdict(config)))


@cli.command("serve")
@click.option("--host", help="Bind address (overrides configuration)")
@click.option("--port", type=int, help="Port (overrides configuration)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Run the HTTP server."""
    import uvicorn

    from .server.app import create_app
    from .server.logging_utils import configure_logging

    _, config = _load_config(ctx.obj["server_dir"])
    configure_logging(config.log_level)

    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.host,
        port=port or config.port,
        log_level=config.log_level.lower(),
    )


@cli.command("show-settings")
@click.option("--project", "project_key", help="Project key (default: global scope)")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def show_settings(ctx: click.Context, project_key: Optional[str], json_output: bool):
    """Show the stored and effective settings for a scope."""
    _, config = _load_config(ctx.obj["server_dir"])
    with _settings_service(config) as service:
        settings = service.describe(project_key)

    if json_output:
        console.print_json(json.dumps(settings))
        return

    table = Table(title=f"Portal settings: {settings['projectKey']}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Use custom JQL", str(settings["useCustomJql"]))
    table.add_row("Stored JQL", settings["jql"])
    table.add_row("Default JQL", settings["defaultJql"])
    table.add_row("Effective JQL", settings["effectiveJql"])
    for button in settings["buttons"]:
        table.add_row(f"Button {button['slot']}", f"{button['label']} -> {button['url']}")
    table.add_row("Linked spaces", ", ".join(settings["linkedSpaces"]) or "-")
    console.print(table)


@cli.command("list-scopes")
@click.pass_context
def list_scopes(ctx: click.Context):
    """List scopes that have stored settings."""
    from .server.models.error_models import StoreReadFailure

    _, config = _load_config(ctx.obj["server_dir"])
    with _settings_service(config) as service:
        try:
            scopes = service.list_scopes()
        except StoreReadFailure as e:
            raise click.ClickException(f"Cannot read stored settings: {e}")
    if not scopes:
        console.print("No stored settings")
        return
    for scope in scopes:
        console.print(scope)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
