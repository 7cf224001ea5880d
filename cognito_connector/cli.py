"""User pool connector CLI.

Operator commands for checking connectivity, inspecting the projected
schema and reading users/groups through the same code paths the IDM uses.
Can be used standalone via `cogconn` or integrated into other CLIs.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from .client import build_cognito_client
from .config import ConnectorConfig
from .connector import CognitoUserPoolConnector
from .errors import ConnectorError
from .filters import equals_filter, starts_with_filter
from .model import GROUP_OBJECT_CLASS, USER_OBJECT_CLASS, NAME_NAME, ConnectorObject, OperationOptions
from .schema import ATTR_GROUPS, ATTR_USERS

connector_app = typer.Typer(help="Cognito user pool connector commands")
console = Console()

# Global state for --config option (set by callback)
_config_name: Optional[str] = None


def _app_callback(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Named config to use (reads COGCONN_<NAME>_* env vars)",
        envvar="COGCONN_CONFIG",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Process global options before commands."""
    global _config_name
    _config_name = config
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


connector_app.callback()(_app_callback)


def _load_config() -> ConnectorConfig:
    """Load config from named or legacy env vars, exiting on error."""
    try:
        if _config_name:
            return ConnectorConfig.from_env(_config_name)
        return ConnectorConfig.from_legacy_env()
    except ConnectorError as e:
        console.print(f"[red]✗[/red]  {e}")
        raise typer.Exit(1)


def _build_connector() -> CognitoUserPoolConnector:
    config = _load_config()
    try:
        return CognitoUserPoolConnector(config, build_cognito_client(config)).init()
    except ConnectorError as e:
        console.print(f"[red]✗[/red]  Error: {e}")
        raise typer.Exit(1)


def _parse_csv(value: Optional[str]) -> Optional[List[str]]:
    """Parse comma-separated values into a normalized list."""
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_filter(expression: Optional[str]) -> Any:
    """Parse 'attr=value' or 'attr^=value' into a native filter."""
    if not expression:
        return None
    if "^=" in expression:
        name, value = expression.split("^=", 1)
        query = starts_with_filter(name.strip(), value.strip())
    elif "=" in expression:
        name, value = expression.split("=", 1)
        query = equals_filter(name.strip(), value.strip())
    else:
        console.print(f"[red]✗[/red]  Invalid filter: {expression}. Use attr=value or attr^=value")
        raise typer.Exit(1)

    if query is None:
        console.print(f"[red]✗[/red]  Cognito cannot search on '{name.strip()}'")
        raise typer.Exit(1)
    return query


def _format_values(obj: ConnectorObject, name: str) -> str:
    attr = obj.get(name)
    if attr is None:
        return ""
    text = ", ".join("" if v is None else str(v) for v in attr.values)
    if not attr.complete:
        text = f"{text} [dim](incomplete)[/dim]"
    return text


def _print_object(obj: ConnectorObject) -> None:
    table = Table(title=f"{obj.object_class}: {obj.name}")
    table.add_column("Attribute", style="cyan")
    table.add_column("Value")
    table.add_row("__UID__", obj.uid.value or "")
    table.add_row(NAME_NAME, obj.name)
    for name in sorted(obj.attributes):
        table.add_row(name, _format_values(obj, name))
    console.print(table)


@connector_app.command("test")
def test_connection() -> None:
    """Check that the configured user pool is reachable."""
    connector = _build_connector()
    console.print(f"[green]✓[/green]  User pool reachable: {connector.config.user_pool_id}")


@connector_app.command("schema")
def show_schema(
    object_class: str = typer.Option(USER_OBJECT_CLASS, "--class", help="Object class: User or Group"),
) -> None:
    """Show the connector schema projected from the user pool."""
    connector = _build_connector()
    try:
        schema = connector.schema()
    except ConnectorError as e:
        console.print(f"[red]✗[/red]  Error: {e}")
        raise typer.Exit(1)

    if object_class == USER_OBJECT_CLASS:
        info = schema.user
    elif object_class == GROUP_OBJECT_CLASS:
        info = schema.group
    else:
        console.print(f"[red]✗[/red]  Unsupported object class: {object_class}")
        raise typer.Exit(1)

    table = Table(title=f"{info.name} schema ({connector.config.user_pool_id})")
    table.add_column("Name", style="cyan")
    table.add_column("Native name")
    table.add_column("Type")
    table.add_column("Required")
    table.add_column("Creatable")
    table.add_column("Updatable")
    table.add_column("Case sensitive")
    table.add_column("Multi-valued")

    def _yes(value: bool) -> str:
        return "[green]Yes[/green]" if value else "No"

    for attr in info.attributes:
        table.add_row(
            attr.connector_name,
            attr.native_name,
            attr.data_type.value,
            _yes(attr.required),
            _yes(attr.creatable),
            _yes(attr.mutable),
            _yes(attr.case_sensitive),
            _yes(attr.multi_valued),
        )
    console.print(table)


@connector_app.command("list-users")
def list_users(
    filter_expression: Optional[str] = typer.Option(
        None, "--filter", "-f", help="Native filter: attr=value or attr^=value"
    ),
    attrs: Optional[str] = typer.Option(None, "--attrs", "-a", help="Comma-separated attributes to return"),
    limit: int = typer.Option(50, "--limit", "-l", help="Max users to list"),
) -> None:
    """List users through the connector search path."""
    query = _parse_filter(filter_expression)
    options = OperationOptions.build(attributes_to_get=_parse_csv(attrs))
    connector = _build_connector()

    table = Table(title=f"Cognito Users ({connector.config.user_pool_id})")
    table.add_column("Username", style="cyan")
    table.add_column("Sub")
    table.add_column("Status")
    table.add_column("Enabled")
    show_groups = options.attributes_to_get is not None and ATTR_GROUPS in options.attributes_to_get
    if show_groups:
        table.add_column("Groups")

    count = 0
    try:
        for obj in connector.search(USER_OBJECT_CLASS, query, options):
            enabled = obj.get("__ENABLE__")
            enabled_text = ""
            if enabled is not None:
                enabled_text = "[green]Yes[/green]" if enabled.single_value else "[red]No[/red]"
            row = [obj.name, obj.uid.value or "", _format_values(obj, "UserStatus"), enabled_text]
            if show_groups:
                row.append(_format_values(obj, ATTR_GROUPS))
            table.add_row(*row)
            count += 1
            if count >= limit:
                break
    except ConnectorError as e:
        console.print(f"[red]✗[/red]  Error: {e}")
        raise typer.Exit(1)

    console.print(table)
    console.print(f"\n[dim]Total: {count} users[/dim]")


@connector_app.command("get-user")
def get_user(
    username: str = typer.Argument(..., help="Username to fetch"),
    groups: bool = typer.Option(False, "--groups", "-g", help="Also fetch group membership"),
) -> None:
    """Show one user with all attributes."""
    connector = _build_connector()
    options = OperationOptions()
    if groups:
        schema_map = connector.user_schema_map
        options = OperationOptions.build(
            attributes_to_get=[name for name, attr in schema_map.items() if attr.readable]
        )

    try:
        found = list(connector.search(USER_OBJECT_CLASS, equals_filter(NAME_NAME, username), options))
    except ConnectorError as e:
        console.print(f"[red]✗[/red]  Error: {e}")
        raise typer.Exit(1)

    if not found:
        console.print(f"[red]✗[/red]  User not found: {username}")
        raise typer.Exit(1)
    _print_object(found[0])


@connector_app.command("list-groups")
def list_groups(
    members: bool = typer.Option(False, "--members", "-m", help="Also fetch group members"),
) -> None:
    """List groups in the user pool."""
    connector = _build_connector()
    options = OperationOptions()
    if members:
        options = OperationOptions.build(
            attributes_to_get=["Description", "Precedence", "RoleArn", "CreationDate", ATTR_USERS]
        )

    table = Table(title=f"Cognito Groups ({connector.config.user_pool_id})")
    table.add_column("Group", style="cyan")
    table.add_column("Description")
    table.add_column("Precedence")
    table.add_column("Role ARN")
    if members:
        table.add_column("Members")

    count = 0
    try:
        for obj in connector.search(GROUP_OBJECT_CLASS, None, options):
            row = [
                obj.name,
                _format_values(obj, "Description"),
                _format_values(obj, "Precedence"),
                _format_values(obj, "RoleArn"),
            ]
            if members:
                row.append(_format_values(obj, ATTR_USERS))
            table.add_row(*row)
            count += 1
    except ConnectorError as e:
        console.print(f"[red]✗[/red]  Error: {e}")
        raise typer.Exit(1)

    console.print(table)
    console.print(f"\n[dim]Total: {count} groups[/dim]")


@connector_app.command("group-members")
def group_members(
    group_name: str = typer.Argument(..., help="Group name"),
) -> None:
    """List the usernames in a group."""
    connector = _build_connector()
    options = OperationOptions.build(attributes_to_get=[ATTR_USERS])
    try:
        found = list(connector.search(GROUP_OBJECT_CLASS, equals_filter(NAME_NAME, group_name), options))
    except ConnectorError as e:
        console.print(f"[red]✗[/red]  Error: {e}")
        raise typer.Exit(1)

    if not found:
        console.print(f"[red]✗[/red]  Group not found: {group_name}")
        raise typer.Exit(1)

    users = found[0].get(ATTR_USERS)
    for username in users.values if users is not None else ():
        console.print(username)
    console.print(f"\n[dim]Total: {len(users.values) if users is not None else 0} users[/dim]")


def main() -> None:
    """Entry point for the cogconn CLI."""
    connector_app()
