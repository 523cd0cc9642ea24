"""CLI output formatting functions.

This module contains functions for displaying the effective configuration,
resolved destination mailboxes and per-mailbox sync outcomes on the command
line.
"""

import os
from typing import TYPE_CHECKING, Any

import click

from ews_contact_sync.config.run_config import (
    DEFAULT_DIRECTORY_PASSWORD_ENV,
    DEFAULT_EXCHANGE_PASSWORD_ENV,
)

if TYPE_CHECKING:
    from ews_contact_sync.sync.contact import DestinationMailbox
    from ews_contact_sync.sync.engine import SyncResult

# Maximum rows printed per section before truncating
MAX_ROWS = 50

NOT_SET = click.style("Not set", fg="red")


def _value(value: Any) -> str:
    if value is None or value == "":
        return NOT_SET
    return str(value)


def _password_status(env_var: str) -> str:
    if os.environ.get(env_var):
        return f"${env_var} " + click.style("(set)", fg="green")
    return f"${env_var} " + click.style("(not set)", fg="red")


def show_config_status(config: dict[str, Any]) -> None:
    """
    Display the effective configuration.

    Passwords never appear in the configuration file; only the environment
    variable names are shown, with whether each one is set.

    Args:
        config: Loaded configuration dictionary (may be partial)
    """
    exchange = config.get("exchange") or {}
    directory = config.get("directory") or {}

    click.echo("--- Run ---")
    click.echo(f"Source mailbox:     {_value(config.get('source_mailbox'))}")
    click.echo(f"Destination group:  {_value(config.get('destination_group'))}")
    click.echo(f"Folder name:        {_value(config.get('folder_name'))}")

    click.echo("\n--- Exchange ---")
    if exchange.get("service_endpoint"):
        click.echo(f"Service endpoint:   {exchange['service_endpoint']}")
    elif exchange.get("autodiscover") and not exchange.get("server"):
        click.echo("Server:             (autodiscover)")
    else:
        click.echo(f"Server:             {_value(exchange.get('server'))}")
    click.echo(f"Username:           {_value(exchange.get('username'))}")
    click.echo(
        "Password:           "
        + _password_status(exchange.get("password_env", DEFAULT_EXCHANGE_PASSWORD_ENV))
    )

    click.echo("\n--- Directory ---")
    click.echo(f"Server:             {_value(directory.get('server'))}")
    click.echo(f"Base DN:            {_value(directory.get('base_dn'))}")
    bind_user = directory.get("bind_user")
    if bind_user:
        click.echo(f"Bind user:          {bind_user}")
        click.echo(
            "Password:           "
            + _password_status(
                directory.get("password_env", DEFAULT_DIRECTORY_PASSWORD_ENV)
            )
        )
    else:
        click.echo("Bind user:          (anonymous)")


def show_mailboxes(mailboxes: list["DestinationMailbox"]) -> None:
    """
    Display resolved destination mailboxes, one per line.

    Args:
        mailboxes: Mailboxes in directory order
    """
    for mailbox in mailboxes[:MAX_ROWS]:
        if mailbox.display_name:
            click.echo(f"  {mailbox.email}  ({mailbox.display_name})")
        else:
            click.echo(f"  {mailbox.email}")
    if len(mailboxes) > MAX_ROWS:
        click.echo(f"  ... and {len(mailboxes) - MAX_ROWS} more")


def show_mailbox_details(result: "SyncResult") -> None:
    """
    Display what happened in each destination mailbox (verbose mode).

    Args:
        result: The SyncResult to display
    """
    if not result.mailboxes:
        return

    click.echo("\n=== Mailboxes ===")
    for mailbox_result in result.mailboxes[:MAX_ROWS]:
        email = mailbox_result.mailbox.email
        if mailbox_result.was_skipped:
            click.echo(click.style(f"  - {email}: {mailbox_result.error}", fg="yellow"))
            continue
        if result.dry_run:
            click.echo(f"  ~ {email}: planned")
            continue
        line = (
            f"  + {email}: {len(mailbox_result.created)} created, "
            f"{len(mailbox_result.skipped)} skipped"
        )
        if mailbox_result.failed:
            line += f", {len(mailbox_result.failed)} failed"
        folder = mailbox_result.folder
        if folder is not None and folder.info is not None:
            line += f" in {folder.info.name}"
            if folder.deleted:
                plural = "s" if folder.deleted > 1 else ""
                line += f" (replaced {folder.deleted} old folder{plural})"
        click.echo(line)
    if len(result.mailboxes) > MAX_ROWS:
        click.echo(f"  ... and {len(result.mailboxes) - MAX_ROWS} more")
