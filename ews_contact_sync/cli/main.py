"""
Command-line interface for ews_contact_sync.

Provides CLI commands for distributing the contacts of one Exchange mailbox
into a contacts folder in the mailbox of every member of a directory group.

Usage:
    # Show help
    ews-contact-sync --help

    # Create a configuration file to edit
    ews-contact-sync init-config

    # Check configuration and credentials
    ews-contact-sync status
    ews-contact-sync members

    # Run synchronization
    ews-contact-sync sync
    ews-contact-sync sync --dry-run
    ews-contact-sync --verbose sync --no-log-file
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn

import click

from ews_contact_sync import __version__
from ews_contact_sync.cli.formatters import (
    show_config_status,
    show_mailbox_details,
    show_mailboxes,
)
from ews_contact_sync.config.generator import save_config_file
from ews_contact_sync.config.loader import DEFAULT_CONFIG_FILE as CONFIG_FILE_NAME
from ews_contact_sync.config.loader import ConfigError, ConfigLoader
from ews_contact_sync.config.run_config import DirectorySettings, RunContext
from ews_contact_sync.utils import DEFAULT_CONFIG_DIR, default_log_dir, resolve_config_dir
from ews_contact_sync.utils.logging import get_logger, get_run_log_path, setup_logging

# Default configuration file
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / CONFIG_FILE_NAME


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: str | None, config_dir: Path | None = None) -> Path:
    """Get the configuration file path (default: config.yaml in the config dir)."""
    if config_file:
        return Path(config_file).expanduser()
    if config_dir is not None:
        return config_dir / CONFIG_FILE_NAME
    return DEFAULT_CONFIG_FILE


def _fail(message: str) -> NoReturn:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="ews-contact-sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="EWS_CONTACT_SYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.ews-contact-sync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="EWS_CONTACT_SYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Exchange contact distribution.

    Copies every contact of a source mailbox into a freshly recreated
    contacts folder in the mailbox of each member of a directory group.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config: dict[str, Any] = {}
    config_error: str | None = None
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Keep the CLI usable (init-config, --help) with a broken file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}
        config_error = str(e)

    ctx.obj["config"] = config
    ctx.obj["config_error"] = config_error

    # CLI flag wins; otherwise use the config value
    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    # Console-only until a command sets up its run log
    setup_logging(log_file=None, verbose=effective_verbose)


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with every option documented. Edit the
    source mailbox, destination group and server settings before the
    first sync.

    Examples:

        # Create config file (fails if already exists)
        ews-contact-sync init-config

        # Overwrite existing config file
        ews-contact-sync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Edit the file and set the mailbox, group and server settings")
        click.echo("2. Export the password environment variables it names")
        click.echo("3. Run 'ews-contact-sync status' to check the configuration")
        logger.debug(f"Created configuration file: {config_file}")
    else:
        logger.debug(f"Failed to create configuration file: {error}")
        _fail(str(error))


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """
    Show configuration and credential status.

    Displays the effective configuration, whether the password environment
    variables are set, and whether everything a sync needs is present.

    Example:

        ews-contact-sync status
    """
    config = ctx.obj["config"]
    config_file = ctx.obj["config_file"]

    click.echo("=== Exchange Contact Sync Status ===\n")
    click.echo(f"Configuration directory: {ctx.obj['config_dir']}")
    file_status = (
        "Found" if Path(config_file).exists() else click.style("Not found", fg="red")
    )
    click.echo(f"Configuration file: {config_file} ({file_status})")
    click.echo()

    show_config_status(config)
    click.echo()

    if ctx.obj["config_error"]:
        click.echo(
            click.style(f"Configuration error: {ctx.obj['config_error']}", fg="red")
        )
        return

    try:
        ConfigLoader(config_dir=ctx.obj["config_dir"]).validate_required(config)
    except ConfigError as e:
        click.echo(click.style(str(e), fg="yellow"))
        click.echo("Run 'ews-contact-sync init-config' to create a configuration file.")
        return

    click.echo(click.style("Ready to sync!", fg="green"))
    click.echo("Run 'ews-contact-sync sync --dry-run' to preview a run.")


# =============================================================================
# Members Command
# =============================================================================


@cli.command("members")
@click.pass_context
def members_command(ctx: click.Context) -> None:
    """
    List the mailboxes the destination group resolves to.

    Performs the same directory lookup as a sync run, without touching
    any mailbox.

    Example:

        ews-contact-sync members
    """
    logger = get_logger(__name__)
    config = ctx.obj["config"]

    if ctx.obj["config_error"]:
        _fail(ctx.obj["config_error"])

    directory_config = config.get("directory") or {}
    missing = [
        key
        for key, value in (
            ("destination_group", config.get("destination_group")),
            ("directory.server", directory_config.get("server")),
            ("directory.base_dn", directory_config.get("base_dn")),
        )
        if not value
    ]
    if missing:
        _fail(f"Missing required configuration: {', '.join(missing)}")

    try:
        from ews_contact_sync.directory.ldap_directory import (
            DirectoryError,
            LDAPDirectory,
        )
    except ImportError as e:
        logger.debug(f"Directory client unavailable: {e}")
        _fail(f"LDAP client library is not available: {e}")

    group = config["destination_group"].strip()
    settings = DirectorySettings.from_dict(directory_config)

    try:
        with LDAPDirectory(settings) as directory:
            mailboxes = directory.resolve_mailboxes(group)
    except DirectoryError as e:
        _fail(f"Could not resolve group {group}: {e}")

    click.echo(f"Group {group}: {len(mailboxes)} mailboxes\n")
    show_mailboxes(mailboxes)


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--dry-run",
    "-n",
    is_flag=True,
    help="Read and resolve only; do not change any destination mailbox.",
)
@click.option(
    "--no-log-file",
    is_flag=True,
    help="Write the run log to the console instead of a file.",
)
@click.pass_context
def sync_command(ctx: click.Context, dry_run: bool, no_log_file: bool) -> None:
    """
    Copy the source contacts to every group member.

    For each destination mailbox the contacts folder is deleted and
    recreated, then every source contact is copied into it. A contact
    whose display name is already in the folder is skipped.

    Examples:

        # Preview without changing anything
        ews-contact-sync sync --dry-run

        # Log to the console only
        ews-contact-sync sync --no-log-file
    """
    logger = get_logger(__name__)
    config_dir = ctx.obj["config_dir"]
    verbose = ctx.obj["verbose"]
    config = ctx.obj["config"]

    if ctx.obj["config_error"]:
        _fail(ctx.obj["config_error"])

    # CLI flags win; otherwise use config values
    effective_dry_run = dry_run or config.get("dry_run", False)
    effective_console_log = no_log_file or config.get("log_to_console", False)

    try:
        ConfigLoader(config_dir=config_dir).validate_required(config)
    except ConfigError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        click.echo("Run 'ews-contact-sync init-config' to create one.", err=True)
        sys.exit(1)

    started_at = datetime.now()
    log_file = None
    if not effective_console_log:
        log_dir = (
            Path(config["log_dir"]).expanduser()
            if config.get("log_dir")
            else default_log_dir(config_dir)
        )
        log_file = get_run_log_path(log_dir, config["source_mailbox"], started_at)

    setup_logging(log_file=log_file, verbose=verbose)

    try:
        from ews_contact_sync.api.ews_api import ExchangeAPI
        from ews_contact_sync.auth.ews_auth import ExchangeAuth
        from ews_contact_sync.directory.ldap_directory import LDAPDirectory
        from ews_contact_sync.sync.engine import SyncAbortedError, SyncEngine
    except ImportError as e:
        logger.error("Required client library is not available", extra={"error": e})
        _fail(f"Required client library is not available: {e}")

    try:
        context = RunContext.from_dict(
            config,
            log_file=log_file,
            dry_run=effective_dry_run,
            started_at=started_at,
        )
    except ConfigError as e:
        _fail(str(e))

    if effective_dry_run:
        click.echo(click.style("DRY RUN - no changes will be made\n", fg="yellow"))

    api = ExchangeAPI(
        ExchangeAuth(context.exchange),
        page_size=context.exchange.page_size,
        max_items=context.exchange.max_items,
    )

    try:
        with LDAPDirectory(context.directory) as directory:
            engine = SyncEngine(context=context, api=api, directory=directory)
            result = engine.run()
    except SyncAbortedError as e:
        click.echo(click.style(f"Sync aborted: {e}", fg="red"), err=True)
        if log_file:
            click.echo(f"See log file: {log_file}", err=True)
        sys.exit(1)

    click.echo()
    click.echo(result.summary())
    if verbose:
        show_mailbox_details(result)

    if result.stats.has_failures:
        click.echo(
            click.style("\nSync completed with errors; see the log.", fg="yellow")
        )
    else:
        click.echo(click.style("\nSync completed successfully!", fg="green"))

    if log_file:
        click.echo(f"Log file: {log_file}")
