"""
Entry point for running ews_contact_sync as a module.

Usage:
    python -m ews_contact_sync --help
    python -m ews_contact_sync sync --dry-run
    python -m ews_contact_sync members
"""

from ews_contact_sync.cli import cli

if __name__ == "__main__":
    cli()
