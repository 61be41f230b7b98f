"""Command-line interface for opasync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- configure: Save default connection settings
- run: Replicate resources into OPA until interrupted
"""

from __future__ import annotations

import click

from opasync.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
)
from opasync.cli.configure import configure
from opasync.cli.run import run


@click.group()
@click.version_option(package_name="opasync")
def cli() -> None:
    """opasync - Replicate Kubernetes resources into Open Policy Agent."""


cli.add_command(configure)
cli.add_command(run)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]
