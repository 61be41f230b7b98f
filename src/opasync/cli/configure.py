"""Configure command for opasync CLI.

Commands:
- configure: Save default Kubernetes and OPA connection settings
"""

from __future__ import annotations

import click

from opasync.cli.config import get_config_file, load_config, save_config


@click.command()
@click.option("--kube-url", default=None, help="Kubernetes API server URL.")
@click.option("--kube-token", default=None, help="Bearer token for the API server.")
@click.option("--opa-url", default=None, help="OPA server URL.")
@click.option("--opa-token", default=None, help="Bearer token for OPA.")
@click.option(
    "--replicate-path",
    default=None,
    help="Data path in OPA under which resources are stored.",
)
def configure(
    kube_url: str | None,
    kube_token: str | None,
    opa_url: str | None,
    opa_token: str | None,
    replicate_path: str | None,
) -> None:
    """Save connection defaults used by 'opasync run'.

    Only the given options are updated; others keep their saved value.
    """
    updates = {
        "kube_url": kube_url,
        "kube_token": kube_token,
        "opa_url": opa_url,
        "opa_token": opa_token,
        "replicate_path": replicate_path,
    }
    config = load_config()
    changed = {key: value for key, value in updates.items() if value is not None}
    if not changed:
        click.echo("Nothing to update.")
        return

    config.update(changed)
    save_config(config)
    for key in sorted(changed):
        shown = "********" if key.endswith("_token") else changed[key]
        click.echo(f"{key} = {shown}")
    click.echo(f"Saved to {get_config_file()}")
