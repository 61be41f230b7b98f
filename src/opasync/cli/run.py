"""Run command for opasync CLI.

Commands:
- run: Replicate the configured resource types into OPA until interrupted
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

import click

from opasync.cli.config import DEFAULT_OPA_URL, DEFAULT_REPLICATE_PATH, load_config
from opasync.core.config import ResourceType, ServerConfig
from opasync.sync import SyncEngine

if TYPE_CHECKING:
    from opasync.sync import DataSink, ResourceSource, StopHandle

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class SourceFactory(Protocol):
    """Anything that hands out a ResourceSource per resource type."""

    def source(self, resource_type: ResourceType) -> ResourceSource: ...


def setup_logging(level: str) -> None:
    """Send opasync logs to stdout.

    Args:
        level: Logging level name (DEBUG, INFO, ...).
    """
    root_logger = logging.getLogger("opasync")
    root_logger.setLevel(level.upper())

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stdout_handler)


def parse_resource_types(
    namespaced: Iterable[str],
    cluster: Iterable[str],
) -> list[ResourceType]:
    """Parse --replicate and --replicate-cluster values.

    Raises:
        click.BadParameter: If a value is not [group/]version/resource.
    """
    resource_types: list[ResourceType] = []
    for values, is_namespaced in ((namespaced, True), (cluster, False)):
        for value in values:
            try:
                resource_types.append(ResourceType.parse(value, is_namespaced))
            except ValueError as e:
                raise click.BadParameter(str(e)) from e
    return resource_types


async def replicate(
    resource_types: list[ResourceType],
    sources: SourceFactory,
    sink: DataSink,
    shutdown: asyncio.Event,
) -> None:
    """Run one SyncEngine per resource type until ``shutdown`` is set.

    Args:
        resource_types: Collections to replicate.
        sources: Provider of a ResourceSource per collection.
        sink: Data store; each engine writes below its resource name.
        shutdown: Set to stop every worker.
    """
    handles: list[StopHandle] = [
        SyncEngine(rt, sources.source(rt), sink).run() for rt in resource_types
    ]
    logger.info("Started %d sync workers", len(handles))

    await shutdown.wait()
    logger.info("Shutting down sync workers")
    for handle in handles:
        handle.stop()
    await asyncio.gather(*(handle.wait() for handle in handles))


async def _serve(
    resource_types: list[ResourceType],
    kube_config: ServerConfig,
    opa_config: ServerConfig,
    replicate_path: str,
) -> None:
    from opasync.clients import KubernetesClient, OPAClient

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not available on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, shutdown.set)

    async with KubernetesClient(kube_config) as kube, OPAClient(
        opa_config, prefix=replicate_path
    ) as opa:
        await replicate(resource_types, kube, opa, shutdown)


@click.command()
@click.option(
    "--replicate",
    "replicate_namespaced",
    multiple=True,
    help="Namespaced resource to replicate, e.g. v1/pods (repeatable).",
)
@click.option(
    "--replicate-cluster",
    multiple=True,
    help="Cluster-scoped resource to replicate, e.g. v1/namespaces (repeatable).",
)
@click.option("--replicate-path", default=None, help="Data path in OPA.")
@click.option("--kube-url", default=None, help="Kubernetes API server URL.")
@click.option("--kube-token", default=None, help="Bearer token for the API server.")
@click.option(
    "--in-cluster",
    is_flag=True,
    help="Use the pod's service account to reach the API server.",
)
@click.option(
    "--insecure-skip-tls-verify",
    is_flag=True,
    help="Do not verify the API server's certificate.",
)
@click.option("--opa-url", default=None, help="OPA server URL.")
@click.option("--opa-token", default=None, help="Bearer token for OPA.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
def run(
    replicate_namespaced: tuple[str, ...],
    replicate_cluster: tuple[str, ...],
    replicate_path: str | None,
    kube_url: str | None,
    kube_token: str | None,
    in_cluster: bool,
    insecure_skip_tls_verify: bool,
    opa_url: str | None,
    opa_token: str | None,
    log_level: str,
) -> None:
    """Replicate Kubernetes resources into OPA.

    Starts one worker per resource type. Each worker loads a full listing
    into OPA, then applies watch events, and restarts on any failure.
    Runs until interrupted.
    """
    resource_types = parse_resource_types(replicate_namespaced, replicate_cluster)
    if not resource_types:
        click.echo(
            "Error: Nothing to replicate. Use --replicate or --replicate-cluster.",
            err=True,
        )
        sys.exit(1)

    config = load_config()

    if in_cluster:
        try:
            kube_config = ServerConfig.in_cluster()
        except RuntimeError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    else:
        kube_url = kube_url or config.get("kube_url")
        if not kube_url:
            click.echo(
                "Error: No Kubernetes API server. Use --kube-url, --in-cluster "
                "or 'opasync configure'.",
                err=True,
            )
            sys.exit(1)
        kube_config = ServerConfig(
            server_url=kube_url,
            token=kube_token or config.get("kube_token", ""),
        )
    if insecure_skip_tls_verify:
        kube_config.verify_ssl = False

    opa_config = ServerConfig(
        server_url=opa_url or config.get("opa_url", DEFAULT_OPA_URL),
        token=opa_token or config.get("opa_token", ""),
    )
    path = replicate_path or config.get("replicate_path", DEFAULT_REPLICATE_PATH)

    setup_logging(log_level)
    logger.info(
        "Replicating %s from %s into %s/v1/data/%s",
        ", ".join(str(rt) for rt in resource_types),
        kube_config.server_url,
        opa_config.server_url,
        path,
    )
    asyncio.run(_serve(resource_types, kube_config, opa_config, path))
