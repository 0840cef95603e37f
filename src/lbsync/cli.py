"""
lbsyncctl - command line front end for lbsync.

Applies load balancer documents to an appliance and tears them down again
from the status snapshot an apply wrote.
"""

import asyncio
import json
import logging
import sys

import click
import yaml
from tabulate import tabulate

from lbsync.config import get_config
from lbsync.errors import LBSyncError
from lbsync.providers.registry import default_registry
from lbsync.reconcile import (
    cleanup_load_balancer,
    load_spec,
    load_status,
    reconcile_load_balancer,
)
from lbsync.validation import validate_load_balancer, validate_status


def load_document(filename: str):
    """Read a YAML or JSON document from disk."""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def credentials_options(func):
    func = click.option(
        "--password",
        envvar="LBSYNC_PASSWORD",
        default="",
        help="Appliance API password (env: LBSYNC_PASSWORD)",
    )(func)
    func = click.option(
        "--username",
        "-u",
        envvar="LBSYNC_USERNAME",
        default="",
        help="Appliance API username (env: LBSYNC_USERNAME)",
    )(func)
    return func


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level):
    """lbsync - keep external load balancers in sync with cluster nodes"""
    config = get_config()
    logging.basicConfig(
        level=(log_level or config.logging.level).upper(),
        format=config.logging.format,
    )


@cli.command()
def providers():
    """List registered load balancer providers"""
    registry = default_registry(get_config().providers.enabled or None)
    factories = [(name, registry.lookup(name)) for name in registry.list()]

    table_data = []
    for name, factory in factories:
        provider = factory()
        table_data.append(
            [
                name,
                provider.name,
                "yes" if provider.transactional else "no",
                factory.__module__,
            ]
        )

    headers = ["NAME", "VENDOR", "TRANSACTIONAL", "MODULE"]
    click.echo(tabulate(table_data, headers=headers, tablefmt="simple"))


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option("--status", "is_status", is_flag=True, help="FILE is a status snapshot")
def validate(filename, is_status):
    """Validate a load balancer document or status snapshot"""
    data = load_document(filename)
    is_valid, error = validate_status(data) if is_status else validate_load_balancer(data)
    if not is_valid:
        fail(error)
    click.echo(f"{filename} is valid")


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option(
    "--status-out", "-s", type=click.Path(), default=None,
    help="Write the status snapshot to this file instead of stdout",
)
@credentials_options
def apply(filename, status_out, username, password):
    """Reconcile the load balancer described in a YAML/JSON file"""
    registry = default_registry(get_config().providers.enabled or None)
    try:
        spec = load_spec(load_document(filename))
        status = asyncio.run(
            reconcile_load_balancer(registry, spec, username, password)
        )
    except LBSyncError as e:
        fail(str(e))

    snapshot = yaml.dump(status.to_dict(), default_flow_style=False, sort_keys=False)
    if status_out:
        with open(status_out, "w") as f:
            f.write(snapshot)
        click.echo(f"Load balancer {spec.name} applied, status written to {status_out}")
    else:
        click.echo(snapshot)

    table_data = [[v.name, f"{v.ip}:{v.port}", v.pool_name] for v in status.vips]
    click.echo(tabulate(table_data, headers=["VIP", "LISTEN", "POOL"]), err=True)


@cli.command()
@click.argument("status_file", type=click.Path(exists=True))
@credentials_options
def cleanup(status_file, username, password):
    """Remove everything recorded in a status snapshot from the appliance"""
    registry = default_registry(get_config().providers.enabled or None)
    try:
        status = load_status(load_document(status_file))
        asyncio.run(cleanup_load_balancer(registry, status, username, password))
    except LBSyncError as e:
        fail(str(e))
    click.echo("Cleanup finished")


def main():
    cli()


if __name__ == "__main__":
    main()
