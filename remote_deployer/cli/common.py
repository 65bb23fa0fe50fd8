# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import json
import ssl

import click
from oslo_config import cfg
from oslo_service import sslutils

from remote_deployer.fileserver import EphemeralFileServer
from remote_deployer.orchestrator import DeploymentResult

VALUE_FORMAT = "value"
JSON_FORMAT = "json"
JSON_INDENT_FORMAT = "json-indent"

click_option_format = click.option(
    "-f",
    "--format",
    default=VALUE_FORMAT,
    type=click.Choice([VALUE_FORMAT, JSON_FORMAT, JSON_INDENT_FORMAT]),
    help="Output format",
)


def echo_result(result: DeploymentResult, format: str) -> None:
    """Print a deployment result in the requested format."""
    if format in (JSON_FORMAT, JSON_INDENT_FORMAT):
        indent = 2 if format == JSON_INDENT_FORMAT else None
        click.echo(json.dumps(result.as_dict(), indent=indent))
        return
    click.echo(f"Outcome: {result.outcome.value}")
    if result.phase is not None:
        click.echo(f"Failed phase: {result.phase.value}")
        click.echo(f"Error: {result.error_kind}: {result.message}")
    else:
        click.echo(result.message)
    if result.detail:
        click.echo(f"Remote detail: {result.detail}")
    if result.pull_url:
        click.echo(f"Pull URL: {result.pull_url}")
    if result.checksum:
        click.echo(f"SHA-256: {result.checksum}")


def file_server_ssl_context(conf: cfg.ConfigOpts) -> ssl.SSLContext | None:
    """Return the TLS context for the file server, ``None`` when TLS is off.

    Client certificates are required when a CA file is configured.
    """
    if not sslutils.is_enabled(conf):
        return None
    ssl_ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ssl_ctx.load_cert_chain(conf.ssl.cert_file, conf.ssl.key_file)
    if conf.ssl.ca_file:
        ssl_ctx.load_verify_locations(conf.ssl.ca_file)
        ssl_ctx.verify_mode = ssl.CERT_REQUIRED
    return ssl_ctx


def make_file_server(conf: cfg.ConfigOpts) -> EphemeralFileServer:
    """Create the file server, with TLS when the ``ssl`` group enables it."""
    return EphemeralFileServer(ssl_context=file_server_ssl_context(conf))
