# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import sys

import click
from oslo_config import cfg
from oslo_log import log as logging
from oslo_service import service, sslutils

import remote_deployer
from remote_deployer.cli.common import click_option_format, echo_result, make_file_server
from remote_deployer.config import OsloConfigSource, resolve_listener
from remote_deployer.exceptions import DeployError
from remote_deployer.log import setup_logging
from remote_deployer.orchestrator import DeployOrchestrator

LOG = logging.getLogger(__name__)

CONF = cfg.CONF
sslutils.register_opts(CONF)

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def load_config(config_files, verbose: bool = False) -> OsloConfigSource:
    """Parse the configuration files and set up logging."""
    CONF(
        args=[],
        project="remote-deployer",
        prog="remote-deployer",
        version=remote_deployer.__version__,
        default_config_files=list(config_files),
    )
    setup_logging(CONF, debug=verbose)
    return OsloConfigSource(CONF)


def _fail(exc: DeployError) -> None:
    phase = exc.phase.value if exc.phase is not None else "setup"
    raise click.ClickException(f"{phase} failed: {type(exc).__name__}: {exc}")


def _orchestrator(source) -> DeployOrchestrator:
    try:
        return DeployOrchestrator.from_config(source, server=make_file_server(CONF))
    except DeployError as exc:
        _fail(exc)


def _run(orchestrator: DeployOrchestrator, operation: str, artifact: str, format: str):
    try:
        result = getattr(orchestrator, operation)(artifact)
    except DeployError as exc:
        _fail(exc)
    echo_result(result, format)
    sys.exit(0 if result.succeeded else 1)


@click.group("remote-deployer", context_settings=CONTEXT_SETTINGS)
@click.option(
    "--config-file",
    "config_files",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file, may be repeated",
)
@click.option("-v", "--verbose", is_flag=True, help="Increase output verbosity")
@click.pass_context
def cli(ctx: click.Context, config_files, verbose: bool):
    """Deploy artifacts to remote containers over a one-shot HTTP handoff."""
    ctx.obj = load_config(config_files, verbose)


@cli.command("deploy")
@click.argument("artifact", type=click.Path(dir_okay=False))
@click_option_format
@click.pass_obj
def deploy(source, artifact: str, format: str):
    """Serve ARTIFACT and have the remote container fetch and deploy it."""
    _run(_orchestrator(source), "deploy", artifact, format)


@cli.command("undeploy")
@click.argument("artifact", type=click.Path(dir_okay=False))
@click_option_format
@click.pass_obj
def undeploy(source, artifact: str, format: str):
    """Ask the remote container to undeploy ARTIFACT."""
    _run(_orchestrator(source), "undeploy", artifact, format)


@cli.command("redeploy")
@click.argument("artifact", type=click.Path(dir_okay=False))
@click_option_format
@click.pass_obj
def redeploy(source, artifact: str, format: str):
    """Undeploy then deploy ARTIFACT."""
    _run(_orchestrator(source), "redeploy", artifact, format)


@cli.command("serve")
@click.argument("artifact", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def serve(source, artifact: str):
    """Serve ARTIFACT in the foreground until interrupted."""
    server = make_file_server(CONF)
    try:
        listener = resolve_listener(source)
        server.configure(artifact, listener.hostname, listener.port)
    except DeployError as exc:
        _fail(exc)
    launcher = service.ServiceLauncher(CONF)
    launcher.launch_service(server, workers=1)
    launcher.wait()
    LOG.info("Artifact was fetched %d time(s)", server.get_call_count())


def main():
    """Run the CLI."""
    cli()


if __name__ == "__main__":
    main()
