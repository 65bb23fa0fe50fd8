# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Configuration options and the endpoint/credential resolver.

Options live in ``oslo.config`` groups (``remote``, ``fileserver`` and
``deploy``). The deployer itself never reads ``CONF`` directly: it is
handed a *configuration source*, any object with a ``get(key)`` method
returning a string or ``None`` for dotted keys such as
``remote.hostname``. A plain ``dict`` works, as does
:class:`OsloConfigSource`. The source is resolved once into frozen
models before a deploy starts.
"""

import os
from typing import Literal, Optional, Protocol

import pydantic
from oslo_config import cfg
from pydantic import BaseModel, ConfigDict, Field, field_validator

from remote_deployer.exceptions import ConfigurationError

DEFAULT_PROTOCOL = "http"
DEFAULT_CONTAINER = "jboss"
DEFAULT_REMOTE_HOSTNAME = "localhost"
DEFAULT_REMOTE_PORT = 8080
DEFAULT_REMOTE_TIMEOUT = 30.0
DEFAULT_LISTEN_HOSTNAME = "0.0.0.0"
DEFAULT_LISTEN_PORT = 8099
DEFAULT_DEPLOY_TIMEOUT = 60.0
DEFAULT_VERIFY_GRACE = 2.0


remote_opts = [
    cfg.StrOpt(
        "protocol",
        default=DEFAULT_PROTOCOL,
        choices=["http", "https"],
        help="Scheme used to reach the remote management endpoint",
    ),
    cfg.StrOpt(
        "hostname",
        default=DEFAULT_REMOTE_HOSTNAME,
        help="Host name of the remote container",
    ),
    cfg.PortOpt(
        "port",
        default=DEFAULT_REMOTE_PORT,
        help="Management port of the remote container",
    ),
    cfg.StrOpt("username", help="User for HTTP basic authentication"),
    cfg.StrOpt("password", secret=True, help="Password for HTTP basic authentication"),
    cfg.StrOpt(
        "container",
        default=DEFAULT_CONTAINER,
        help="Container family of the remote endpoint",
    ),
    cfg.StrOpt(
        "management_path",
        help="Path of the management endpoint, defaults to the container family's",
    ),
    cfg.StrOpt(
        "deploy_query",
        help="Query string of the deploy trigger, '{url}' is replaced by the pull URL",
    ),
    cfg.StrOpt(
        "undeploy_query",
        help="Query string of the undeploy trigger, '{url}' is replaced by the pull URL",
    ),
    cfg.FloatOpt(
        "timeout",
        default=DEFAULT_REMOTE_TIMEOUT,
        min=0,
        help="Seconds to wait for the remote endpoint to answer a fetch trigger",
    ),
]

fileserver_opts = [
    cfg.StrOpt(
        "hostname",
        default=os.environ.get("FILESERVER_HOST", DEFAULT_LISTEN_HOSTNAME),
        help="Listen address for the ephemeral file server",
    ),
    cfg.IntOpt(
        "port",
        default=int(os.environ.get("FILESERVER_PORT", str(DEFAULT_LISTEN_PORT))),
        min=0,
        max=65535,
        help="TCP listen port for the ephemeral file server, 0 picks a free port",
    ),
]

deploy_opts = [
    cfg.FloatOpt(
        "timeout",
        default=DEFAULT_DEPLOY_TIMEOUT,
        min=0,
        help="Upper bound in seconds between sending the fetch trigger and a verdict",
    ),
    cfg.FloatOpt(
        "verify_grace",
        default=DEFAULT_VERIFY_GRACE,
        min=0,
        help="Seconds to wait for the file server to record the remote fetch",
    ),
]

CONF = cfg.CONF


def register_opts(conf: cfg.ConfigOpts) -> None:
    """Register the deployer option groups on ``conf``."""
    conf.register_opts(remote_opts, group="remote")
    conf.register_opts(fileserver_opts, group="fileserver")
    conf.register_opts(deploy_opts, group="deploy")


def list_opts():
    """Return the option groups for oslo-config-generator."""
    return [
        ("remote", remote_opts),
        ("fileserver", fileserver_opts),
        ("deploy", deploy_opts),
    ]


register_opts(CONF)


class ConfigSource(Protocol):
    """Read-only key lookup used to resolve deploy settings."""

    def get(self, key: str) -> Optional[str]:
        """Return the value for ``key`` or ``None`` when unset."""
        ...


class OsloConfigSource:
    """Configuration source backed by the registered ``oslo.config`` groups.

    ``remote.management-path`` maps onto ``CONF.remote.management_path``.
    """

    def __init__(self, conf: cfg.ConfigOpts = CONF):
        self._conf = conf

    def get(self, key: str) -> Optional[str]:
        """Return the option value as a string, ``None`` when unset or unknown."""
        group, _, name = key.partition(".")
        if not name:
            return None
        try:
            value = getattr(getattr(self._conf, group), name.replace("-", "_"))
        except (cfg.NoSuchOptError, cfg.NoSuchGroupError):
            return None
        if value is None:
            return None
        return str(value)


class RemoteEndpoint(BaseModel):
    """Remote management endpoint and the credentials used against it."""

    model_config = ConfigDict(frozen=True)

    scheme: Literal["http", "https"] = Field(default=DEFAULT_PROTOCOL)
    hostname: str = Field(min_length=1, description="Remote container host")
    port: int = Field(ge=1, le=65535, description="Remote management port")
    username: Optional[str] = Field(default=None)
    password: str = Field(default="", repr=False)
    container: str = Field(default=DEFAULT_CONTAINER, min_length=1)
    management_path: Optional[str] = Field(default=None)
    deploy_query: Optional[str] = Field(default=None)
    undeploy_query: Optional[str] = Field(default=None)
    timeout: float = Field(default=DEFAULT_REMOTE_TIMEOUT, gt=0)

    @field_validator("management_path")
    @classmethod
    def _absolute_path(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.startswith("/"):
            raise ValueError("management path must start with '/'")
        return value

    @field_validator("deploy_query", "undeploy_query")
    @classmethod
    def _has_url_placeholder(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and "{url}" not in value:
            raise ValueError("query template must contain '{url}'")
        return value

    @property
    def base_url(self) -> str:
        """Return ``scheme://host:port`` for the management endpoint."""
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        return f"{self.scheme}://{host}:{self.port}"

    @property
    def credentials(self) -> tuple[str, str] | None:
        """Return the basic-auth pair, ``None`` when no user is configured."""
        if not self.username:
            return None
        return (self.username, self.password)


class ListenerSettings(BaseModel):
    """Where the ephemeral file server listens."""

    model_config = ConfigDict(frozen=True)

    hostname: str = Field(default=DEFAULT_LISTEN_HOSTNAME, min_length=1)
    port: int = Field(default=DEFAULT_LISTEN_PORT, ge=0, le=65535)


class DeploySettings(BaseModel):
    """Bounds applied by the orchestrator to one deploy operation."""

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=DEFAULT_DEPLOY_TIMEOUT, gt=0)
    verify_grace: float = Field(default=DEFAULT_VERIFY_GRACE, ge=0)


def _value(source: ConfigSource, key: str, default=None):
    value = source.get(key)
    if value is None or value == "":
        return default
    return value


def _build(model: type[BaseModel], **values) -> BaseModel:
    try:
        return model(**values)
    except pydantic.ValidationError as exc:
        raise ConfigurationError(f"invalid {model.__name__} settings: {exc}") from exc


def resolve_endpoint(source: ConfigSource) -> RemoteEndpoint:
    """Resolve the remote endpoint descriptor from ``source``.

    Raises:
        ConfigurationError: when a value is malformed.
    """
    protocol = _value(source, "remote.protocol", DEFAULT_PROTOCOL)
    return _build(
        RemoteEndpoint,
        scheme=protocol.lower(),
        hostname=_value(source, "remote.hostname", DEFAULT_REMOTE_HOSTNAME),
        port=_value(source, "remote.port", DEFAULT_REMOTE_PORT),
        username=_value(source, "remote.username"),
        password=source.get("remote.password") or "",
        container=_value(source, "remote.container", DEFAULT_CONTAINER).lower(),
        management_path=_value(source, "remote.management-path"),
        deploy_query=_value(source, "remote.deploy-query"),
        undeploy_query=_value(source, "remote.undeploy-query"),
        timeout=_value(source, "remote.timeout", DEFAULT_REMOTE_TIMEOUT),
    )


def resolve_listener(source: ConfigSource) -> ListenerSettings:
    """Resolve the file server listening address from ``source``."""
    return _build(
        ListenerSettings,
        hostname=_value(source, "fileserver.hostname", DEFAULT_LISTEN_HOSTNAME),
        port=_value(source, "fileserver.port", DEFAULT_LISTEN_PORT),
    )


def resolve_deploy_settings(source: ConfigSource) -> DeploySettings:
    """Resolve the orchestrator timeouts from ``source``."""
    return _build(
        DeploySettings,
        timeout=_value(source, "deploy.timeout", DEFAULT_DEPLOY_TIMEOUT),
        verify_grace=_value(source, "deploy.verify-grace", DEFAULT_VERIFY_GRACE),
    )
