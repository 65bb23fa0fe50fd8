# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Exceptions raised while staging, serving and triggering a remote deploy."""

from enum import Enum


class DeploymentOutcome(str, Enum):
    """Terminal outcome of one deploy operation."""

    SUCCESS = "success"
    AUTHENTICATION_FAILURE = "authentication_failure"
    NETWORK_FAILURE = "network_failure"
    REMOTE_REJECTED = "remote_rejected"
    TIMEOUT = "timeout"


class DeployError(Exception):
    """Base class for remote deployer errors.

    ``phase`` is set by the orchestrator to the deploy phase that failed.
    """

    phase = None


class ConfigurationError(DeployError):
    """Raised when the artifact or the settings are missing or invalid."""


class BindError(DeployError):
    """Raised when the file server cannot bind its listening socket."""


class ServerStateError(DeployError):
    """Raised when a file server operation is invalid for its lifecycle stage."""


class NotStartedError(ServerStateError):
    """Raised when the file server is used before it was started."""


class AlreadyStartedError(ServerStateError):
    """Raised when the file server is started or reconfigured while running."""


class OrchestratorStateError(DeployError):
    """Raised when an orchestrator is reused without a reset."""


class RemoteFetchError(DeployError):
    """Raised when the remote management endpoint did not accept the fetch trigger.

    Every subclass maps onto one :class:`DeploymentOutcome`. ``status`` holds
    the HTTP status code when a response was received and ``detail`` any
    message supplied by the remote side.
    """

    outcome = DeploymentOutcome.REMOTE_REJECTED

    def __init__(self, message: str, status: int | None = None, detail: str | None = None):
        super().__init__(message)
        self.status = status
        self.detail = detail


class NetworkFailure(RemoteFetchError):
    """Raised when the connection to the remote endpoint failed or dropped."""

    outcome = DeploymentOutcome.NETWORK_FAILURE


class AuthenticationFailure(RemoteFetchError):
    """Raised when the remote endpoint rejected the credentials."""

    outcome = DeploymentOutcome.AUTHENTICATION_FAILURE


class RemoteRejected(RemoteFetchError):
    """Raised when the remote endpoint answered but refused or did not fetch."""

    outcome = DeploymentOutcome.REMOTE_REJECTED


class RemoteTimeout(RemoteFetchError):
    """Raised when no terminal response arrived within the configured bound."""

    outcome = DeploymentOutcome.TIMEOUT
