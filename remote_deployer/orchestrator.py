# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Deploy orchestrator driving one artifact handoff to a remote container.

A deploy walks ``idle -> staged -> serving -> requesting -> verifying ->
completed | failed -> stopped``. The file server is stopped on every path
out of the state machine, so no listening socket outlives a deploy
attempt. A remote answer only counts as success when the file server also
saw the artifact being fetched.
"""

import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from oslo_log import log as logging

from remote_deployer.config import (
    ConfigSource,
    DeploySettings,
    ListenerSettings,
    RemoteEndpoint,
    resolve_deploy_settings,
    resolve_endpoint,
    resolve_listener,
)
from remote_deployer.exceptions import (
    ConfigurationError,
    DeployError,
    DeploymentOutcome,
    OrchestratorStateError,
    RemoteFetchError,
    RemoteRejected,
    RemoteTimeout,
)
from remote_deployer.fileserver import EphemeralFileServer
from remote_deployer.fileserver.server import build_pull_url
from remote_deployer.fileserver.utils import Artifact, compute_sha256, stage_artifact
from remote_deployer.remote import FetchTrigger, TriggerResponse, get_fetch_trigger

LOG = logging.getLogger(__name__)


class DeployState(str, Enum):
    """States of one deploy operation."""

    IDLE = "idle"
    STAGED = "staged"
    SERVING = "serving"
    REQUESTING = "requesting"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class DeployPhase(str, Enum):
    """Phase a deploy failed in."""

    STAGING = "staging"
    BINDING = "binding"
    REQUESTING = "requesting"
    VERIFYING = "verifying"


@dataclass(frozen=True)
class DeploymentResult:
    """Final verdict of a deploy, undeploy or redeploy.

    Attributes:
        outcome: Terminal outcome of the operation
        phase: Phase that failed, ``None`` on success
        error_kind: Name of the originating error, ``None`` on success
        message: Human readable summary
        detail: Message supplied by the remote endpoint, if any
        pull_url: URL the remote endpoint was told about
        fetch_count: Fetches the file server completed during this operation
        checksum: SHA-256 of the served artifact, to verify out of band
    """

    outcome: DeploymentOutcome
    phase: Optional[DeployPhase] = None
    error_kind: Optional[str] = None
    message: str = ""
    detail: Optional[str] = None
    pull_url: Optional[str] = None
    fetch_count: int = 0
    checksum: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is DeploymentOutcome.SUCCESS

    def as_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "phase": self.phase.value if self.phase else None,
            "error_kind": self.error_kind,
            "message": self.message,
            "detail": self.detail,
            "pull_url": self.pull_url,
            "fetch_count": self.fetch_count,
            "checksum": self.checksum,
        }


class ArtifactResolver(Protocol):
    """Turn a deployable handle into an absolute local path."""

    def resolve(self, handle) -> str:
        ...


class PathArtifactResolver:
    """Resolver treating the handle as a local path."""

    def resolve(self, handle) -> str:
        if handle is None:
            raise ConfigurationError("no artifact given")
        return os.path.abspath(os.path.expanduser(str(handle)))


class FileServer(Protocol):
    """The parts of :class:`EphemeralFileServer` the orchestrator relies on."""

    def configure(self, artifact, host: str, port) -> Artifact:
        ...

    def start(self):
        ...

    def get_url(self) -> str:
        ...

    def get_call_count(self) -> int:
        ...

    def wait_for_calls(self, count: int, timeout: float) -> bool:
        ...

    def stop(self, graceful=True):
        ...


class DeployOrchestrator:
    """Sequence one stage -> serve -> remote fetch -> verify -> teardown run.

    An orchestrator runs a single deploy; once ``stopped`` it has to be
    ``reset`` (or replaced) before the next one. Staging and binding errors
    are raised, everything after the file server is up is reported through
    the returned :class:`DeploymentResult`.
    """

    def __init__(
        self,
        endpoint: RemoteEndpoint,
        trigger: Optional[FetchTrigger] = None,
        listener: Optional[ListenerSettings] = None,
        settings: Optional[DeploySettings] = None,
        server: Optional[FileServer] = None,
        resolver: Optional[ArtifactResolver] = None,
    ):
        self.endpoint = endpoint
        self.trigger = trigger if trigger is not None else get_fetch_trigger(endpoint)
        self.listener = listener or ListenerSettings()
        self.settings = settings or DeploySettings()
        self.server = server if server is not None else EphemeralFileServer()
        self.resolver = resolver or PathArtifactResolver()
        self.state = DeployState.IDLE
        self.history = [DeployState.IDLE]
        self.result: Optional[DeploymentResult] = None
        self._abort_transfers = False
        self._trigger_thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, source: ConfigSource, **kwargs) -> "DeployOrchestrator":
        """Build an orchestrator from a configuration source."""
        return cls(
            resolve_endpoint(source),
            listener=resolve_listener(source),
            settings=resolve_deploy_settings(source),
            **kwargs,
        )

    def _transition(self, state: DeployState) -> None:
        LOG.debug("Deploy state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def reset(self) -> None:
        """Return a stopped orchestrator to ``idle`` for a fresh operation."""
        if self.state not in (DeployState.IDLE, DeployState.STOPPED):
            raise OrchestratorStateError(f"cannot reset while {self.state.value}")
        self.state = DeployState.IDLE
        self.history = [DeployState.IDLE]
        self.result = None
        self._abort_transfers = False

    def deploy(self, handle) -> DeploymentResult:
        """Deploy the artifact behind ``handle`` to the remote container.

        Raises:
            OrchestratorStateError: If this orchestrator already ran
            ConfigurationError: If the artifact or listening address is invalid
            BindError: If the file server cannot listen
        """
        if self.state is not DeployState.IDLE:
            raise OrchestratorStateError(
                f"orchestrator is {self.state.value}, reset it before deploying again"
            )
        try:
            self.result = self._run(handle)
        finally:
            self._teardown()
        self._log_result("Deploy", self.result)
        return self.result

    def _run(self, handle) -> DeploymentResult:
        try:
            artifact = stage_artifact(self.resolver.resolve(handle))
        except DeployError as exc:
            exc.phase = DeployPhase.STAGING
            raise
        checksum = compute_sha256(artifact.path)
        LOG.debug("Staged %s (%d bytes, sha256 %s)", artifact.path, artifact.size, checksum)
        self._transition(DeployState.STAGED)

        try:
            self.server.configure(artifact, self.listener.hostname, self.listener.port)
            self.server.start()
        except DeployError as exc:
            exc.phase = DeployPhase.BINDING
            raise
        self._transition(DeployState.SERVING)

        pull_url = self.server.get_url()
        baseline = self.server.get_call_count()
        self._transition(DeployState.REQUESTING)
        error = None
        try:
            self._request(pull_url)
        except RemoteFetchError as exc:
            error = exc
        self._transition(DeployState.VERIFYING)

        phase = DeployPhase.REQUESTING
        if error is None and not self.server.wait_for_calls(
            baseline + 1, self.settings.verify_grace
        ):
            error = RemoteRejected("remote endpoint reported success without fetching the artifact")
            phase = DeployPhase.VERIFYING
        fetched = self.server.get_call_count() - baseline

        if error is not None:
            self._transition(DeployState.FAILED)
            return self._failure(error, phase, pull_url, fetched, checksum)
        self._transition(DeployState.COMPLETED)
        return DeploymentResult(
            outcome=DeploymentOutcome.SUCCESS,
            message=f"{artifact.name} deployed to {self.endpoint.hostname}",
            pull_url=pull_url,
            fetch_count=fetched,
            checksum=checksum,
        )

    def _request(self, pull_url: str) -> TriggerResponse:
        """Send the fetch trigger, bounded by the operation timeout.

        The trigger runs on a daemon thread, so a remote endpoint that never
        answers cannot keep the process alive past the timeout.
        """
        outcome = {}

        def send():
            try:
                outcome["response"] = self.trigger.send_fetch_trigger(
                    pull_url, self.endpoint.credentials
                )
            except Exception as exc:
                outcome["error"] = exc

        self._trigger_thread = threading.Thread(target=send, name="fetch-trigger", daemon=True)
        self._trigger_thread.start()
        self._trigger_thread.join(self.settings.timeout)
        if self._trigger_thread.is_alive():
            self._abort_transfers = True
            raise RemoteTimeout(
                f"no verdict from {self.endpoint.hostname} within {self.settings.timeout}s"
            )
        if "error" in outcome:
            raise outcome["error"]
        return outcome["response"]

    def _failure(
        self,
        error: RemoteFetchError,
        phase: DeployPhase,
        pull_url: Optional[str],
        fetched: int = 0,
        checksum: Optional[str] = None,
    ) -> DeploymentResult:
        return DeploymentResult(
            outcome=error.outcome,
            phase=phase,
            error_kind=type(error).__name__,
            message=str(error),
            detail=error.detail,
            pull_url=pull_url,
            fetch_count=fetched,
            checksum=checksum,
        )

    def _teardown(self) -> None:
        if self.state not in (DeployState.COMPLETED, DeployState.FAILED):
            self._transition(DeployState.FAILED)
        try:
            self.server.stop(graceful=not self._abort_transfers)
        finally:
            self._transition(DeployState.STOPPED)

    def undeploy(self, handle) -> DeploymentResult:
        """Ask the remote container to undeploy the artifact behind ``handle``.

        The container identifies the deployment by the URL it was fetched
        from, so the file server's fixed listening address is reused. The
        file server itself is not started.
        """
        if self.state is not DeployState.IDLE:
            raise OrchestratorStateError(f"cannot undeploy while {self.state.value}")
        try:
            artifact = stage_artifact(self.resolver.resolve(handle))
        except DeployError as exc:
            exc.phase = DeployPhase.STAGING
            raise
        if self.listener.port == 0:
            raise ConfigurationError("undeploy needs a fixed file server port")
        pull_url = build_pull_url(
            self.listener.hostname,
            self.listener.port,
            artifact,
            scheme=getattr(self.server, "scheme", "http"),
        )
        try:
            self.trigger.send_undeploy_trigger(pull_url, self.endpoint.credentials)
        except RemoteFetchError as exc:
            result = self._failure(exc, DeployPhase.REQUESTING, pull_url)
        else:
            result = DeploymentResult(
                outcome=DeploymentOutcome.SUCCESS,
                message=f"{artifact.name} undeployed from {self.endpoint.hostname}",
                pull_url=pull_url,
            )
        self._log_result("Undeploy", result)
        return result

    def redeploy(self, handle) -> DeploymentResult:
        """Undeploy then deploy ``handle``.

        A rejected undeploy usually means nothing was deployed yet and does
        not prevent the deploy; any other undeploy failure is returned.
        """
        undeployed = self.undeploy(handle)
        if undeployed.outcome not in (
            DeploymentOutcome.SUCCESS,
            DeploymentOutcome.REMOTE_REJECTED,
        ):
            return undeployed
        return self.deploy(handle)

    @staticmethod
    def _log_result(operation: str, result: DeploymentResult) -> None:
        if result.succeeded:
            LOG.info("%s succeeded: %s", operation, result.message)
        else:
            LOG.error(
                "%s failed while %s with %s: %s",
                operation,
                result.phase.value,
                result.error_kind,
                result.message,
            )
