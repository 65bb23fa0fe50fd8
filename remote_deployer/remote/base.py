# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Capability interface implemented once per remote container family."""

from typing import Optional, Protocol, runtime_checkable

from .client import TriggerResponse

Credentials = Optional[tuple[str, str]]


@runtime_checkable
class FetchTrigger(Protocol):
    """Tell a remote container to pull, or forget, an artifact.

    Implementations raise a :class:`~remote_deployer.exceptions.RemoteFetchError`
    subclass when the remote side did not accept the instruction.
    """

    def send_fetch_trigger(self, pull_url: str, credentials: Credentials) -> TriggerResponse:
        """Instruct the remote container to retrieve and deploy ``pull_url``."""
        ...

    def send_undeploy_trigger(self, pull_url: str, credentials: Credentials) -> TriggerResponse:
        """Instruct the remote container to undeploy what it fetched from ``pull_url``."""
        ...
