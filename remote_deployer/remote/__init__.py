# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Remote container management endpoints.

One fetch trigger implementation per container family, selected by the
``remote.container`` setting.
"""

from remote_deployer.config import RemoteEndpoint
from remote_deployer.exceptions import ConfigurationError

from .base import Credentials, FetchTrigger
from .client import RemoteFetchClient, TriggerResponse
from .jboss import JBossFetchTrigger

FETCH_TRIGGERS = {
    "jboss": JBossFetchTrigger,
}


def get_fetch_trigger(endpoint: RemoteEndpoint) -> FetchTrigger:
    """Return the fetch trigger for the endpoint's container family."""
    try:
        trigger_class = FETCH_TRIGGERS[endpoint.container]
    except KeyError:
        raise ConfigurationError(f"unsupported container family {endpoint.container!r}")
    return trigger_class(endpoint)


__all__ = [
    "Credentials",
    "FetchTrigger",
    "JBossFetchTrigger",
    "RemoteFetchClient",
    "TriggerResponse",
    "get_fetch_trigger",
]
