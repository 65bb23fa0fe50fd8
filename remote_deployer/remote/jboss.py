# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Fetch trigger for JBoss containers, driven through the JMX console.

The MainDeployer MBean takes a URL argument and downloads the archive
itself, which is why the artifact has to be served over HTTP first. The
pull URL travels as a single query parameter, encoded as one opaque
token so the remote side never re-splits it.
"""

import logging
from typing import Optional
from urllib.parse import quote_plus

from remote_deployer.config import RemoteEndpoint
from remote_deployer.exceptions import RemoteRejected

from .base import Credentials
from .client import MAX_DETAIL_LENGTH, RemoteFetchClient, TriggerResponse

logger = logging.getLogger(__name__)

JMX_CONSOLE_PATH = "/jmx-console/HtmlAdaptor"
_MAIN_DEPLOYER_OP = (
    "action=invokeOpByName&name=jboss.system:service%3DMainDeployer"
    "&methodName={method}&argType=java.net.URL&arg0={{url}}"
)
DEPLOY_QUERY = _MAIN_DEPLOYER_OP.format(method="deploy")
UNDEPLOY_QUERY = _MAIN_DEPLOYER_OP.format(method="undeploy")

# The console answers 200 and renders the exception when the operation fails.
FAILURE_MARKERS = ("DeploymentException", "MBeanException")


def encode_pull_url(pull_url: str) -> str:
    """Percent-encode the whole pull URL as one query value."""
    return quote_plus(pull_url, safe="")


class JBossFetchTrigger:
    """Deploy and undeploy through the JBoss MainDeployer MBean."""

    def __init__(self, endpoint: RemoteEndpoint, client: Optional[RemoteFetchClient] = None):
        self.endpoint = endpoint
        self.client = client or RemoteFetchClient(timeout=endpoint.timeout)

    def build_url(self, pull_url: str, query_template: str) -> str:
        """Return the management URL carrying ``pull_url``."""
        path = self.endpoint.management_path or JMX_CONSOLE_PATH
        query = query_template.replace("{url}", encode_pull_url(pull_url))
        return f"{self.endpoint.base_url}{path}?{query}"

    def _send(self, url: str, credentials: Credentials) -> TriggerResponse:
        username, password = credentials if credentials else (None, None)
        response = self.client.connect(url, username, password)
        for marker in FAILURE_MARKERS:
            if marker in response.body:
                raise RemoteRejected(
                    f"JBoss reported {marker}",
                    status=response.status,
                    detail=response.body[:MAX_DETAIL_LENGTH],
                )
        return response

    def send_fetch_trigger(self, pull_url: str, credentials: Credentials) -> TriggerResponse:
        """Invoke ``MainDeployer.deploy`` with the pull URL."""
        logger.info("Asking %s to deploy %s", self.endpoint.hostname, pull_url)
        url = self.build_url(pull_url, self.endpoint.deploy_query or DEPLOY_QUERY)
        return self._send(url, credentials)

    def send_undeploy_trigger(self, pull_url: str, credentials: Credentials) -> TriggerResponse:
        """Invoke ``MainDeployer.undeploy`` with the pull URL."""
        logger.info("Asking %s to undeploy %s", self.endpoint.hostname, pull_url)
        url = self.build_url(pull_url, self.endpoint.undeploy_query or UNDEPLOY_QUERY)
        return self._send(url, credentials)
