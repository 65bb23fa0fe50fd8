# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

from unittest.mock import MagicMock

import pytest
import requests
from requests.auth import HTTPBasicAuth

from remote_deployer.exceptions import (
    AuthenticationFailure,
    DeploymentOutcome,
    NetworkFailure,
    RemoteRejected,
    RemoteTimeout,
)
from remote_deployer.remote.client import RemoteFetchClient, TriggerResponse

URL = "http://remotehost:8888/jmx-console/HtmlAdaptor?arg0=x"


def _response(status: int, text: str = "", reason: str = ""):
    response = MagicMock()
    response.status_code = status
    response.text = text
    response.reason = reason
    return response


@pytest.fixture
def requests_get(mocker):
    return mocker.patch("remote_deployer.remote.client.requests.get")


class TestRemoteFetchClient:
    """Tests for RemoteFetchClient."""

    def test_success(self, requests_get):
        requests_get.return_value = _response(200, "done")
        result = RemoteFetchClient(timeout=5).connect(URL, "john", "doe")
        assert result == TriggerResponse(status=200, body="done")
        _, kwargs = requests_get.call_args
        assert requests_get.call_args.args == (URL,)
        assert kwargs["timeout"] == 5
        assert isinstance(kwargs["auth"], HTTPBasicAuth)
        assert (kwargs["auth"].username, kwargs["auth"].password) == ("john", "doe")

    def test_no_auth_without_username(self, requests_get):
        requests_get.return_value = _response(204)
        RemoteFetchClient().connect(URL)
        assert requests_get.call_args.kwargs["auth"] is None

    @pytest.mark.parametrize("status", [401, 403])
    def test_credentials_rejected(self, requests_get, status):
        requests_get.return_value = _response(status, "denied")
        with pytest.raises(AuthenticationFailure) as exc_info:
            RemoteFetchClient().connect(URL, "john", "wrong")
        assert exc_info.value.status == status
        assert exc_info.value.outcome is DeploymentOutcome.AUTHENTICATION_FAILURE

    @pytest.mark.parametrize("status", [302, 400, 404, 500, 503])
    def test_other_status_rejected(self, requests_get, status):
        requests_get.return_value = _response(status, "  deployment failed  ")
        with pytest.raises(RemoteRejected) as exc_info:
            RemoteFetchClient().connect(URL, "john", "doe")
        assert exc_info.value.status == status
        assert exc_info.value.detail == "deployment failed"

    def test_rejected_detail_falls_back_to_reason(self, requests_get):
        requests_get.return_value = _response(500, "", "Internal Server Error")
        with pytest.raises(RemoteRejected) as exc_info:
            RemoteFetchClient().connect(URL)
        assert exc_info.value.detail == "Internal Server Error"

    @pytest.mark.parametrize(
        "error", [requests.exceptions.ReadTimeout(), requests.exceptions.ConnectTimeout()]
    )
    def test_timeout(self, requests_get, error):
        requests_get.side_effect = error
        with pytest.raises(RemoteTimeout) as exc_info:
            RemoteFetchClient().connect(URL)
        assert exc_info.value.outcome is DeploymentOutcome.TIMEOUT

    def test_connection_error(self, requests_get):
        requests_get.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(NetworkFailure):
            RemoteFetchClient().connect(URL)

    def test_malformed_body(self, requests_get):
        requests_get.side_effect = requests.exceptions.ChunkedEncodingError("truncated")
        with pytest.raises(RemoteRejected):
            RemoteFetchClient().connect(URL)

    def test_connection_refused_on_real_socket(self, free_port):
        with pytest.raises(NetworkFailure):
            RemoteFetchClient(timeout=5).connect(f"http://127.0.0.1:{free_port}/")
