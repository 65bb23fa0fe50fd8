# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from requests.auth import HTTPBasicAuth

from remote_deployer.config import DEFAULT_REMOTE_TIMEOUT
from remote_deployer.exceptions import (
    AuthenticationFailure,
    NetworkFailure,
    RemoteRejected,
    RemoteTimeout,
)

logger = logging.getLogger(__name__)

MAX_DETAIL_LENGTH = 512


@dataclass(frozen=True)
class TriggerResponse:
    """Successful answer of a remote management endpoint."""

    status: int
    body: str


def _detail(response: requests.Response) -> Optional[str]:
    text = (response.text or "").strip()
    if not text:
        return response.reason or None
    return text[:MAX_DETAIL_LENGTH]


class RemoteFetchClient:
    """Issue authenticated requests to a remote management endpoint.

    Every call is self-contained: no session, cookie or retry state is
    kept between calls.
    """

    def __init__(self, timeout: float = DEFAULT_REMOTE_TIMEOUT):
        self.timeout = timeout

    def connect(
        self, url: str, username: Optional[str] = None, password: Optional[str] = None
    ) -> TriggerResponse:
        """Send one GET to ``url`` and interpret the answer.

        Args:
            url: Fully built management URL, already percent-encoded
            username: User for HTTP basic authentication, none when empty
            password: Password for HTTP basic authentication

        Returns:
            The status and body of a 2xx answer

        Raises:
            RemoteTimeout: If no answer arrived within ``timeout``
            NetworkFailure: If the connection could not be established or dropped
            AuthenticationFailure: If the endpoint answered 401 or 403
            RemoteRejected: If the endpoint answered any other non-2xx status or
                            the body could not be read
        """
        auth = HTTPBasicAuth(username, password or "") if username else None
        logger.debug("Sending fetch trigger to %s", url)
        try:
            response = requests.get(url, auth=auth, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise RemoteTimeout(f"No answer from remote endpoint within {self.timeout}s: {e}")
        except requests.exceptions.ConnectionError as e:
            raise NetworkFailure(f"Cannot reach remote endpoint: {e}")
        except (
            requests.exceptions.ChunkedEncodingError,
            requests.exceptions.ContentDecodingError,
        ) as e:
            raise RemoteRejected(f"Malformed answer from remote endpoint: {e}")
        except requests.exceptions.RequestException as e:
            raise NetworkFailure(f"Request to remote endpoint failed: {e}")
        return self.interpret(response)

    @staticmethod
    def interpret(response: requests.Response) -> TriggerResponse:
        """Map an HTTP answer onto success or a fetch error."""
        status = response.status_code
        if 200 <= status < 300:
            return TriggerResponse(status=status, body=response.text or "")
        detail = _detail(response)
        if status in (401, 403):
            raise AuthenticationFailure(
                f"Remote endpoint rejected the credentials (HTTP {status})",
                status=status,
                detail=detail,
            )
        raise RemoteRejected(
            f"Remote endpoint answered HTTP {status}", status=status, detail=detail
        )
