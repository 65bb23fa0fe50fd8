# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

import base64
import os
import socket
import threading
from wsgiref.simple_server import make_server

import pytest
import requests
from webob import Request, Response

from remote_deployer.fileserver import EphemeralFileServer
from remote_deployer.fileserver.server import QuietRequestHandler, ThreadingWSGIServer

ARTIFACT_SIZE = 200 * 1024


@pytest.fixture
def artifact_file(tmp_path):
    """A war file with a space in its name, larger than one read chunk."""
    path = tmp_path / "Report Card.war"
    path.write_bytes(os.urandom(ARTIFACT_SIZE))
    return path


@pytest.fixture
def file_server():
    server = EphemeralFileServer()
    yield server
    server.stop()


@pytest.fixture
def started_server(file_server, artifact_file):
    file_server.configure(artifact_file, "127.0.0.1", 0)
    file_server.start()
    return file_server


@pytest.fixture
def free_port():
    """A loopback port nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def busy_port():
    """A loopback port another socket is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.listen(1)
        yield s.getsockname()[1]


class FakeJBoss:
    """Minimal stand-in for the JMX console's MainDeployer operation.

    ``fetch`` controls whether the pull URL is actually retrieved before
    answering, ``fetched`` collects the bodies it downloaded.
    """

    def __init__(self, username="john", password="doe"):
        token = base64.b64encode(f"{username}:{password}".encode()).decode()
        self.expected_auth = f"Basic {token}"
        self.fetch = True
        self.requests = []
        self.fetched = []

    def __call__(self, environ, start_response):
        request = Request(environ)
        self.requests.append(request.url)
        if request.headers.get("Authorization") != self.expected_auth:
            response = Response("Unauthorized", status=401)
        elif request.GET.get("methodName") not in ("deploy", "undeploy"):
            response = Response("Unknown operation", status=400)
        else:
            if self.fetch and request.GET["methodName"] == "deploy":
                pulled = requests.get(request.GET["arg0"], timeout=10)
                pulled.raise_for_status()
                self.fetched.append(pulled.content)
            response = Response("Operation completed successfully without a return value.")
        return response(environ, start_response)


@pytest.fixture
def fake_jboss():
    """Run a FakeJBoss on a loopback port, yields ``(app, port)``."""
    app = FakeJBoss()
    httpd = make_server(
        "127.0.0.1",
        0,
        app,
        server_class=ThreadingWSGIServer,
        handler_class=QuietRequestHandler,
    )
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield app, httpd.server_address[1]
    httpd.shutdown()
    httpd.server_close()
    thread.join()
