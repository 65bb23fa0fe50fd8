# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Ephemeral WSGI file server exposing one staged artifact (threaded backend).

The server binds a single listener, answers ``GET`` for the artifact's
pull path and counts every response that was written out completely.
Requests are handled on their own threads so a slow remote transfer
never blocks the caller that started the server. TLS is optional and
configured through an ``ssl.SSLContext``, the same way the standalone
service below sets it up from ``oslo_service.sslutils``.
"""

import os
import socket
import ssl
import threading
from socketserver import ThreadingMixIn
from typing import Callable, Optional
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from oslo_log import log as logging
from oslo_service import service
from webob import Request, Response

from remote_deployer.exceptions import (
    AlreadyStartedError,
    BindError,
    ConfigurationError,
    NotStartedError,
)

from .utils import (
    CHUNK_READ_SIZE,
    WILDCARD_HOSTS,
    Artifact,
    stage_artifact,
    validate_listen_address,
)

LOG = logging.getLogger(__name__)


def build_pull_url(host: str, port: int, artifact: Artifact, scheme: str = "http") -> str:
    """Return the URL under which ``artifact`` is served on ``host:port``.

    A wildcard listen address is advertised as this machine's FQDN.
    """
    if host in WILDCARD_HOSTS:
        host = socket.getfqdn()
    if ":" in host:
        host = f"[{host}]"
    return f"{scheme}://{host}:{port}{artifact.pull_path}"


def _error(status: int, detail: str) -> Response:
    """Return a JSON error response with the given HTTP status and detail."""
    return Response(json_body={"detail": detail}, status=status)


class CountingFileIter:
    """WSGI body iterator that reports a fetch once the last chunk was written.

    The WSGI server asks for the next chunk only after the previous one was
    sent, so reaching the end of the file means every byte went out without
    an I/O error. A client that disconnects mid-transfer makes the server
    stop iterating and ``on_complete`` is never called.
    """

    def __init__(self, fileobj, on_complete: Callable[[], None]):
        self._file = fileobj
        self._on_complete = on_complete
        self._finished = False

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        buf = self._file.read(CHUNK_READ_SIZE)
        if buf:
            return buf
        if not self._finished:
            self._finished = True
            self._on_complete()
        raise StopIteration

    def close(self):
        self._file.close()


class FileServerApplication:
    """WSGI application serving one artifact under its pull path."""

    def __init__(self, artifact: Artifact, on_fetched: Callable[[str], None]):
        self.artifact = artifact
        self._on_fetched = on_fetched

    def serve_artifact(self, request: Request) -> Response:
        """Stream the artifact back with its exact length."""
        remote_addr = request.remote_addr or "unknown"
        LOG.info("Serving %s to %s", self.artifact.name, remote_addr)
        try:
            fileobj = open(self.artifact.path, "rb")
        except OSError as exc:
            LOG.exception("Cannot open artifact %s: %s", self.artifact.path, exc)
            return _error(500, "artifact unavailable")
        size = os.fstat(fileobj.fileno()).st_size
        return Response(
            app_iter=CountingFileIter(fileobj, lambda: self._on_fetched(remote_addr)),
            content_type="application/octet-stream",
            content_length=size,
        )

    def _route(self, request: Request) -> Response:
        """Dispatch incoming requests, only the pull path exists."""
        if request.path_info != "/" + self.artifact.name:
            return _error(404, "Not found")
        if request.method != "GET":
            response = _error(405, "Method not allowed")
            response.allow = ("GET",)
            return response
        return self.serve_artifact(request)

    def __call__(self, environ, start_response):
        """WSGI application callable."""
        request = Request(environ)
        try:
            response = self._route(request)
        except Exception as exc:
            LOG.exception("Request for %s failed: %s", request.path_info, exc)
            response = _error(500, str(exc))
        return response(environ, start_response)


class QuietRequestHandler(WSGIRequestHandler):
    """Request handler sending access lines to the log instead of stderr."""

    def log_message(self, format, *args):
        LOG.debug("%s - %s", self.address_string(), format % args)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """Threading-based WSGI server tracking its open connections."""

    daemon_threads = True
    block_on_close = False
    allow_reuse_port = False

    def __init__(self, *args, **kwargs):
        self._connections = set()
        self._connections_lock = threading.Lock()
        super().__init__(*args, **kwargs)

    def process_request(self, request, client_address):
        with self._connections_lock:
            self._connections.add(request)
        super().process_request(request, client_address)

    def shutdown_request(self, request):
        with self._connections_lock:
            self._connections.discard(request)
        super().shutdown_request(request)

    def abort_connections(self) -> int:
        """Shut down every connection still being served, return how many."""
        with self._connections_lock:
            connections = list(self._connections)
        for conn in connections:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError as exc:
                LOG.debug("Connection already closed: %s", exc)
        return len(connections)


class ThreadingWSGIServerV6(ThreadingWSGIServer):
    """IPv6 variant of the threading WSGI server."""

    address_family = socket.AF_INET6


class EphemeralFileServer(service.ServiceBase):
    """Short-lived HTTP server exposing one artifact for remote retrieval.

    Lifecycle: ``configure`` -> ``start`` -> ``get_url`` -> ``stop``. The
    fetch counter survives ``stop`` and is never reset, callers compare it
    against a baseline read before they expect a fetch.
    """

    def __init__(self, ssl_context: Optional[ssl.SSLContext] = None):
        self._ssl_context = ssl_context
        self._artifact: Optional[Artifact] = None
        self._host: Optional[str] = None
        self._port: Optional[int] = None
        self._httpd: Optional[ThreadingWSGIServer] = None
        self._thread: Optional[threading.Thread] = None
        self._lifecycle = threading.Lock()
        self._calls = threading.Condition()
        self._call_count = 0

    @property
    def artifact(self) -> Optional[Artifact]:
        return self._artifact

    @property
    def running(self) -> bool:
        return self._httpd is not None

    @property
    def scheme(self) -> str:
        return "https" if self._ssl_context is not None else "http"

    def configure(self, artifact, host: str, port) -> Artifact:
        """Bind the artifact and the listening address.

        ``artifact`` is either a path or an already staged :class:`Artifact`.
        """
        with self._lifecycle:
            if self._httpd is not None:
                raise AlreadyStartedError("file server is running, stop it first")
            if not isinstance(artifact, Artifact):
                artifact = stage_artifact(artifact)
            self._host, self._port = validate_listen_address(host, port)
            self._artifact = artifact
        return artifact

    def start(self):
        """Bind the listening socket and start accepting requests."""
        with self._lifecycle:
            if self._httpd is not None:
                raise AlreadyStartedError("file server already started")
            if self._artifact is None:
                raise ConfigurationError("file server started before configure")
            server_class = ThreadingWSGIServerV6 if ":" in self._host else ThreadingWSGIServer
            app = FileServerApplication(self._artifact, self._record_fetch)
            try:
                httpd = make_server(
                    self._host,
                    self._port,
                    app,
                    server_class=server_class,
                    handler_class=QuietRequestHandler,
                )
            except OSError as exc:
                raise BindError(f"cannot listen on {self._host}:{self._port}: {exc}") from exc
            if self._ssl_context is not None:
                httpd.socket = self._ssl_context.wrap_socket(httpd.socket, server_side=True)
            self._httpd = httpd
            self._thread = threading.Thread(
                target=httpd.serve_forever, name="fileserver", daemon=True
            )
            self._thread.start()
        LOG.info("Serving %s at %s", self._artifact.path, self.get_url())

    def get_url(self) -> str:
        """Return the URL a remote party uses to fetch the artifact."""
        httpd = self._httpd
        if httpd is None:
            raise NotStartedError("file server is not running")
        return build_pull_url(
            self._host, httpd.server_address[1], self._artifact, scheme=self.scheme
        )

    def get_call_count(self) -> int:
        """Return the number of completed fetches of the artifact."""
        with self._calls:
            return self._call_count

    def wait_for_calls(self, count: int, timeout: float) -> bool:
        """Wait until at least ``count`` fetches completed.

        Returns whether the counter reached ``count`` within ``timeout``.
        """
        with self._calls:
            return self._calls.wait_for(lambda: self._call_count >= count, timeout=timeout)

    def _record_fetch(self, remote_addr: str) -> None:
        with self._calls:
            self._call_count += 1
            count = self._call_count
            self._calls.notify_all()
        LOG.info("Artifact %s fetched by %s (fetch #%d)", self._artifact.name, remote_addr, count)

    def stop(self, graceful=True):
        """Stop accepting requests and close the listening socket.

        A graceful stop lets transfers in flight finish, otherwise their
        connections are shut down as well. Stopping twice is a no-op.
        """
        with self._lifecycle:
            httpd, self._httpd = self._httpd, None
            thread, self._thread = self._thread, None
        if httpd is None:
            return
        httpd.shutdown()
        if not graceful:
            aborted = httpd.abort_connections()
            if aborted:
                LOG.warning("Aborted %d transfer(s) in flight", aborted)
        httpd.server_close()
        if thread is not None:
            thread.join()
        LOG.info("File server for %s stopped", self._artifact.name)

    def wait(self):
        """Wait for the accept loop to finish."""
        thread = self._thread
        if thread is not None:
            thread.join()

    def reset(self):
        """Reset service state (no-op)."""
        return
