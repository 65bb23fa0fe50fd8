"""Utility helpers for the ephemeral file server (framework-agnostic)."""

# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
import hashlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator
from urllib.parse import quote

from remote_deployer.exceptions import ConfigurationError

CHUNK_READ_SIZE = 64 * 1024

WILDCARD_HOSTS = ("0.0.0.0", "::")


@dataclass(frozen=True)
class Artifact:
    """A local file staged for a single remote retrieval.

    ``name`` is the file's base name without its extension and
    ``pull_name`` the same string percent-encoded as one URL path segment.
    """

    path: Path
    name: str
    size: int

    @property
    def pull_name(self) -> str:
        return quote(self.name, safe="")

    @property
    def pull_path(self) -> str:
        return "/" + self.pull_name


def stage_artifact(path) -> Artifact:
    """Validate that ``path`` is a readable regular file and describe it.

    Raises ConfigurationError when the file is missing or unreadable.
    """
    if path is None or str(path) == "":
        raise ConfigurationError("no artifact given")
    candidate = Path(path)
    if not candidate.exists():
        raise ConfigurationError(f"artifact {candidate} does not exist")
    if not candidate.is_file():
        raise ConfigurationError(f"artifact {candidate} is not a regular file")
    if not os.access(candidate, os.R_OK):
        raise ConfigurationError(f"artifact {candidate} is not readable")
    name = candidate.stem
    if not name:
        raise ConfigurationError(f"artifact {candidate} has no usable name")
    return Artifact(path=candidate.resolve(), name=name, size=candidate.stat().st_size)


def validate_listen_address(host: str, port) -> tuple[str, int]:
    """Check a host/port pair and return it normalised.

    Port 0 is accepted and lets the OS pick a free port.
    """
    if not isinstance(host, str) or not host or host != host.strip():
        raise ConfigurationError(f"invalid listen host {host!r}")
    if any(c.isspace() for c in host) or "/" in host:
        raise ConfigurationError(f"invalid listen host {host!r}")
    if isinstance(port, bool):
        raise ConfigurationError(f"invalid listen port {port!r}")
    try:
        port_num = int(port)
    except (TypeError, ValueError):
        raise ConfigurationError(f"invalid listen port {port!r}")
    if not 0 <= port_num <= 65535:
        raise ConfigurationError(f"listen port {port_num} out of range")
    return host, port_num


def iter_file_chunks(path: Path) -> Iterator[bytes]:
    """Yield the content of ``path`` in ``CHUNK_READ_SIZE`` pieces."""
    with open(path, "rb") as f:
        for buf in iter(lambda: f.read(CHUNK_READ_SIZE), b""):
            yield buf


def compute_sha256(path: Path) -> str:
    """Compute a streaming SHA-256 digest of a file."""
    h = hashlib.sha256()
    for chunk in iter_file_chunks(path):
        h.update(chunk)
    return h.hexdigest()
