# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Fileserver package exposing a staged artifact over HTTP.

Provides the short-lived server a remote container pulls the artifact
from during a deploy.
"""

from .server import EphemeralFileServer
from .utils import Artifact, stage_artifact

__all__ = [
    "Artifact",
    "EphemeralFileServer",
    "stage_artifact",
]
