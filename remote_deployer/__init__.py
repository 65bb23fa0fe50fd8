# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0
"""Hand a locally staged artifact over to a remote container for deployment."""

__version__ = "0.1.0"
