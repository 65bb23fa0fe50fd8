# SPDX-FileCopyrightText: 2025 - Canonical Ltd
# SPDX-License-Identifier: Apache-2.0

from oslo_config import cfg
from oslo_log import log as logging

DOMAIN = "remote_deployer"

# CLI options can only be registered before the first parse.
logging.register_options(cfg.CONF)


def setup_logging(conf: cfg.ConfigOpts, debug: bool = False) -> None:
    """Configure oslo.log for the deployer once ``conf`` was parsed."""
    if debug:
        conf.set_override("debug", True)
    logging.setup(conf, DOMAIN)
