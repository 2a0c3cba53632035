# -*- coding: utf-8 -*-

# This code is part of ChronoPhoton.
#
# (C) Copyright IBM 2024.
#
# This code is licensed under the Apache License, Version 2.0. You may
# obtain a copy of this license in the LICENSE.txt file in the root directory
# of this source tree or at http://www.apache.org/licenses/LICENSE-2.0.
#
# Any modifications or derivative works of this code must retain this
# copyright notice, and modified files need to carry a notice indicating
# that they have been altered from the originals.

"""
Logging helpers.
"""

import logging
import os

PACKAGE_LOGGER = "chronophoton"

DEBUG_ENV_VAR = "CHRONOPHOTON_DEBUG"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level=logging.INFO, fmt: str = LOG_FORMAT) -> logging.Logger:
    """Attach a stream handler to the package logger.

    The library never configures handlers on import, this is meant for scripts and notebooks.
    Calling it again only updates the level.

    Args:
        level: Logging level for the package logger.
        fmt: Format string for the handler.

    Returns:
        logging.Logger: The package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if not any(getattr(h, "_chronophoton", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler._chronophoton = True
        logger.addHandler(handler)
    return logger


def debug_checks_enabled() -> bool:
    """Whether the expensive runtime checks of debug mode are switched on."""
    return os.environ.get(DEBUG_ENV_VAR, "").lower() not in ("", "0", "false", "no")
