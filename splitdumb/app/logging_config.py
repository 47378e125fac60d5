"""
logging_config.py — Console logging for the app and the splitdumb package.

Service modules log through logging.getLogger(__name__), which places them
under the "splitdumb" logger configured here. Flask's app.logger gets the
same handler so request-level errors share the format.
"""

from __future__ import annotations

import logging

PACKAGE_LOGGER_NAME = "splitdumb"

LOG_FORMAT = "%(asctime)s.%(msecs)03d - %(name)s - %(funcName)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def configure_logging(app) -> logging.Logger:
    """
    Attaches one StreamHandler to the package logger and app.logger.

    Safe to call once per create_app(): an existing handler is reused, so
    repeated app creation in tests does not duplicate log lines.
    """
    level = logging.getLevelName(app.config.get("LOG_LEVEL", "INFO"))
    if not isinstance(level, int):
        level = logging.INFO

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.setLevel(level)
    # Avoid duplicate lines through the root logger.
    package_logger.propagate = False

    handler = next(
        (h for h in package_logger.handlers if getattr(h, "_splitdumb_handler", False)),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler()
        handler._splitdumb_handler = True
        package_logger.addHandler(handler)
    handler.setLevel(level)
    handler.setFormatter(formatter)

    if handler not in app.logger.handlers:
        app.logger.addHandler(handler)
    app.logger.setLevel(level)

    return package_logger
