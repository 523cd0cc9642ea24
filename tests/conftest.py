"""Shared fixtures for the ews_contact_sync test suite."""

import logging

import pytest

from ews_contact_sync.utils.logging import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_package_logger():
    """
    Undo setup_logging between tests.

    setup_logging disables propagation on the package logger, which hides
    records from caplog in later tests.
    """
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
