"""
Unit tests for logging setup.
"""

import logging

from sensor_sentinel.core.logging_config import setup_logging


def test_setup_logging_is_idempotent(test_config):
    name = "sensor_sentinel.tests.logging"
    try:
        logger = setup_logging(name, settings=test_config)
        assert len(logger.handlers) == 2
        assert logger.level == logging.WARNING
        assert (test_config.logs_dir / f"{name}.log").exists()

        again = setup_logging(name, settings=test_config)
        assert again is logger
        assert len(again.handlers) == 2
    finally:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
