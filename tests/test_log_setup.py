import argparse
import logging

import pytest

from lib.log_setup import CONSOLE_FORMAT, add_logging, setup_logging


@pytest.fixture
def parser():
    p = argparse.ArgumentParser()
    add_logging(p)
    return p


@pytest.mark.parametrize("argv, level", [
    ([], logging.WARNING),
    (["-v"], logging.INFO),
    (["--debug"], logging.DEBUG),
])
def test_level_flags(parser, argv, level):
    args = parser.parse_args(argv)
    assert args.loglevel == level
    assert args.syslog is False


def test_debug_and_verbose_are_exclusive(parser):
    with pytest.raises(SystemExit):
        parser.parse_args(["-d", "-v"])


def test_setup_replaces_own_handler():
    logger = logging.getLogger("microscope_viewer.test_log_setup")
    foreign = logging.NullHandler()
    logger.addHandler(foreign)
    try:
        setup_logging(logger, loglevel=logging.INFO)
        setup_logging(logger, loglevel=logging.DEBUG)
        own = [h for h in logger.handlers if h is not foreign]
        assert len(own) == 1
        assert foreign in logger.handlers
        assert own[0].formatter._fmt == CONSOLE_FORMAT
        assert logger.level == logging.DEBUG
    finally:
        for h in list(logger.handlers):
            logger.removeHandler(h)
