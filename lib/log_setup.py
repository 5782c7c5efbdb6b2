"""
Logging for the viewer: one named logger tree (microscope_viewer.*), console or local syslog output,
level chosen from command line flags.
"""

import logging
import logging.handlers
import sys

LOGGER_NAME = "microscope_viewer"

CONSOLE_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"
SYSLOG_FORMAT = f"{LOGGER_NAME}: %(name)s %(levelname)s %(message)s"
SYSLOG_ADDRESS = "/dev/log"


def add_logging(parser):
    """Add -d/--debug, -v/--verbose and --syslog to a parser (in their own argument group)."""
    group = parser.add_argument_group("logging")
    level = group.add_mutually_exclusive_group()
    level.add_argument("-d", "--debug", dest="loglevel", action="store_const", const=logging.DEBUG,
                       help="Log everything, including per-frame details")
    level.add_argument("-v", "--verbose", dest="loglevel", action="store_const", const=logging.INFO,
                       help="Log camera, calibration and settings events")
    group.add_argument("--syslog", action="store_true",
                       help="Send log records to the local syslog instead of stdout")
    parser.set_defaults(loglevel=logging.WARNING, syslog=False)
    return group


def _make_handler(syslog: bool) -> logging.Handler:
    if syslog:
        handler = logging.handlers.SysLogHandler(address=SYSLOG_ADDRESS)
        handler.setFormatter(logging.Formatter(SYSLOG_FORMAT))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def setup_logging(logger: logging.Logger, syslog: bool = False, loglevel: int = logging.WARNING) -> logging.Logger:
    """
    Attach one output handler to logger and set its level. Calling again replaces the handler this
    function installed earlier instead of stacking a second one.
    """
    for old in [h for h in logger.handlers if getattr(h, "_viewer_handler", False)]:
        logger.removeHandler(old)
        old.close()
    handler = _make_handler(syslog)
    handler._viewer_handler = True
    logger.addHandler(handler)
    logger.setLevel(loglevel)
    return logger
