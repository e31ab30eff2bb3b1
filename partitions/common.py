"""
Constants and logging shared by all modules

NB: this module cannot import anything from partitions itself
"""
from __future__ import annotations
import logging as _logging
import functools as _functools


__all__ = (
    'getLogger',
    'setLogLevel',
    'FULL_SCORE',
    'FORMATS',
)


FULL_SCORE = 'score'
"""Target name reserved for the full score. No part can use it"""


FORMATS = ('pdf', 'png', 'ps')
"""Output formats supported by the engraver"""


_logformat = '[%(name)s:%(filename)s:%(lineno)s:%(funcName)s:%(levelname)s] %(message)s'


@_functools.cache
def getLogger(name: str, logfile='') -> _logging.Logger:
    """
    The logger for name, writing to stderr

    The logger does not propagate to the root logger, so that configuring
    logging in an application does not duplicate its messages. Subsequent calls
    with the same name return the same logger

    Args:
        name: the name of the logger
        logfile: if given, messages are also written to this file

    Returns:
        the logger
    """
    logger = _logging.getLogger(name)
    logger.handlers.clear()
    logger.propagate = False
    formatter = _logging.Formatter(_logformat)
    handlers: list[_logging.Handler] = [_logging.StreamHandler()]
    if logfile:
        handlers.append(_logging.FileHandler(logfile))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def setLogLevel(level: int | str) -> None:
    """
    Set the level of the package logger

    Args:
        level: a logging level, like 'DEBUG' or logging.INFO
    """
    getLogger('partitions').setLevel(level)
