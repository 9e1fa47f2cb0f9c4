"""Logger construction for formflow components."""

import logging
from typing import Optional


def create_debug_logger(name: str = "formflow", enable_debug: bool = False) -> logging.Logger:
    """
    Return the named logger set to DEBUG when `enable_debug`, else WARNING.

    No handlers are attached; configuring output is the host's job.
    """
    log = logging.getLogger(name)
    log.setLevel(logging.DEBUG if enable_debug else logging.WARNING)
    return log


def resolve_logger(log: Optional[logging.Logger], default_name: str) -> logging.Logger:
    """The injected logger, or the module logger named `default_name`."""
    return log if log is not None else logging.getLogger(default_name)
