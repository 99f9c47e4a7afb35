import logging
from logging import Filter
import os
from os import PathLike
import sys
from typing import Union


class ShiftReduceLogger(logging.Logger):
    """
    A custom subclass of 'logging.Logger' that keeps a set of messages to
    implement {debug,info,warning}_once() methods.  The search and objective code log the same
    per-instance conditions many times over an epoch, so we need a way to report them once.
    """

    def __init__(self, name):
        super().__init__(name)
        self._seen_msgs = set()

    def debug_once(self, msg, *args, **kwargs):
        if msg not in self._seen_msgs:
            self.debug(msg, *args, **kwargs)
            self._seen_msgs.add(msg)

    def info_once(self, msg, *args, **kwargs):
        if msg not in self._seen_msgs:
            self.info(msg, *args, **kwargs)
            self._seen_msgs.add(msg)

    def warning_once(self, msg, *args, **kwargs):
        if msg not in self._seen_msgs:
            self.warning(msg, *args, **kwargs)
            self._seen_msgs.add(msg)


logging.setLoggerClass(ShiftReduceLogger)
logger = logging.getLogger(__name__)


FILE_FRIENDLY_LOGGING: bool = False
"""
If this flag is set to `True`, we add newlines to tqdm output, even on an interactive terminal,
and we slow down tqdm's output to only once every 10 seconds.
"""


class ErrorFilter(Filter):
    """
    Filters out everything that is at the ERROR level or higher. This is meant to be used
    with a stdout handler when a stderr handler is also configured. That way ERROR
    messages aren't duplicated.
    """

    def filter(self, record):
        return record.levelno < logging.ERROR


def prepare_global_logging(serialization_dir: Union[str, PathLike], rank: int = 0) -> None:
    """
    Sends every log record to `serialization_dir/out.log` (or `out_worker{rank}.log` for
    training workers other than the first) and to stdout/stderr.  The level comes from
    `SHIFTREDUCE_LOG_LEVEL`, and `SHIFTREDUCE_DEBUG` forces DEBUG.
    """
    root_logger = logging.getLogger()

    if rank == 0:
        log_file = os.path.join(serialization_dir, "out.log")
        formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    else:
        log_file = os.path.join(serialization_dir, f"out_worker{rank}.log")
        formatter = logging.Formatter(
            f"{rank} | %(asctime)s - %(levelname)s - %(name)s - %(message)s"
        )
    file_handler = logging.FileHandler(log_file)
    stdout_handler = logging.StreamHandler(sys.stdout)
    stderr_handler = logging.StreamHandler(sys.stderr)

    handler: logging.Handler
    for handler in [file_handler, stdout_handler, stderr_handler]:
        handler.setFormatter(formatter)

    # Remove the already set handlers in root logger.
    # Not doing this will result in duplicate log messages
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    if os.environ.get("SHIFTREDUCE_DEBUG"):
        level = logging.DEBUG
    else:
        level_name = os.environ.get("SHIFTREDUCE_LOG_LEVEL", "INFO")
        level = logging.getLevelName(level_name.upper())
        if not isinstance(level, int):
            level = logging.INFO

    file_handler.setLevel(level)
    stdout_handler.setLevel(level)
    stdout_handler.addFilter(ErrorFilter())  # Make sure errors only go to stderr
    stderr_handler.setLevel(logging.ERROR)
    root_logger.setLevel(level)

    root_logger.addHandler(file_handler)
    if rank == 0:
        root_logger.addHandler(stdout_handler)
        root_logger.addHandler(stderr_handler)

    # write uncaught exceptions to the logs
    def excepthook(exctype, value, traceback):
        # For a KeyboardInterrupt, call the original exception handler.
        if issubclass(exctype, KeyboardInterrupt):
            sys.__excepthook__(exctype, value, traceback)
            return
        root_logger.critical("Uncaught exception", exc_info=(exctype, value, traceback))

    sys.excepthook = excepthook

    # also log tqdm, to the current log file only
    from shiftreduce.common.tqdm import logger as tqdm_logger

    for handler in list(tqdm_logger.handlers):
        tqdm_logger.removeHandler(handler)
    tqdm_logger.addHandler(file_handler)
