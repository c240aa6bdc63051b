"""Logging utilities for netcup-acme.

`setup_logging` is called once the command line has been parsed. It
sends every record to a rotating log file in ``--logs-dir`` and shows
records of the level chosen with ``-v``/``-q`` on the terminal. It also
installs `except_hook` so that fatal errors are logged and reported as a
single line.

Nothing that may hold a secret is logged without going through
`mask_secrets`.
"""
import functools
import logging
import logging.handlers
import os
import re
import sys
import traceback
from types import TracebackType
from typing import Any
from typing import Dict
from typing import IO
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Type

from netcup_acme import configuration
from netcup_acme import errors
from netcup_acme._internal import constants

# Logging format
CLI_FMT = "%(message)s"
FILE_FMT = "%(asctime)s:%(levelname)s:%(name)s:%(message)s"

ANSI_SGR_RED = "\033[31m"
ANSI_SGR_RESET = "\033[0m"

MASK = '***'

logger = logging.getLogger(__name__)


def setup_logging(config: configuration.NamespaceConfig) -> str:
    """Setup terminal and file logging.

    :param .NamespaceConfig config: Configuration object
    :returns: path of the log file
    :rtype: str

    """
    file_handler, file_path = setup_log_file_handler(
        config, constants.LOG_FILENAME, FILE_FMT)

    stderr_handler = ColoredStreamHandler()
    stderr_handler.setFormatter(logging.Formatter(CLI_FMT))
    if config.quiet:
        level = constants.QUIET_LOGGING_LEVEL
    else:
        level = max(constants.DEFAULT_LOGGING_LEVEL - config.verbose_count * 10, logging.DEBUG)
    stderr_handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # send all records to handlers
    root_logger.addHandler(stderr_handler)
    root_logger.addHandler(file_handler)
    logger.debug('Root logging level set at %d', level)
    logger.debug('Configuration: %s', mask_secrets(config.to_dict()))

    sys.excepthook = functools.partial(
        except_hook, debug=config.debug, quiet=config.quiet, log_path=file_path)
    return file_path


def setup_log_file_handler(config: configuration.NamespaceConfig, logfile: str,
                           fmt: str) -> Tuple[logging.Handler, str]:
    """Setup file debug logging.

    :param .NamespaceConfig config: Configuration object
    :param str logfile: basename for the log file
    :param str fmt: logging format string

    :returns: file handler and absolute path to the log file
    :rtype: tuple

    """
    log_file_path = os.path.join(config.logs_dir, logfile)
    try:
        os.makedirs(config.logs_dir, 0o700, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_file_path, maxBytes=2 ** 20,
            backupCount=config.max_log_backups)
    except OSError as error:
        raise errors.Error('Cannot write log file: {0}'.format(error))
    # rotate on each invocation, rollover only possible when maxBytes
    # is nonzero and backupCount is nonzero, so we set maxBytes as big
    # as possible not to overrun in single CLI invocation (1MB).
    if config.max_log_backups:
        handler.doRollover()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt=fmt))
    return handler, log_file_path


class ColoredStreamHandler(logging.StreamHandler):
    """Sends colored logging output to a stream.

    If the specified stream is not a tty, the class works like the
    standard `logging.StreamHandler`. Default red_level is
    `logging.WARNING`.

    :ivar bool colored: True if output should be colored
    :ivar bool red_level: The level at which to output

    """
    def __init__(self, stream: Optional[IO] = None) -> None:
        super().__init__(stream)
        self.colored = (sys.stderr.isatty() if stream is None else
                        stream.isatty())
        self.red_level = logging.WARNING

    def format(self, record: logging.LogRecord) -> str:
        out = super().format(record)
        if self.colored and record.levelno >= self.red_level:
            return ''.join((ANSI_SGR_RED, out, ANSI_SGR_RESET))
        return out


def mask_secrets(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy `values`, replacing strings stored under secret-looking keys.

    A key looks secret if it contains ``api``, ``key``, ``secret``,
    ``password`` or ``token``, in any case. Empty values stay empty so the
    log still shows that a value is missing.

    """
    pattern = re.compile(constants.SECRET_KEY_PATTERN, re.IGNORECASE)
    masked: Dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Mapping):
            masked[key] = mask_secrets(value)
        elif isinstance(value, str) and value and pattern.search(str(key)):
            masked[key] = MASK
        else:
            masked[key] = value
    return masked


def except_hook(exc_type: Type[BaseException], exc_value: BaseException,
                trace: TracebackType, debug: bool, quiet: bool,
                log_path: str) -> None:
    """Logs fatal exceptions and reports them to the user.

    If debug is True, the full exception and traceback is shown to the
    user, otherwise, it is suppressed. sys.exit is always called with a
    nonzero status.

    :param type exc_type: type of the raised exception
    :param BaseException exc_value: raised exception
    :param traceback trace: traceback of where the exception was raised
    :param bool debug: True if the traceback should be shown to the user
    :param bool quiet: True if running in quiet mode
    :param str log_path: path to the log file

    """
    exc_info = (exc_type, exc_value, trace)
    if debug or not issubclass(exc_type, Exception):
        if exc_type is KeyboardInterrupt:
            logger.error('Exiting due to user request.')
            sys.exit(1)
        logger.error('Exiting abnormally:', exc_info=exc_info)
    else:
        logger.debug('Exiting abnormally:', exc_info=exc_info)
        if issubclass(exc_type, errors.Error):
            logger.error(str(exc_value))
        else:
            logger.error('An unexpected error occurred:')
            output = traceback.format_exception_only(exc_type, exc_value)
            logger.error(''.join(output).rstrip())
    if quiet:
        sys.exit(1)
    sys.exit('See the logfile {0} or re-run netcup-acme with -v for more details.'.format(
        log_path))
