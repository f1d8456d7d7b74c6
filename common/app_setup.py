"""
Logging and console output shared by the daemon and the CLI.

Functions:
    log_path           - Where the CLI writes its log file.
    setup_logging      - Configure the root logger (syslog for the daemon, a file otherwise).
    monkeypatch_print  - Replace built-in print with rich print.
    print_error        - Print an error in red on stderr and log it.
"""

import builtins
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

from rich import print as rich_print

APP_NAME = "media_directory"
LOGFILE_ENV = "MEDIA_DIRECTORY_LOGFILE"

logger = logging.getLogger(__name__)


def log_path(app_name: str = APP_NAME, logfile: Optional[str] = None) -> Path:
    """
    The explicit logfile, else $MEDIA_DIRECTORY_LOGFILE, else ~/.<app_name>/log.txt.
    The parent directory is created when missing.
    """
    path = Path(logfile or os.getenv(LOGFILE_ENV) or Path.home() / f".{app_name}" / "log.txt").expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _daemon_handler() -> logging.Handler:
    # /dev/log only exists on Linux hosts running a syslog daemon
    try:
        return logging.handlers.SysLogHandler(address='/dev/log')
    except OSError:
        return logging.StreamHandler(sys.stderr)


def setup_logging(app_name: str = APP_NAME, daemon: bool = False, loglevel: int = logging.INFO, logfile: Optional[str] = None) -> logging.Logger:
    """
    Set up logging for the application and return the root logger.
    The daemon logs to syslog, tagged with the app name; everything else to log_path().
    Handlers installed by an earlier call are closed and replaced.
    """
    root = logging.getLogger()
    root.setLevel(loglevel)
    if daemon:
        handler = _daemon_handler()
        handler.setFormatter(logging.Formatter(f'%(asctime)s %(levelname)s %(process)d [{app_name}] %(name)s %(message)s'))
    else:
        handler = logging.FileHandler(log_path(app_name, logfile))
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(process)d %(name)s %(message)s'))

    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()
    root.addHandler(handler)
    logger.debug("Logging initialized for %s (daemon=%s)", app_name, daemon)
    return root


def monkeypatch_print():
    """
    Monkeypatch built-in print to use rich.print for all output (no logging).
    """
    def print_to_rich(*args, **kwargs):
        rich_print(*args, **kwargs)
    builtins.print = print_to_rich  # monkeypatch print


def print_error(message: str, **kwargs):
    """Print an error (bold red, stderr) and log it at error level."""
    print(f'[bold red]{message}[/bold red]', file=sys.stderr, **kwargs)
    logger.error(message)
