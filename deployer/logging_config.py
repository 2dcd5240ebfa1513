"""Logging for airnode-deployer.

The console shows what the deployer is doing. Normally that is only the
progress messages plus warnings and errors; debug mode (``--debug``) adds every
terraform command and storage call, stamped with the time and logger name.

A log file, when one is configured with ``--log-file`` or
``DEPLOYER_LOG_FILE``, always receives the full debug trail as JSON lines, so a
failed deployment can be investigated without re-running it in debug mode.

Values read from ``secrets.env`` are registered with :func:`register_secrets`
and masked in both outputs. Text the CLI prints itself goes through
:func:`mask_secrets`.
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set, TextIO

LOG_LEVEL_ENV = 'DEPLOYER_LOG_LEVEL'
LOG_FORMAT_ENV = 'DEPLOYER_LOG_FORMAT'
LOG_FILE_ENV = 'DEPLOYER_LOG_FILE'

LOG_FORMATS = ('human', 'json')

# SDK loggers that flood debug output with request dumps
QUIET_LOGGERS = ('botocore', 'boto3', 's3transfer', 'urllib3', 'google', 'google_auth_httplib2')

# Record attributes copied into JSON lines when set through ``extra``
DEPLOYMENT_FIELDS = ('airnode_address', 'stage', 'cloud_provider', 'command')


class SecretsFilter(logging.Filter):
    """Replace registered secret values with a mask in every record."""

    MASK = '*****'

    def __init__(self) -> None:
        super().__init__()
        self._secrets: Set[str] = set()

    def add_secrets(self, values: Iterable[str]) -> None:
        self._secrets.update(v for v in values if v)

    def clear(self) -> None:
        self._secrets.clear()

    def mask(self, text: str) -> str:
        # Longest first so a secret containing another one is fully masked
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, self.MASK)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if self._secrets:
            record.msg = self.mask(record.getMessage())
            record.args = None
            if record.exc_info:
                # Tracebacks are rendered after filtering, mask the cached text
                record.exc_text = self.mask(logging.Formatter().formatException(record.exc_info))
                record.exc_info = None
        return True


_SECRETS_FILTER = SecretsFilter()


def register_secrets(values: Iterable[str]) -> None:
    """Mask the given values in all log output from now on."""
    _SECRETS_FILTER.add_secrets(values)


def mask_secrets(text: str) -> str:
    """Mask registered secret values in text printed outside of logging."""
    return _SECRETS_FILTER.mask(text)


class ConsoleFormatter(logging.Formatter):
    """Console output for people running the deployer.

    Outside debug mode INFO records are printed as bare messages and anything
    more severe gets a ``Warning:``/``Error:`` prefix. Debug mode prints time,
    level and logger name for every record.
    """

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[31m',
    }
    RESET = '\033[0m'

    def __init__(self, debug: bool = False, use_colors: bool = False):
        if debug:
            super().__init__('%(asctime)s %(levelname)-8s %(name)s: %(message)s', datefmt='%H:%M:%S')
        else:
            super().__init__('%(message)s')
        self.debug = debug
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        if not self.debug and record.levelno >= logging.WARNING:
            formatted = f"{record.levelname.capitalize()}: {formatted}"

        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color:
            return f"{color}{formatted}{self.RESET}"
        return formatted


class JsonLinesFormatter(logging.Formatter):
    """One JSON object per record for deployer log files."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            'time': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in DEPLOYMENT_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        elif record.exc_text:
            entry['exception'] = record.exc_text

        return json.dumps(entry, default=str)


def resolve_log_level(debug: bool = False) -> int:
    """Console log level: DEBUG in debug mode, else ``DEPLOYER_LOG_LEVEL`` (default INFO)."""
    if debug:
        return logging.DEBUG
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, 'INFO').upper())
    return level if isinstance(level, int) else logging.INFO


def resolve_log_format(log_format: Optional[str] = None) -> str:
    """Console format from the argument or ``DEPLOYER_LOG_FORMAT``; unknown values fall back to human."""
    log_format = (log_format or os.environ.get(LOG_FORMAT_ENV) or 'human').lower()
    return log_format if log_format in LOG_FORMATS else 'human'


def setup_logging(
    debug: bool = False,
    log_format: Optional[str] = None,
    log_file: Optional[Path] = None,
    use_colors: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure the root logger for a deployer run.

    Args:
        debug: Debug mode, every record reaches the console with its origin
        log_format: ``human`` or ``json`` console output
        log_file: JSON lines debug log; ``DEPLOYER_LOG_FILE`` when None
        use_colors: Color console records by level when the stream is a terminal
        stream: Console stream, stdout by default

    Existing root handlers are replaced, so calling this again reconfigures
    logging from scratch. Registered secrets stay registered.
    """
    level = resolve_log_level(debug)
    log_format = resolve_log_format(log_format)
    stream = stream or sys.stdout
    if log_file is None and os.environ.get(LOG_FILE_ENV):
        log_file = Path(os.environ[LOG_FILE_ENV])

    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG if log_file else level)

    console = logging.StreamHandler(stream)
    console.setLevel(level)
    if log_format == 'json':
        console.setFormatter(JsonLinesFormatter())
    else:
        console.setFormatter(
            ConsoleFormatter(debug=debug, use_colors=use_colors and stream.isatty())
        )
    console.addFilter(_SECRETS_FILTER)
    root.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JsonLinesFormatter())
        file_handler.addFilter(_SECRETS_FILTER)
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
