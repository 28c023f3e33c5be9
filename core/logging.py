"""
Logging Module - Centralized logging configuration
=================================================

All loggers live under the ``persona_responder`` namespace. Modules get
an adapter from get_logger() and pass structured fields with
``extra={...}``; the fields travel on the record as ``context`` and are
rendered by every formatter below:

- console: colored, ``key=value`` pairs after the message
- persona-responder.log: plain text or JSON lines
- errors.log: JSON lines, ERROR and above
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


ROOT_LOGGER_NAME = "persona_responder"


def _render_context(record: logging.LogRecord) -> str:
    """Format the record's context as ``key=value`` pairs."""
    context = getattr(record, "context", None)
    if not context:
        return ""
    return " " + " ".join(f"{key}={value}" for key, value in context.items())


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, for log shippers and grep-by-field.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = getattr(record, "context", None)
        if context:
            entry["data"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class PlainFormatter(logging.Formatter):
    """Single-line text format with context appended."""

    def __init__(self):
        super().__init__(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if record.exc_info:
            head, _, trace = line.partition("\n")
            return head + _render_context(record) + "\n" + trace
        return line + _render_context(record)


class ColoredFormatter(logging.Formatter):
    """
    Console formatter with ANSI colors per level.

    Colors are skipped when ``use_color`` is False, e.g. when stderr is
    redirected to a file.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    DIM = "\033[2m"
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<7}"
        context = _render_context(record)

        if self.use_color:
            color = self.COLORS.get(record.levelname, "")
            level = f"{color}{level}{self.RESET}"
            if context:
                context = f"{self.DIM}{context}{self.RESET}"

        short_name = record.name[len(ROOT_LOGGER_NAME) + 1:] or record.name
        line = f"{timestamp} {level} {short_name}: {record.getMessage()}{context}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter that attaches structured context to each record.

    Fixed fields given to get_logger() are merged with the ``extra``
    of the individual call; call-level fields win.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        context = dict(self.extra)
        context.update(kwargs.pop("extra", None) or {})
        kwargs["extra"] = {"context": context}
        return msg, kwargs


_loggers: Dict[str, logging.Logger] = {}
_configured = False


def setup_logging(
    log_dir: Optional[str] = None,
    log_level: str = "INFO",
    json_format: bool = False,
    console_output: bool = True,
    force: bool = False
) -> None:
    """
    Configure handlers on the ``persona_responder`` logger.

    Only the first call takes effect unless ``force`` is set.

    Args:
        log_dir: Directory for persona-responder.log and errors.log;
            no file logging when omitted
        log_level: Minimum level to capture
        json_format: Write persona-responder.log as JSON lines
        console_output: Also log to stderr
        force: Replace handlers installed by an earlier call

    Example:
        setup_logging(log_dir=config.log_dir, log_level="DEBUG")
    """
    global _configured

    if _configured and not force:
        return

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.propagate = False

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ColoredFormatter(use_color=sys.stderr.isatty()))
        root_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        main_handler = logging.FileHandler(log_path / "persona-responder.log", encoding="utf-8")
        main_handler.setFormatter(JSONFormatter() if json_format else PlainFormatter())
        root_logger.addHandler(main_handler)

        error_handler = logging.FileHandler(log_path / "errors.log", encoding="utf-8")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(error_handler)

    _configured = True


def get_logger(name: str, **extra) -> LoggerAdapter:
    """
    Get a logger for a module, namespaced under ``persona_responder``.

    Args:
        name: Module path, e.g. "rules.lexical"
        **extra: Context attached to every record from this logger

    Returns:
        LoggerAdapter instance

    Example:
        logger = get_logger("rules.lexical")
        logger.debug("Lexical match", extra={"rule": "greeting"})
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    if name not in _loggers:
        _loggers[name] = logging.getLogger(name)

    return LoggerAdapter(_loggers[name], extra)
