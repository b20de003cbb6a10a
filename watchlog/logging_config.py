from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from watchlog.config import AppSettings

ROOT_LOGGER_NAME = "watchlog"
TELEMETRY_LOGGER_NAME = "watchlog.telemetry"
LOG_FILE_NAME = "watchlog.log"
TELEMETRY_LOG_FILE_NAME = "watchlog-telemetry.log"


def configure_application_logging(settings: AppSettings) -> Path:
    """Route `watchlog.*` loggers to a colored console and JSON log files.

    Returns the path of the main log file.
    """
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_level = _resolve_log_level(settings.log_level)
    root_logger = _isolated_logger(ROOT_LOGGER_NAME, logging.DEBUG)
    root_logger.addHandler(
        _handler(
            logging.StreamHandler(stream=sys.stdout),
            level=console_level,
            formatter=_console_formatter(colors=_is_tty(sys.stdout)),
        )
    )
    root_logger.addHandler(
        _handler(_file_handler(log_file), level=logging.DEBUG, formatter=_json_formatter())
    )

    telemetry_logger = _isolated_logger(TELEMETRY_LOGGER_NAME, logging.INFO)
    telemetry_logger.addHandler(
        _handler(
            _file_handler(log_dir / TELEMETRY_LOG_FILE_NAME),
            level=logging.INFO,
            formatter=_json_formatter(),
        )
    )

    root_logger.info(
        "logging configured console_level=%s path=%s telemetry_path=%s",
        logging.getLevelName(console_level),
        log_file,
        log_dir / TELEMETRY_LOG_FILE_NAME,
    )
    return log_file


def _resolve_log_level(raw_level: str) -> int:
    resolved = logging.getLevelName(raw_level.strip().upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _isolated_logger(name: str, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    return logger


def _handler(
    handler: logging.Handler,
    *,
    level: int,
    formatter: logging.Formatter,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _file_handler(path: Path) -> RotatingFileHandler:
    return RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )


def _console_formatter(*, colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
    )


def _json_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            _add_thread_context,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _add_thread_context(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    # Pipeline events run on pool threads named watchlog-pipeline_N.
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["module"] = record.module
        event_dict["lineno"] = record.lineno
        event_dict["thread_name"] = record.threadName
    return event_dict


def _is_tty(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except ValueError:
        return False
