"""
Structlog setup shared by the MIZAN API and the batch CLI.

The API logs to stdout; the CLI passes stderr so its stdout stays free for
the JSON report. Call configure() once per process, before the first
get_logger() call is used.

Environment:
    MIZAN_LOG_LEVEL   level when none is passed (INFO)
    MIZAN_LOG_JSON    "true"/"false" forces the renderer; by default a TTY
                      gets the console renderer and anything else JSON
"""
import logging
import os
import sys
from typing import TextIO

import structlog

# Applied to structlog events and to foreign stdlib records alike
SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]

# Third-party loggers and the level they are held at
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "httpx": logging.WARNING,
}


def _wants_json(stream: TextIO) -> bool:
    forced = os.environ.get("MIZAN_LOG_JSON")
    if forced:
        return forced.lower() == "true"
    return not stream.isatty()


def _handler(stream: TextIO, json_logs: bool) -> logging.Handler:
    # ensure_ascii=False keeps Arabic names readable in the JSON lines
    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(stream)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=SHARED_PROCESSORS,
    ))
    return handler


def configure(
    log_level: str | None = None,
    json_logs: bool | None = None,
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging through one handler on stream."""
    stream = stream or sys.stdout
    level_name = (log_level or os.environ.get("MIZAN_LOG_LEVEL", "INFO")).upper()

    structlog.configure(
        processors=[*SHARED_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_handler(stream, _wants_json(stream) if json_logs is None else json_logs))
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
