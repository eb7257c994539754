"""Structured logging for CI runs — structlog over stdlib logging, on stderr.

stdout belongs to the CLI's result summary, so every log line goes to
stderr. Pipelines bind their identity (pipeline, project, build URL) with
``pipeline_context`` so each event of a run can be traced back to it in the
CI console.
"""

from __future__ import annotations

import logging
import logging.config
import os
import sys
from contextlib import AbstractContextManager
from typing import Any

import structlog

LOG_FORMATS = ("console", "json", "logfmt")

# Third-party loggers that are only interesting when something breaks
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and stdlib logging for one CLI run.

    Environment:
        SCANSTATION_LOG_LEVEL  — default INFO; an explicit *level* (``-v``) wins
        SCANSTATION_LOG_FORMAT — console | json | logfmt (default: console)

    Console output is colored only when stderr is a terminal, so CI consoles
    get plain text.
    """
    log_level = (level or os.environ.get("SCANSTATION_LOG_LEVEL", "INFO")).upper()
    fmt = (log_format or os.environ.get("SCANSTATION_LOG_FORMAT", "console")).lower()
    if fmt not in LOG_FORMATS:
        raise ValueError(f"unknown log format {fmt!r}; supported: {list(LOG_FORMATS)}")

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "scanstation": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        _renderer(fmt),
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "scanstation",
                },
            },
            "root": {"handlers": ["stderr"], "level": log_level},
            "loggers": {
                "scanstation": {"level": log_level},
                **{name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
            },
        }
    )


def pipeline_context(pipeline: str, **fields: Any) -> AbstractContextManager[Any]:
    """Bind *pipeline* and the non-empty *fields* to every event logged inside the block."""
    bound = {k: v for k, v in fields.items() if v not in (None, "")}
    return structlog.contextvars.bound_contextvars(pipeline=pipeline, **bound)


def _renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    if fmt == "logfmt":
        return structlog.processors.LogfmtRenderer(key_order=["timestamp", "level", "event"])
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
