"""Process-wide logging setup.

Modules log through the standard ``logging`` module. In JSON mode every
record, including those from third-party libraries, is rendered by
structlog as one JSON object per line.
"""

import logging.config

import structlog

from payrecon.config import settings

_PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_PRE_CHAIN = [
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _json_formatter() -> dict:
    return {
        "()": structlog.stdlib.ProcessorFormatter,
        "processors": [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        "foreign_pre_chain": _PRE_CHAIN,
    }


def configure_logging(level: str | None = None, json_lines: bool | None = None) -> None:
    use_json = settings.log_json if json_lines is None else json_lines
    formatter = _json_formatter() if use_json else {"format": _PLAIN_FORMAT}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": formatter},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "level": (level or settings.log_level).upper(),
                "handlers": ["console"],
            },
        }
    )
