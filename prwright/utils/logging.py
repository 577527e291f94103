"""structlog configuration routed through the stdlib root logger."""

from __future__ import annotations

import logging
import re
import sys

import structlog

# (pattern, replacement) applied to every string value of an event
_REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\b(?:ghp|gho|ghs|ghu|github_pat)_[A-Za-z0-9_]+"), "***REDACTED***"),
    (re.compile(r"\bsk-ant-[A-Za-z0-9_\-]+"), "***REDACTED***"),
    (re.compile(r"\b(Bearer|token)\s+[\w\-\.]+", re.IGNORECASE), r"\1 ***REDACTED***"),
    (
        re.compile(r"(token|api_key|secret|password|authorization)[\"']?\s*[:=]\s*[\"']?[\w\-\.]+",
                   re.IGNORECASE),
        r"\1=***REDACTED***",
    ),
)

# Model output and file bodies can be huge; DEBUG keeps them whole
_MAX_VALUE_CHARS = 2000

_NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "aiosqlite")


def _redact(
    _logger: structlog.types.WrappedLogger,
    _method: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    for key, value in list(event_dict.items()):
        if isinstance(value, str):
            for pattern, replacement in _REDACTIONS:
                value = pattern.sub(replacement, value)
            event_dict[key] = value
    return event_dict


def _clip_long_values(
    _logger: structlog.types.WrappedLogger,
    method: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    if method == "debug":
        return event_dict
    for key, value in list(event_dict.items()):
        if isinstance(value, str) and len(value) > _MAX_VALUE_CHARS:
            event_dict[key] = f"{value[:_MAX_VALUE_CHARS]}... ({len(value)} chars)"
    return event_dict


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog; ``json_output`` switches the console renderer for JSON lines."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if numeric_level <= logging.DEBUG:
        print(
            "WARNING: DEBUG logging is enabled. Prompts, model output and file "
            "contents will appear in logs.",
            file=sys.stderr,
        )

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _clip_long_values,
        _redact,
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
