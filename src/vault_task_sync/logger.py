import json
import logging
import os
import sys

DEFAULT_MCP_LOG_FILE = "/tmp/vault-task-sync.log"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# The MCP SDK logs every request at INFO.
_NOISY_LOGGERS = ("mcp", "anyio", "charset_normalizer")


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured debug output.

    Produces one JSON object per log record with fields: ts, level, logger, msg.
    Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    if with_name:
        return logging.Formatter(
            "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
            datefmt=_DATEFMT,
        )
    return logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s", datefmt=_DATEFMT
    )


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "mcp" for file logging (never stdout), "cli" for stderr logging.
        debug: If True, overrides every other level setting with DEBUG.
        log_file: Log file path. Required destination in MCP mode
            (falls back to LOG_FILE, then /tmp/vault-task-sync.log); an
            additional destination in CLI mode.
        debug_format: "text" (default) or "json" for structured output.
        level: Level from the config file's ``logging`` section.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Wins over ``level``. Default: WARNING for MCP mode,
                   INFO for CLI mode.
        LOG_FILE: Log file path for MCP mode.
    """
    default_level = "WARNING" if mode == "mcp" else "INFO"
    level_name = (os.getenv("LOG_LEVEL") or level or default_level).upper()
    log_level = (
        logging.DEBUG if debug else getattr(logging, level_name, logging.INFO)
    )

    handlers: list[logging.Handler] = []
    if mode == "mcp":
        # stdio transport owns stdout, so MCP mode only ever logs to a file
        target = log_file or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE)
        file_handler = logging.FileHandler(target, mode="a")
        file_handler.setFormatter(_formatter(debug_format, with_name=False))
        handlers.append(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_formatter(debug_format, with_name=False))
        handlers.append(stderr_handler)
        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(
                _formatter(debug_format, with_name=True)
            )
            handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers)

    # Silence third-party libs unless DEBUG
    if log_level != logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
