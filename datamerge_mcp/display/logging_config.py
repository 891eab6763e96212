"""File logging for both transports, with DataMerge credentials scrubbed.

Everything goes to ``logs/datamerge_mcp_<timestamp>_<LEVEL>.log``.  Under
the stdio transport stdout is the protocol stream, so nothing here ever
writes to it.
"""

import logging
import logging.config
import os
import re
import sys
from datetime import datetime
from typing import Any, Dict, Optional, Set, Tuple  # noqa: UP035

from datamerge_mcp.constants import LOG_DIR

_REDACTED = "***REDACTED***"

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Follow the chosen level
_SERVER_LOGGERS = ("datamerge_mcp", "mcp", "uvicorn", "uvicorn.error", "starlette")
# Per-request chatter; only shown when debugging
_CHATTY_LOGGERS = ("httpx", "uvicorn.access")


class SecretRedactionFilter(logging.Filter):
    """Replace registered API keys with ``***REDACTED***`` in log records.

    The session store and the DataMerge client register every key they
    see, so an ``Authorization`` header or a tool argument echoed into a
    log line never reaches the file.
    """

    def __init__(self) -> None:
        super().__init__()
        self._secrets: Set[str] = set()
        self._pattern: Optional[re.Pattern] = None

    def register(self, value: str) -> None:
        # Very short values would redact ordinary words
        if not value or len(value) < 4 or value in self._secrets:
            return
        self._secrets.add(value)
        # Longest first so a key containing another key is fully replaced
        alternatives = sorted(self._secrets, key=len, reverse=True)
        self._pattern = re.compile("|".join(re.escape(s) for s in alternatives))

    def redact(self, text: str) -> str:
        if self._pattern is None:
            return text
        return self._pattern.sub(_REDACTED, text)

    def filter(self, record: logging.LogRecord) -> bool:
        if self._pattern is None:
            return True
        try:
            # Render once so secrets inside non-string args are caught too
            message = record.getMessage()
        except (TypeError, ValueError):
            # Malformed format; the handler reports it
            return True
        record.msg = self.redact(message)
        record.args = None
        return True


secret_redaction_filter = SecretRedactionFilter()


def build_log_config(log_fpath: str, level: str) -> Dict[str, Any]:
    """dictConfig for one redacting file handler shared by every logger."""
    debug = level == "DEBUG"
    levels = {name: level for name in _SERVER_LOGGERS}
    levels.update({name: "INFO" if debug else "WARNING" for name in _CHATTY_LOGGERS})
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"redact_secrets": {"()": lambda: secret_redaction_filter}},
        "formatters": {
            "file": {
                "format": "%(asctime)s - %(name)25s:%(lineno)-4d - %(levelname)-7s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "file": {
                "class": "logging.FileHandler",
                "level": "DEBUG",
                "formatter": "file",
                "filters": ["redact_secrets"],
                "filename": log_fpath,
                "encoding": "utf-8",
            },
        },
        "loggers": {
            name: {"handlers": ["file"], "propagate": False, "level": lvl}
            for name, lvl in levels.items()
        },
        "root": {"handlers": ["file"], "level": level if debug else "WARNING"},
    }


def setup_logging(
    log_lvl_str: str, *, quiet: bool = False, log_dir: str = LOG_DIR
) -> Tuple[str, str]:
    """Point all logging at a fresh timestamped file under *log_dir*.

    Args:
        log_lvl_str: Level name, any case; unknown names fall back to INFO.
        quiet: Print nothing to stderr (the stdio transport).
        log_dir: Directory for the log file, created if missing.

    Returns:
        ``(log_file_path, level_name)``.
    """
    level = log_lvl_str.upper()
    if level not in _LEVELS:
        if not quiet:
            print(f"Warning: invalid log level '{log_lvl_str}'. Using 'INFO'.", file=sys.stderr)
        level = "INFO"

    os.makedirs(log_dir, exist_ok=True)
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_fpath = os.path.join(log_dir, f"datamerge_mcp_{ts}_{level}.log")

    logging.config.dictConfig(build_log_config(log_fpath, level))
    if not quiet:
        print(f"Logging to {log_fpath} (level {level}).", file=sys.stderr)
    return log_fpath, level
