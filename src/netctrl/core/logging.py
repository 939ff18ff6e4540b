"""Central logging configuration for netctrl.

The optional ``logging`` section of ``config/local.yml`` sets the level and,
when ``directory`` is given, a log file next to the stdout stream. Passwords
and session tokens are scrubbed from messages and every record carries the
``resource`` it concerns.
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_FILENAME = "netctrl.log"
DEFAULT_LEVEL = logging.INFO

LOG_FORMAT = "%(asctime)s | %(levelname)s | resource=%(resource)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ResourceContextFilter(logging.Filter):
    """Ensure every record names the resource it concerns."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "resource", None):
            record.resource = "-"
        return True


class SecretScrubberFilter(logging.Filter):
    """Remove passwords and session tokens from log messages."""

    SECRET_PATTERN = re.compile(r"(password|secret|token|cid)=([^\s&]+)", re.IGNORECASE)

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True

        cleaned = self.SECRET_PATTERN.sub(r"\1=***", message)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True


def load_logging_section(config_path: Path) -> Mapping[str, Any]:
    """Return the ``logging`` mapping of local.yml, or an empty one."""

    if not config_path.exists():
        return {}

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError):
        return {}

    section = data.get("logging") if isinstance(data, Mapping) else None
    return section if isinstance(section, Mapping) else {}


def level_from_value(raw_level: Any) -> int:
    if isinstance(raw_level, str):
        level = logging.getLevelName(raw_level.upper())
        if isinstance(level, int):
            return level
    if isinstance(raw_level, int) and not isinstance(raw_level, bool):
        return raw_level
    return DEFAULT_LEVEL


def setup_logging(config_path: str | Path, cli_level: int | None = None) -> logging.Logger:
    """Configure application-wide logging.

    ``cli_level`` is the level requested on the command line and wins over
    ``logging.level``.
    """

    section = load_logging_section(Path(config_path))
    level = cli_level if cli_level is not None else level_from_value(section.get("level"))

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_path = None
    if section.get("directory"):
        directory = Path(str(section["directory"])).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        log_path = directory / str(section.get("filename") or DEFAULT_FILENAME)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(ResourceContextFilter())
        handler.addFilter(SecretScrubberFilter())
        root_logger.addHandler(handler)

    logger = logging.getLogger("netctrl")
    logger.debug("Logging initialized level=%s file=%s", logging.getLevelName(level), log_path or "-")
    return logger
