"""Logging setup for processes embedding the beacon responder."""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
    "critical": logging.CRITICAL,
}

_TAGS = {
    logging.DEBUG: "[debug]",
    logging.INFO: "[info]",
    logging.WARNING: "[warn]",
    logging.ERROR: "[error]",
    logging.CRITICAL: "[crit]",
}


def _level_tag(levelno: int) -> str:
    return _TAGS.get(levelno, f"[lvl{levelno}]")


class SyslogFormatter(logging.Formatter):
    """Formatter for syslog output: ``tag: [level] logger: message``, no timestamp."""

    def __init__(self, tag: str = "beacon") -> None:
        super().__init__()
        self.tag = tag

    def format(self, record):
        record.level_tag = _level_tag(record.levelno)
        return f"{self.tag}: {record.level_tag} {record.name}: {record.getMessage()}"


class BracketLevelFormatter(logging.Formatter):
    """Formatter with bracketed lowercase level tags and UTC ISO-8601 timestamps."""

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def format(self, record):
        record.level_tag = _level_tag(record.levelno)
        return super().format(record)


def parse_level(value: Any, default: int = logging.INFO) -> int:
    """
    Brief: Map a level name (debug, info, warn, error, crit) or number to a logging level.

    Inputs:
      - value: level name, integer level, or None
      - default: level returned for None or unknown names

    Outputs:
      - int logging level
    """
    if value is None:
        return default
    if isinstance(value, int):
        return value
    return _LEVELS.get(str(value).strip().lower(), default)


def init_logging(cfg: Optional[Dict[str, Any]]) -> logging.Logger:
    """
    Brief: Configure the ``beacon`` logger tree from a logging config mapping.

    Inputs:
      - cfg: mapping with optional keys:
          - level: debug, info, warn, error, crit (default: info)
          - stderr: log to stderr (default: True)
          - file: path of a log file to append to
          - syslog: True, or a mapping with address, facility and tag

    Outputs:
      - logging.Logger: the configured ``beacon`` logger

    Notes:
      - Handlers are attached to the ``beacon`` logger rather than root so an
        embedding application keeps its own logging setup. Calling this
        again replaces the previous handlers.

    Example:
      >>> log = init_logging({"level": "debug", "stderr": False})
      >>> log.level == logging.DEBUG
      True
    """
    cfg = cfg or {}
    level = parse_level(cfg.get("level"))

    formatter = BracketLevelFormatter(fmt="%(asctime)s %(level_tag)s %(name)s: %(message)s")

    log = logging.getLogger("beacon")
    log.setLevel(level)
    for h in list(log.handlers):
        log.removeHandler(h)
        h.close()

    if cfg.get("stderr", True):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        log.addHandler(stderr_handler)

    file_path = cfg.get("file")
    if isinstance(file_path, str) and file_path.strip():
        path = os.path.abspath(os.path.expanduser(file_path.strip()))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        log.addHandler(file_handler)

    syslog_cfg = cfg.get("syslog")
    if syslog_cfg:
        if isinstance(syslog_cfg, dict):
            address = syslog_cfg.get("address", "/dev/log")
            if isinstance(address, (list, tuple)):
                address = (str(address[0]), int(address[1]))
            facility = getattr(
                logging.handlers.SysLogHandler,
                f"LOG_{str(syslog_cfg.get('facility', 'USER')).upper()}",
                logging.handlers.SysLogHandler.LOG_USER,
            )
            tag = str(syslog_cfg.get("tag", "beacon"))
        else:
            address = "/dev/log"
            facility = logging.handlers.SysLogHandler.LOG_USER
            tag = "beacon"
        try:
            syslog_handler = logging.handlers.SysLogHandler(address=address, facility=facility)
        except (OSError, ValueError) as e:  # pragma: no cover - depends on host syslog
            log.warning("Failed to configure syslog: %s", e)
        else:
            syslog_handler.setFormatter(SyslogFormatter(tag))
            log.addHandler(syslog_handler)

    return log
