"""
nexus/utils/logger.py → service logger with 3 modes:

file (default): write to logs/<module>.log, rotated at midnight, kept for
LOG_RETENTION days, optional console mirror.

stdout: console only (leave rotation/aggregation to Docker/systemd).

socket: ship records to a separate TCP listener via SocketHandler.

All settings come from LOG_* variables (.env in the project root) and can be
overridden per app through Quart ``app.config``.
"""

# nexus/utils/logger.py
from __future__ import annotations

import logging
import os
import sys
import threading
from logging.handlers import SocketHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

# Quart may be unavailable when this util is imported standalone
try:
    from quart import current_app  # type: ignore
except Exception:  # pragma: no cover
    current_app = None  # type: ignore

from pydantic_settings import BaseSettings, SettingsConfigDict


def _detect_project_root() -> Path:
    """
    Locate the project root:
    - ENV PROJECT_ROOT
    - first parent holding pyproject.toml or .git
    - fallback: two levels above this file
    """
    env_root = os.getenv("PROJECT_ROOT")
    if env_root:
        return Path(env_root).resolve()

    here = Path(__file__).resolve()
    for p in here.parents:
        if (p / "pyproject.toml").exists() or (p / ".git").exists():
            return p
    return here.parents[2]


class NexusLogSettings(BaseSettings):
    """
    Configured via ENV (prefix LOG_) / .env / Quart app.config overlay

      - LOG_MODE=file|stdout|socket
      - LOG_LEVEL=INFO|DEBUG|WARNING|ERROR
      - LOG_FORMAT="%(asctime)s %(levelname)s %(name)s: %(message)s"
      - LOG_DATEFMT="%Y-%m-%d %H:%M:%S"
      - LOG_RETENTION=30
      - LOG_ROOT_DIR="/path/project" (optional; autodetected)
      - LOG_CONSOLE=true|false
      - LOG_SOCKET_HOST=127.0.0.1
      - LOG_SOCKET_PORT=9020
    """

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    mode: str = "file"
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    retention: int = 30
    root_dir: Optional[Path] = None
    console: bool = True
    socket_host: str = "127.0.0.1"
    socket_port: int = 9020


_OVERLAY_KEYS = (
    "LOG_MODE",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_DATEFMT",
    "LOG_RETENTION",
    "LOG_ROOT_DIR",
    "LOG_CONSOLE",
    "LOG_SOCKET_HOST",
    "LOG_SOCKET_PORT",
)


def _settings() -> NexusLogSettings:
    """ENV/.env settings, overlaid by Quart app.config when inside an app context."""
    s = NexusLogSettings()
    if not current_app:
        return s
    try:
        cfg = current_app.config  # type: ignore[attr-defined]
    except RuntimeError:
        return s

    merged = NexusLogSettings.model_construct(**s.model_dump())  # type: ignore
    for key in _OVERLAY_KEYS:
        if key in cfg:
            setattr(merged, key[4:].lower(), cfg[key])
    return merged


def _to_level(level: str) -> int:
    return getattr(logging, str(level).upper(), logging.INFO)


def _console_handler(s: NexusLogSettings, formatter: logging.Formatter) -> logging.Handler:
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(_to_level(s.level))
    ch.setFormatter(formatter)
    return ch


_init_lock = threading.Lock()
_inited_loggers: set[str] = set()


def get_logger(name: str) -> logging.Logger:
    """
    Return a configured logger for ``name``.

    Handlers are attached once per name (thread-safe); later calls are cheap.
    In file mode each logger writes to logs/<last-name-segment>.log.
    """
    s = _settings()
    mode = (s.mode or "file").lower().strip()

    logger = logging.getLogger(name)
    logger.setLevel(_to_level(s.level))
    logger.propagate = False

    if name in _inited_loggers and logger.handlers:
        return logger

    with _init_lock:
        if name in _inited_loggers and logger.handlers:
            return logger

        formatter = logging.Formatter(fmt=s.format, datefmt=s.datefmt)

        if mode == "stdout":
            logger.addHandler(_console_handler(s, formatter))

        elif mode == "socket":
            sh = SocketHandler(s.socket_host, int(s.socket_port))
            sh.setLevel(_to_level(s.level))
            sh.closeOnError = True
            logger.addHandler(sh)
            if s.console:
                logger.addHandler(_console_handler(s, formatter))

        else:
            log_dir = (s.root_dir or _detect_project_root()) / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)
            last_segment = (name.rsplit(".", 1)[-1] or "app").replace(":", "_")
            fh = TimedRotatingFileHandler(
                filename=str(log_dir / f"{last_segment}.log"),
                when="midnight",
                backupCount=int(s.retention),
                encoding="utf-8",
            )
            fh.setLevel(_to_level(s.level))
            fh.setFormatter(formatter)
            logger.addHandler(fh)
            if s.console:
                logger.addHandler(_console_handler(s, formatter))

        _inited_loggers.add(name)

    return logger
