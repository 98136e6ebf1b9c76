"""
Unified Logging System

Every vmdhcp module obtains its logger through get_logger(). The factory
keeps one configuration for console and file output, so switching the level
or adding a log file from settings reaches loggers created at import time.

Records carry a thread-local context (VM name, metadata passed as keyword
arguments to the log call) that the structured and JSON formats render.
"""

import sys
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

# Per-thread context rendered by the formatters
_context = threading.local()


def _current_context() -> Dict[str, Any]:
    return getattr(_context, 'values', {})


def _set_context(values: Dict[str, Any]) -> None:
    _context.values = values


class LogFormat(Enum):
    """Output formats"""
    LEGACY = "legacy"          # [2025-09-05 02:26:35] * INFO: vmdhcp: lease found
    STRUCTURED = "structured"  # [2025-09-05 02:26:35.150] [INFO] [lease_lookup] [VM:web-1] lease found
    JSON = "json"              # one JSON object per line
    SIMPLE = "simple"          # INFO: lease found


@dataclass
class LoggerConfig:
    """Handler setup shared by all vmdhcp loggers"""
    name: str
    level: int = logging.DEBUG

    file_path: Optional[Path] = None
    file_level: int = logging.DEBUG
    file_format: LogFormat = LogFormat.STRUCTURED

    console_enabled: bool = True
    console_level: int = logging.INFO
    console_format: LogFormat = LogFormat.SIMPLE

    component: Optional[str] = None


class LoggerFormatter(logging.Formatter):
    """Renders a record in one of the LogFormat layouts"""

    def __init__(self, format_type: LogFormat, component: Optional[str] = None):
        super().__init__()
        self.format_type = format_type
        self.component = component
        self._renderers: Dict[LogFormat, Callable[[logging.LogRecord, Dict], str]] = {
            LogFormat.LEGACY: self._legacy,
            LogFormat.STRUCTURED: self._structured,
            LogFormat.JSON: self._json,
            LogFormat.SIMPLE: self._simple,
        }

    def format(self, record: logging.LogRecord) -> str:
        renderer = self._renderers.get(self.format_type)
        if renderer is None:
            return super().format(record)
        return renderer(record, _current_context())

    @staticmethod
    def _timestamp(record: logging.LogRecord, millis: bool = False) -> str:
        created = datetime.fromtimestamp(record.created)
        if millis:
            return created.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        return created.strftime("%Y-%m-%d %H:%M:%S")

    def _component_of(self, record: logging.LogRecord, context: Dict) -> str:
        return self.component or context.get('component') or record.name.rsplit('.', 1)[-1]

    def _legacy(self, record: logging.LogRecord, context: Dict) -> str:
        return f"[{self._timestamp(record)}] * {record.levelname}: vmdhcp: {record.getMessage()}"

    def _structured(self, record: logging.LogRecord, context: Dict) -> str:
        parts = [
            f"[{self._timestamp(record, millis=True)}]",
            f"[{record.levelname}]",
            f"[{self._component_of(record, context)}]",
        ]
        if context.get('vm_name'):
            parts.append(f"[VM:{context['vm_name']}]")
        line = " ".join(parts) + " " + record.getMessage()

        metadata = context.get('metadata')
        if metadata:
            line += "\n  Context: " + json.dumps(metadata, indent=2, default=str)
        return line

    def _json(self, record: logging.LogRecord, context: Dict) -> str:
        payload = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'component': self.component or record.name,
            'logger': record.name,
            'message': record.getMessage(),
        }
        payload.update(context)
        return json.dumps(payload, ensure_ascii=False, default=str)

    def _simple(self, record: logging.LogRecord, context: Dict) -> str:
        return f"{record.levelname}: {record.getMessage()}"


class UnifiedLogger:
    """
    Thin wrapper over a stdlib logger.

    Keyword arguments given to debug()/info()/warning()/error() are attached
    to the record context as metadata, e.g.
    logger.info("resolving", max_wait_seconds=120).
    """

    def __init__(self, config: LoggerConfig):
        self.config = config
        self.logger = logging.getLogger(config.name)
        self.logger.setLevel(config.level)
        # Handlers are owned by the factory configuration, never by the root logger
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        for handler in self._build_handlers():
            self.logger.addHandler(handler)

    def _build_handlers(self):
        handlers = []
        if self.config.file_path:
            file_handler = logging.FileHandler(self.config.file_path, encoding='utf-8')
            file_handler.setLevel(self.config.file_level)
            file_handler.setFormatter(LoggerFormatter(self.config.file_format, self.config.component))
            handlers.append(file_handler)

        if self.config.console_enabled:
            stream_handler = logging.StreamHandler(sys.stderr)
            stream_handler.setLevel(self.config.console_level)
            stream_handler.setFormatter(LoggerFormatter(self.config.console_format, self.config.component))
            handlers.append(stream_handler)
        return handlers

    def debug(self, message: str, **metadata):
        self._emit(logging.DEBUG, message, metadata)

    def info(self, message: str, **metadata):
        self._emit(logging.INFO, message, metadata)

    def warning(self, message: str, **metadata):
        self._emit(logging.WARNING, message, metadata)

    def error(self, message: str, **metadata):
        self._emit(logging.ERROR, message, metadata)

    def _emit(self, level: int, message: str, metadata: Dict[str, Any]):
        if not self.logger.isEnabledFor(level):
            return

        saved = _current_context()
        scoped = dict(saved)
        if metadata:
            scoped['metadata'] = metadata
        if self.config.component:
            scoped['component'] = self.config.component

        _set_context(scoped)
        try:
            self.logger.log(level, message)
        finally:
            _set_context(saved)


class LoggerFactory:
    """Creates and caches UnifiedLogger instances from one default configuration"""

    _loggers: Dict[str, UnifiedLogger] = {}
    _default_config: Optional[LoggerConfig] = None
    _lock = threading.Lock()

    @classmethod
    def _config_for(cls, name: str, component: Optional[str]) -> LoggerConfig:
        if cls._default_config is None:
            return LoggerConfig(name=name, component=component)
        return replace(cls._default_config, name=name, component=component)

    @classmethod
    def set_default_config(cls, config: LoggerConfig):
        """Replace the default configuration and rebuild every cached logger with it"""
        with cls._lock:
            cls._default_config = config
            for key, existing in list(cls._loggers.items()):
                cls._loggers[key] = UnifiedLogger(
                    cls._config_for(existing.config.name, existing.config.component)
                )

    @classmethod
    def get_logger(cls, name: str, component: Optional[str] = None) -> UnifiedLogger:
        """
        Cached logger for a module.

        Args:
            name: logger name, normally __name__
            component: label shown by the structured format, defaults to the
                last part of the module name
        """
        key = f"{name}:{component or ''}"
        with cls._lock:
            logger = cls._loggers.get(key)
            if logger is None:
                logger = UnifiedLogger(cls._config_for(name, component or name.rsplit('.', 1)[-1]))
                cls._loggers[key] = logger
            return logger

    @classmethod
    def configure(
        cls,
        level: str = "INFO",
        file_path: Optional[Path] = None,
        console_format: LogFormat = LogFormat.SIMPLE
    ):
        """Apply user facing settings (console level, optional log file)"""
        cls.set_default_config(LoggerConfig(
            name="vmdhcp",
            console_level=logging.getLevelName(level.upper()),
            console_format=console_format,
            file_path=file_path,
        ))

    @classmethod
    def reset(cls):
        """Forget cached loggers and the default configuration"""
        with cls._lock:
            cls._loggers.clear()
            cls._default_config = None


def get_logger(name: str, component: Optional[str] = None) -> UnifiedLogger:
    return LoggerFactory.get_logger(name, component)


class LoggingContext:
    """
    Adds values to the thread-local logging context for the duration of a
    with block, e.g. LoggingContext(vm_name="web-1").
    """

    def __init__(self, **values: Any):
        self.values = values
        self._saved: Dict[str, Any] = {}

    def __enter__(self):
        self._saved = _current_context()
        _set_context({**self._saved, **self.values})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _set_context(self._saved)
