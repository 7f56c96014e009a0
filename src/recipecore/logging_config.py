# src/recipecore/logging_config.py
"""
Process-wide logging setup for RecipeCore and its API server.

The ``logging`` section of :class:`recipecore.config.RecipeCoreSettings` is a
plain dictionary validated here into :class:`LogOptions`. It controls:

- a console handler on stderr, optionally in "quiet" mode;
- an optional log file, either one per process start (``per_run``) or a
  single size-rotated file (``single``);
- per-logger level overrides (``components``).

Quiet mode: with ``console_enabled=False`` the console handler stays
attached but only lets through records logged with ``extra={"display": True}``
(see :func:`log_display`), so an operator still sees startup banners while
request chatter goes to the log file only.

Usage:
    from recipecore.logging_config import configure_logging, log_display

    configure_logging(app_name="recipecore-api", config=settings.logging)
    log_display(logging.getLogger(__name__), logging.INFO, "Listening on %s:%d", host, port)
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

LevelName = Union[str, int]


class LogOptions(BaseModel):
    """Validated form of the ``logging`` settings dictionary."""

    model_config = ConfigDict(extra="ignore")

    console_enabled: bool = True
    console_level: LevelName = "INFO"
    console_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    display_min_level: LevelName = "INFO"
    file_enabled: bool = False
    file_level: LevelName = "DEBUG"
    file_directory: str = "~/.local/share/recipecore/logs"
    file_mode: Literal["per_run", "single"] = "per_run"
    file_format: str = "%(asctime)s [%(levelname)-8s] %(name)s:%(lineno)d - %(message)s"
    rotation_max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    rotation_backup_count: int = Field(default=5, ge=0)
    components: Dict[str, LevelName] = Field(default_factory=lambda: {
        "recipecore": "INFO",
        "uvicorn": "INFO",
        "aiohttp": "WARNING",
        "openai": "WARNING",
        "httpx": "WARNING",
        "httpcore": "WARNING",
        "asyncio": "WARNING",
        "aiosqlite": "WARNING",
    })


DEFAULT_LOGGING_CONFIG: Dict[str, Any] = LogOptions().model_dump()


def to_level(value: LevelName, fallback: int = logging.INFO) -> int:
    """Accepts ``"debug"``, ``"WARNING"`` or a numeric level; unknown names give ``fallback``."""
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    return level if isinstance(level, int) else fallback


class DisplayFilter(logging.Filter):
    """
    Console gate.

    When the console is enabled every record passes. In quiet mode only
    records flagged ``display=True`` at or above ``display_min_level`` pass.
    """

    def __init__(self, console_globally_enabled: bool = False, display_min_level: int = logging.INFO) -> None:
        super().__init__()
        self.console_globally_enabled = console_globally_enabled
        self.display_min_level = display_min_level

    def filter(self, record: logging.LogRecord) -> bool:
        if self.console_globally_enabled:
            return True
        return bool(getattr(record, "display", False)) and record.levelno >= self.display_min_level


def log_file_path_for(options: LogOptions, app_name: str, started: Optional[datetime] = None) -> Path:
    """Where the log file of ``app_name`` goes under the given options."""
    directory = Path(options.file_directory).expanduser()
    if options.file_mode == "single":
        return directory / f"{app_name}.log"
    started = started or datetime.now()
    return directory / f"{app_name}_{started:%Y%m%d_%H%M%S}.log"


class UnifiedLoggingManager:
    """
    Owns the root logger's handlers for the whole process.

    There is one shared instance (see :meth:`get_instance`); configuration
    happens once unless explicitly forced.
    """

    _instance: Optional["UnifiedLoggingManager"] = None
    _configured: bool = False
    _log_file_path: Optional[Path] = None

    def __init__(self) -> None:
        self._console_handler: Optional[logging.Handler] = None
        self._file_handler: Optional[logging.Handler] = None

    @classmethod
    def get_instance(cls) -> "UnifiedLoggingManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def get_log_file_path(cls) -> Optional[Path]:
        return cls._log_file_path

    def configure(
        self,
        app_name: str = "recipecore",
        config: Optional[Dict[str, Any]] = None,
        force_reconfigure: bool = False,
    ) -> Optional[Path]:
        """
        Installs the console and (optionally) file handlers on the root logger.

        Returns:
            The log file path, or None when file logging is off or failed.
        """
        cls = type(self)
        if cls._configured and not force_reconfigure:
            return cls._log_file_path

        options = LogOptions.model_validate({**DEFAULT_LOGGING_CONFIG, **(config or {})})
        root = logging.getLogger()
        self._detach_handlers(root)
        root.setLevel(logging.DEBUG)

        self._console_handler = self._build_console_handler(options)
        root.addHandler(self._console_handler)

        log_file: Optional[Path] = None
        if options.file_enabled:
            log_file = log_file_path_for(options, app_name)
            self._file_handler = self._build_file_handler(options, log_file)
            if self._file_handler is None:
                log_file = None
            else:
                root.addHandler(self._file_handler)

        for name, level in options.components.items():
            logging.getLogger(name).setLevel(to_level(level))

        cls._configured = True
        cls._log_file_path = log_file
        logging.getLogger(__name__).debug(
            "Logging configured for '%s' (console=%s, file=%s)", app_name, options.console_enabled, log_file
        )
        return log_file

    def _detach_handlers(self, root: logging.Logger) -> None:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        self._console_handler = None
        self._file_handler = None

    @staticmethod
    def _build_console_handler(options: LogOptions) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(options.console_format))
        # In quiet mode the filter alone decides what reaches the console.
        handler.setLevel(to_level(options.console_level) if options.console_enabled else logging.DEBUG)
        handler.addFilter(DisplayFilter(
            console_globally_enabled=options.console_enabled,
            display_min_level=to_level(options.display_min_level),
        ))
        return handler

    @staticmethod
    def _build_file_handler(options: LogOptions, path: Path) -> Optional[logging.Handler]:
        handler: logging.Handler
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if options.file_mode == "single":
                handler = RotatingFileHandler(
                    path,
                    maxBytes=options.rotation_max_bytes,
                    backupCount=options.rotation_backup_count,
                    encoding="utf-8",
                )
            else:
                handler = logging.FileHandler(path, encoding="utf-8")
        except OSError as e:
            # Logging is not set up yet, so complain on stderr directly.
            sys.stderr.write(f"Warning: file logging disabled, cannot open {path}: {e}\n")
            return None
        handler.setLevel(to_level(options.file_level, logging.DEBUG))
        handler.setFormatter(logging.Formatter(options.file_format))
        return handler

    def set_console_level(self, level: LevelName) -> None:
        if self._console_handler is not None:
            self._console_handler.setLevel(to_level(level, self._console_handler.level))

    def set_component_level(self, component: str, level: LevelName) -> None:
        target = logging.getLogger(component)
        target.setLevel(to_level(level, target.level))


def configure_logging(
    app_name: str = "recipecore",
    config: Optional[Dict[str, Any]] = None,
    force_reconfigure: bool = False,
) -> Optional[Path]:
    """Configures process logging once; later calls are no-ops unless forced."""
    return UnifiedLoggingManager.get_instance().configure(app_name, config, force_reconfigure)


def log_display(logger: logging.Logger, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
    """Logs ``msg`` flagged for the console even in quiet mode; caller ``extra`` is kept."""
    kwargs["extra"] = {**(kwargs.get("extra") or {}), "display": True}
    logger.log(level, msg, *args, **kwargs)


def get_log_file_path() -> Optional[Path]:
    return UnifiedLoggingManager.get_log_file_path()


def set_console_level(level: LevelName) -> None:
    UnifiedLoggingManager.get_instance().set_console_level(level)


def set_component_level(component: str, level: LevelName) -> None:
    UnifiedLoggingManager.get_instance().set_component_level(component, level)
