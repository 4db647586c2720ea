"""
Console Output and Logging.

All diagnostics go through the ``actorgen`` logger: compile phases, merge
warnings, loader failures, and (via ``actorgen.runtime.*`` child loggers)
actor crashes and linked exits. A single `RichHandler` renders them on the
active console.

The active console sits behind the module-level `console` proxy, so
callers keep one stable reference while tests or embedding applications
swap the backend (e.g. a ``Console(record=True)``) with `set_console`.

Attributes:
    console (_ConsoleProxy): Stable reference to the active Rich Console.
    LOGGER_NAME (str): Name of the package logger.
"""

import logging
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

LOGGER_NAME = "actorgen"

# Between INFO and WARNING
SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

_THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "path": "bold blue",
    "method": "bold magenta",
    "class": "bold cyan",
  }
)

_logger = logging.getLogger(LOGGER_NAME)
_logger.propagate = False
_handler: Optional[RichHandler] = None


def _bind_handler(target: Console, level: int = logging.INFO) -> None:
  global _handler
  if _handler is not None:
    _logger.removeHandler(_handler)
  _handler = RichHandler(
    console=target,
    show_time=False,
    show_path=False,
    markup=True,
    rich_tracebacks=True,
  )
  _logger.addHandler(_handler)
  _logger.setLevel(level)


class _ConsoleProxy:
  """
  Forwards to the active `rich.console.Console` and keeps the log handler on it.
  """

  def __init__(self) -> None:
    self._backend: Console = Console(theme=_THEME)
    _bind_handler(self._backend)

  @property
  def backend(self) -> Console:
    return self._backend

  def set_backend(self, new_console: Console) -> None:
    """
    Makes ``new_console`` the destination of printing and logging.

    The current log level is kept.
    """
    self._backend = new_console
    _bind_handler(new_console, _logger.level)

  def reset(self) -> None:
    """Back to a standard output console at INFO level."""
    self._backend = Console(theme=_THEME)
    _bind_handler(self._backend)

  def print(self, *args: Any, **kwargs: Any) -> None:
    self._backend.print(*args, **kwargs)

  def export_text(self, **kwargs: Any) -> str:
    """Captured text; the backend must be created with ``record=True``."""
    return self._backend.export_text(**kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Redirects printing and logging to ``new_console``.

  Args:
      new_console (Console): The Rich console to use from now on.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  console.reset()


def set_log_level(level: int) -> None:
  """
  Sets the threshold of the ``actorgen`` logger (e.g. ``logging.WARNING`` for quiet runs).
  """
  _logger.setLevel(level)


def log_info(msg: str) -> None:
  """
  Logs an informational message.

  Args:
      msg (str): The message. May contain rich markup such as ``[bold]``.
  """
  _logger.info(f"ℹ️  {msg}")


def log_success(msg: str) -> None:
  _logger.log(SUCCESS_LEVEL_NUM, f"✅ {msg}")


def log_warning(msg: str) -> None:
  _logger.warning(f"⚠️  {msg}")


def log_error(msg: str) -> None:
  _logger.error(f"❌ {msg}")
