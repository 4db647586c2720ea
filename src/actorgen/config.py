"""
Compiler Configuration Store.

Holds the settings shared by the class compiler, the loader and the CLI.
Values come from the ``[tool.actorgen]`` table of the nearest
``pyproject.toml`` and may be overridden programmatically or from the
command line (``--config key=value``).
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from actorgen.utils.console import log_warning

if sys.version_info >= (3, 11):
  import tomllib
else:
  try:
    import tomli as tomllib
  except ImportError:
    tomllib = None  # type: ignore

DEFAULT_CALL_TIMEOUT = 5.0


class CompilerConfig(BaseModel):
  """
  Global configuration container for class compilation and object calls.
  """

  call_timeout: Optional[float] = Field(
    DEFAULT_CALL_TIMEOUT,
    description="Seconds a synchronous call waits for a reply. None blocks indefinitely.",
  )
  module_namespace: str = Field(
    "actorgen.objects",
    description="Prefix under which loaded class modules are registered in sys.modules.",
  )
  method_prefix: str = Field("_method_", description="Prefix of mangled per-method function names.")
  store_variable: str = Field("__ivars", description="Base name of versioned instance-variable stores.")
  return_variable: str = Field("__method_return_value", description="Name bound to a method's result value.")
  trace: bool = Field(False, description="If True, compile trace events are kept in results.")

  @field_validator("call_timeout")
  @classmethod
  def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
    """
    Rejects non-positive timeouts.

    Args:
        v (Optional[float]): Timeout in seconds, or None.

    Returns:
        Optional[float]: The validated timeout.

    Raises:
        ValueError: If the timeout is zero or negative.
    """
    if v is not None and v <= 0:
      raise ValueError(f"call_timeout must be positive, got {v}")
    return v

  @field_validator("method_prefix", "store_variable", "return_variable")
  @classmethod
  def validate_identifier(cls, v: str) -> str:
    """
    Ensures generated names are valid Python identifiers.

    Args:
        v (str): Candidate identifier.

    Returns:
        str: The identifier, unchanged.

    Raises:
        ValueError: If ``v`` is not an identifier.
    """
    if not v.isidentifier():
      raise ValueError(f"'{v}' is not a valid Python identifier")
    return v

  @field_validator("module_namespace")
  @classmethod
  def validate_namespace(cls, v: str) -> str:
    if not all(part.isidentifier() for part in v.split(".")):
      raise ValueError(f"'{v}' is not a dotted module path")
    return v

  @classmethod
  def load(
    cls,
    overrides: Optional[Dict[str, Any]] = None,
    search_path: Optional[Path] = None,
  ) -> "CompilerConfig":
    """
    Loads configuration from pyproject.toml and applies overrides on top.

    Args:
        overrides (Optional[Dict[str, Any]]): Explicit settings (e.g. from the CLI).
        search_path (Optional[Path]): Directory to start searching for TOML config.

    Returns:
        CompilerConfig: The fully resolved configuration object.
    """
    toml_config, _ = _load_toml_settings(search_path or Path.cwd())
    merged = {**toml_config, **(overrides or {})}
    return cls.model_validate(merged)


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Recursively searches parents for 'pyproject.toml' and extracts config.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory it was found in.
  """
  if not tomllib:
    return {}, None

  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.is_file():
      with open(toml_path, "rb") as f:
        data = tomllib.load(f)
      return data.get("tool", {}).get("actorgen", {}), parent

  return {}, None


def parse_cli_key_values(items: Optional[List[str]]) -> Dict[str, Any]:
  """
  Parses a list of 'key=value' strings into a dictionary.

  Types are inferred (int, float, bool, none, or string).

  Args:
      items (Optional[List[str]]): List of raw CLI strings directly from argparse.

  Returns:
      Dict[str, Any]: Parsed dictionary.
  """
  if not items:
    return {}

  config = {}
  for item in items:
    if "=" not in item:
      log_warning(f"Ignoring invalid config format: '{item}'. Expected 'key=value'.")
      continue

    key, val_str = item.split("=", 1)
    key = key.strip()
    val_str = val_str.strip()

    final_val: Any = val_str

    if val_str.lower() == "true":
      final_val = True
    elif val_str.lower() == "false":
      final_val = False
    elif val_str.lower() == "none":
      final_val = None
    else:
      try:
        if "." in val_str or "e" in val_str:
          final_val = float(val_str)
        else:
          final_val = int(val_str)
      except ValueError:
        pass

    config[key] = final_val

  return config
