"""
Tests for configuration loading and CLI key=value parsing.
"""

import pytest
from pydantic import ValidationError

from actorgen.config import DEFAULT_CALL_TIMEOUT, CompilerConfig, parse_cli_key_values


def test_defaults():
  config = CompilerConfig()
  assert config.call_timeout == DEFAULT_CALL_TIMEOUT == 5.0
  assert config.module_namespace == "actorgen.objects"
  assert config.trace is False


def test_load_from_pyproject(tmp_path):
  (tmp_path / "pyproject.toml").write_text('[tool.actorgen]\ncall_timeout = 2.5\nmethod_prefix = "_m_"\n')
  nested = tmp_path / "src" / "pkg"
  nested.mkdir(parents=True)

  config = CompilerConfig.load(search_path=nested)
  assert config.call_timeout == 2.5
  assert config.method_prefix == "_m_"


def test_overrides_win_over_file(tmp_path):
  (tmp_path / "pyproject.toml").write_text("[tool.actorgen]\ncall_timeout = 2.5\n")
  config = CompilerConfig.load(overrides={"call_timeout": None}, search_path=tmp_path)
  assert config.call_timeout is None


def test_pyproject_without_table(tmp_path):
  (tmp_path / "pyproject.toml").write_text('[project]\nname = "x"\n')
  assert CompilerConfig.load(search_path=tmp_path) == CompilerConfig()


@pytest.mark.parametrize(
  "settings",
  [
    {"call_timeout": 0},
    {"call_timeout": -1.0},
    {"method_prefix": "not valid"},
    {"store_variable": "1x"},
    {"module_namespace": "a..b"},
  ],
)
def test_invalid_settings(settings):
  with pytest.raises(ValidationError):
    CompilerConfig(**settings)


def test_parse_cli_key_values():
  parsed = parse_cli_key_values(["call_timeout=10", "trace=true", "module_namespace=app.objs", "x=none", "broken"])
  assert parsed == {"call_timeout": 10, "trace": True, "module_namespace": "app.objs", "x": None}
  assert parse_cli_key_values(None) == {}
