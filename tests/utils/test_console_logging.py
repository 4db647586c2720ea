"""
Tests for console injection and the logging wrappers.
"""

import logging

import pytest
from rich.console import Console

from actorgen.utils.console import (
  console,
  log_error,
  log_info,
  log_success,
  log_warning,
  reset_console,
  set_console,
  set_log_level,
)


@pytest.fixture
def recording():
  capture = Console(record=True, width=200)
  set_console(capture)
  yield capture
  reset_console()


def test_logs_reach_injected_console(recording):
  log_info("compiled Counter")
  log_warning("duplicate method")
  log_error("load failed")
  output = recording.export_text()
  assert "compiled Counter" in output
  assert "duplicate method" in output
  assert "load failed" in output


def test_success_level(recording):
  log_success("done")
  assert "SUCCESS" in recording.export_text()


def test_proxy_forwards_to_backend(recording):
  console.print("hello")
  assert console.backend is recording
  assert "hello" in console.export_text()


def test_log_level_filters_and_reset_restores(recording):
  set_log_level(logging.WARNING)
  log_info("hidden")
  log_warning("shown")
  text = recording.export_text()
  assert "hidden" not in text
  assert "shown" in text

  reset_console()
  capture = Console(record=True, width=200)
  set_console(capture)
  log_info("visible again")
  assert "visible again" in capture.export_text()


def test_runtime_loggers_reach_console(recording):
  logging.getLogger("actorgen.runtime.gen_server").error("actor crashed")
  assert "actor crashed" in recording.export_text()
