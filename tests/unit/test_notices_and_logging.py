from __future__ import annotations

import logging
import sys

from surveygen.core.logging import TruncatedFormatter, _backup_namer, _build_handlers
from surveygen.jobs.notices import LoggingNotifier, outcome_notice, resumed_notice, started_notice


def test_notice_texts(make_job):
  assert started_notice(make_job(status="pending"), 15).title == "AI Generation Started"
  assert resumed_notice(make_job(generated=4, total=20)).description == "Continuing existing AI generation job. 4/20 responses completed."

  completed = outcome_notice(make_job(status="completed", generated=20))
  assert (completed.kind, completed.title) == ("completed", "AI Responses Generated")

  failed = outcome_notice(make_job(status="failed", generated=3, error=None))
  assert failed.title == "Generation Failed"
  assert failed.description == "Failed to generate AI responses."


def test_logging_notifier_levels(caplog, make_job):
  notifier = LoggingNotifier()
  with caplog.at_level(logging.INFO, logger="surveygen.jobs.notices"):
    notifier.notify(outcome_notice(make_job(status="completed", generated=20)))
    notifier.notify(outcome_notice(make_job(status="failed", error="Model unavailable")))

  levels = [(record.levelno, record.getMessage().split(":")[0]) for record in caplog.records]
  assert levels == [(logging.INFO, "AI Responses Generated"), (logging.WARNING, "Generation Failed")]


def test_backup_files_use_dash_suffix():
  assert _backup_namer("/var/log/surveygen_1.log.3") == "/var/log/surveygen_1.log-3"
  assert _backup_namer("/var/log/surveygen.log") == "/var/log/surveygen.log"


def test_handlers_write_to_configured_directory(tmp_path, settings):
  from dataclasses import replace

  stream, file_handler, log_path = _build_handlers(replace(settings, log_dir=str(tmp_path / "logs")))
  try:
    assert log_path.parent == (tmp_path / "logs").resolve()
    assert log_path.exists()
    assert file_handler.maxBytes == settings.log_max_bytes
  finally:
    file_handler.close()


def test_truncated_formatter_keeps_tail_of_traceback():
  def _recurse(depth: int) -> None:
    if depth == 0:
      raise RuntimeError("deep failure")
    _recurse(depth - 1)

  try:
    _recurse(10)
  except RuntimeError:
    text = TruncatedFormatter().formatException(sys.exc_info())

  assert text.startswith("Traceback")
  assert "    ...\n" in text
  assert text.rstrip().endswith("RuntimeError: deep failure")
