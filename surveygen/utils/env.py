"""Read ``SURVEYGEN_*`` defaults from a local .env file."""

from __future__ import annotations

import os
from pathlib import Path

ENV_PREFIX = "SURVEYGEN_"
_REPO_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"


def load_env_file(path: Path | None = None) -> dict[str, str]:
  """Set unset ``SURVEYGEN_*`` variables from ``path`` and return the ones applied.

  Variables already present in the process environment always win over the file.
  """

  path = path or _REPO_ENV_PATH
  if not path.is_file():
    return {}

  applied: dict[str, str] = {}
  for line in path.read_text(encoding="utf-8").splitlines():
    key, sep, value = line.strip().partition("=")
    key = key.strip()
    # Lines without a prefixed key are skipped.
    if not sep or not key.startswith(ENV_PREFIX) or key in os.environ:
      continue
    value = value.strip().strip("\"'")
    os.environ[key] = value
    applied[key] = value
  return applied
