"""Transport failure classification and backoff for status polling."""

from __future__ import annotations

import random

from surveygen.jobs.errors import TransportError


class TransportFailureClassification:
  """Classification result for a failed backend request."""

  def __init__(self, *, retryable: bool, reason: str, status_code: int | None, category: str) -> None:
    self.retryable = retryable
    self.reason = reason
    self.status_code = status_code
    self.category = category


def classify_transport_failure(exc: Exception) -> TransportFailureClassification:
  """
  Classify a polling failure as retryable or non-retryable.

  Retryable (transient):
    - connection drops, DNS failures and timeouts (no status code)
    - 408 request timeout and 429 rate limiting
    - 5xx server errors

  Non-retryable (permanent until reconfigured):
    - 401/403 authentication and permission errors
    - any other 4xx
    - programming errors raised by the caller
  """
  if not isinstance(exc, TransportError):
    return TransportFailureClassification(retryable=False, reason=f"Programming error: {type(exc).__name__}", status_code=None, category="programming_error")

  status_code = exc.status_code
  if status_code is None:
    return TransportFailureClassification(retryable=True, reason="Connection or timeout failure", status_code=None, category="connectivity_error")

  if status_code in (408, 429):
    return TransportFailureClassification(retryable=True, reason="Throttled or timed out by the backend", status_code=status_code, category="throttled")

  if status_code >= 500:
    return TransportFailureClassification(retryable=True, reason="Backend server error", status_code=status_code, category="server_error")

  if status_code in (401, 403):
    return TransportFailureClassification(retryable=False, reason="Authentication/permission error", status_code=status_code, category="permission_error")

  return TransportFailureClassification(retryable=False, reason="Client error", status_code=status_code, category="client_error")


def compute_backoff_seconds(*, attempt: int, base_seconds: float, max_seconds: float, jitter: bool = True) -> float:
  """Return the delay before retry ``attempt`` (1-based) with exponential growth."""

  delay = min(base_seconds * (2 ** max(attempt - 1, 0)), max_seconds)
  if jitter:
    # +/-25% spreads retries from many observers of the same backend.
    jitter_range = delay * 0.25
    delay += random.uniform(-jitter_range, jitter_range)
  return max(delay, 0.0)
