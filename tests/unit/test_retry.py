import pytest

from surveygen.jobs.errors import TransportError
from surveygen.utils.retry import classify_transport_failure, compute_backoff_seconds


@pytest.mark.parametrize(
  ("status_code", "retryable", "category"),
  [
    (None, True, "connectivity_error"),
    (408, True, "throttled"),
    (429, True, "throttled"),
    (502, True, "server_error"),
    (401, False, "permission_error"),
    (403, False, "permission_error"),
    (422, False, "client_error"),
  ],
)
def test_transport_failures_are_classified(status_code, retryable, category):
  classification = classify_transport_failure(TransportError("failed", status_code=status_code))
  assert classification.retryable is retryable
  assert classification.category == category
  assert classification.status_code == status_code


def test_unexpected_exceptions_are_not_retryable():
  classification = classify_transport_failure(KeyError("job"))
  assert not classification.retryable
  assert classification.category == "programming_error"


def test_backoff_grows_exponentially_and_caps():
  delays = [compute_backoff_seconds(attempt=attempt, base_seconds=2.0, max_seconds=30.0, jitter=False) for attempt in range(1, 7)]
  assert delays == [2.0, 4.0, 8.0, 16.0, 30.0, 30.0]


def test_backoff_jitter_stays_within_a_quarter():
  for _ in range(50):
    delay = compute_backoff_seconds(attempt=3, base_seconds=2.0, max_seconds=30.0)
    assert 6.0 <= delay <= 10.0
