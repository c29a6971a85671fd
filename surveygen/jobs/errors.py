"""Error taxonomy for starting and observing generation jobs."""

from __future__ import annotations


class GenerationError(Exception):
  """Base class for all generation start and observation failures."""


class ValidationError(GenerationError):
  """Raised locally when a requested response count is out of bounds."""

  def __init__(self, message: str, *, requested_count: int | None = None, remaining_capacity: int | None = None) -> None:
    super().__init__(message)
    self.requested_count = requested_count
    self.remaining_capacity = remaining_capacity


class StartRejectedError(GenerationError):
  """Raised when the backend refuses to start a generation job."""

  def __init__(self, message: str, *, status_code: int, code: str | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.code = code


class TransportError(GenerationError):
  """Raised when a backend request fails below the protocol level."""

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code
