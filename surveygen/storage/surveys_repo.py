"""Survey capacity records for the sandbox backend."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class SurveyRecord:
  """Response counters of one survey."""

  survey_id: str
  title: str
  response_count: int = 0
  max_responses: int | None = None
  ai_responses_enabled: bool = True

  def remaining_capacity(self, ceiling: int) -> int:
    if self.max_responses:
      return max(0, self.max_responses - self.response_count)
    return ceiling


class InMemorySurveysRepository:
  """Survey repository keeping records in process memory."""

  def __init__(self, surveys: list[SurveyRecord] | None = None) -> None:
    self._surveys: dict[str, SurveyRecord] = {survey.survey_id: survey for survey in surveys or []}
    self._lock = asyncio.Lock()

  async def get_survey(self, survey_id: str) -> SurveyRecord | None:
    async with self._lock:
      return self._surveys.get(survey_id)

  async def upsert_survey(self, survey: SurveyRecord) -> SurveyRecord:
    async with self._lock:
      self._surveys[survey.survey_id] = survey
      return survey

  async def add_responses(self, survey_id: str, count: int) -> SurveyRecord | None:
    """Increase the response count after generated responses were stored."""
    async with self._lock:
      survey = self._surveys.get(survey_id)
      if survey is None:
        return None
      updated = replace(survey, response_count=survey.response_count + max(count, 0))
      self._surveys[survey_id] = updated
      return updated
