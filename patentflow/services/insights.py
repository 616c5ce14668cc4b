"""
Project Insights

Answers natural-language questions about the project data with a hosted
Gemini model. The model is asked for one of two JSON shapes:

    {"responseType": "text",  "data": "..."}
    {"responseType": "chart", "data": [{"name": "...", "value": 3}, ...]}

If it answers with free text instead, that text is returned as a text
response. Only an empty answer is an error.
"""
import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import date
from functools import lru_cache
from typing import List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import ValidationError
from sqlmodel import Session

from patentflow.core.config import settings
from patentflow.core.errors import InsightFailed, InsightTimeout
from patentflow.models.project import Project
from patentflow.schemas.insight import InsightResponse
from patentflow.services.projects import get_all_projects, to_read

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def system_prompt(today: Optional[date] = None) -> str:
    today = today or date.today()
    return (
        "You are an expert project management analyst.\n"
        "Your task is to answer the user's question based on the provided JSON project data.\n"
        f"- Today's date is {today.isoformat()}.\n"
        "- If the user asks for a chart, answer with a JSON object whose responseType is \"chart\" and whose "
        "data is an array for a bar chart. Each element MUST have a \"name\" key for the x-axis label and a "
        "\"value\" key for the y-axis count, e.g. [{\"name\": \"Client A\", \"value\": 10}].\n"
        "- For all other questions answer with a JSON object whose responseType is \"text\" and whose data "
        "is a clear, concise string.\n"
        "- If the question is unclear or cannot be answered from the data, say what you can do instead."
    )


def build_prompt(query: str, projects: List[Project]) -> str:
    rows = [to_read(project).model_dump(mode="json", exclude={"entries"}) for project in projects]
    return (
        f"User Question: {query}\n\n"
        "Project Data (JSON):\n```json\n"
        f"{json.dumps(rows, ensure_ascii=False)}\n```\n"
    )


class InsightProvider(ABC):
    """Hosted model returning the raw text of one completion."""

    @abstractmethod
    def generate(self, system: str, prompt: str) -> str:
        ...


class GeminiInsightProvider(InsightProvider):
    """
    Google Gemini provider.

    Environment:
        GEMINI_API_KEY: API key from Google AI Studio
        INSIGHTS_MODEL: model name (default gemini-2.5-flash)
        AI_TIMEOUT_SECONDS: per-request timeout
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model = model or settings.INSIGHTS_MODEL
        self._client = None

    def _get_client(self) -> genai.Client:
        if not self.api_key:
            raise InsightFailed("AI insights are not configured.")
        if self._client is None:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=settings.AI_TIMEOUT_SECONDS * 1000),
            )
        return self._client

    def generate(self, system: str, prompt: str) -> str:
        client = self._get_client()
        config = types.GenerateContentConfig(
            system_instruction=system,
            response_mime_type="application/json",
            temperature=0.2,
        )
        try:
            response = client.models.generate_content(model=self.model, contents=prompt, config=config)
        except httpx.TimeoutException as exc:
            logger.warning("Gemini request timed out: %s", exc, extra={"operation": "insights"})
            raise InsightTimeout("The AI service timed out. Please try again.") from exc
        except (genai_errors.APIError, httpx.HTTPError) as exc:
            logger.error("Gemini request failed: %s", exc, extra={"operation": "insights"})
            raise InsightFailed("The AI service failed to answer. Please try again later.") from exc
        return response.text or ""


@lru_cache
def get_insight_provider() -> InsightProvider:
    return GeminiInsightProvider()


def parse_model_output(raw: str) -> InsightResponse:
    """
    Turn model output into an InsightResponse.

    Raises:
        InsightFailed: The model produced no output at all
    """
    text = (raw or "").strip()
    if not text:
        raise InsightFailed(
            "The AI failed to generate a valid response. Please try rephrasing your question."
        )

    fenced = _FENCE.match(text)
    candidate = fenced.group(1) if fenced else text
    try:
        return InsightResponse.model_validate_json(candidate)
    except ValidationError:
        logger.warning("AI returned unstructured output; wrapping it as text", extra={"operation": "insights"})
        return InsightResponse(responseType="text", data=text)


def ask_project_insights(db: Session, query: str, provider: InsightProvider) -> InsightResponse:
    """Answer `query` over the full project set."""
    projects = get_all_projects(db)
    raw = provider.generate(system_prompt(), build_prompt(query, projects))
    return parse_model_output(raw)
