"""Chemistry problem analysis using the OpenAI client."""

from __future__ import annotations

import atexit
import json
import logging
import os
from typing import Literal

import httpx
from openai import APITimeoutError, OpenAI, OpenAIError
from pydantic import BaseModel, Field, ValidationError

from app.config import Settings

from .records import Kind

settings = Settings()
logger = logging.getLogger(__name__)

_client: OpenAI | None = None
_http_client: httpx.Client | None = None


def _get_client() -> OpenAI:
    """Lazily build and cache the OpenAI client."""

    global _client, _http_client
    if _client is None:
        mounts: dict[str, httpx.HTTPTransport] = {}
        http_proxy = os.environ.get("HTTP_PROXY")
        https_proxy = os.environ.get("HTTPS_PROXY")
        if http_proxy:
            mounts["http://"] = httpx.HTTPTransport(proxy=http_proxy)
        if https_proxy:
            mounts["https://"] = httpx.HTTPTransport(proxy=https_proxy)

        _http_client = httpx.Client(mounts=mounts) if mounts else None
        api_key = settings.openai_api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY environment variable is not set")
        _client = OpenAI(api_key=api_key, http_client=_http_client)
    return _client


def _close_client() -> None:
    global _client, _http_client
    if _http_client is not None:
        _http_client.close()
    _http_client = None
    _client = None


atexit.register(_close_client)


Difficulty = Literal["easy", "medium", "hard"]


class SolutionStep(BaseModel):
    step_number: int
    title: str
    description: str
    formula: str | None = None
    calculation: str | None = None


class SolutionMethod(BaseModel):
    method_name: str
    difficulty: Difficulty = "medium"
    steps: list[SolutionStep] = Field(default_factory=list)


class Solution(BaseModel):
    steps: list[SolutionStep] = Field(min_length=1)
    final_answer: str
    explanation: str = ""
    methods: list[SolutionMethod] = Field(default_factory=list)


class ProblemAnalysis(BaseModel):
    problem_text: str
    topic: str = "General Chemistry"
    difficulty: Difficulty = "medium"
    solution: Solution


_SYSTEM_PROMPT = """You are an assistant specialised in solving chemistry problems.
Analyse the problem and give a complete, structured solution.

Always answer with valid JSON with exactly this structure:
{
  "problem_text": "the problem as you read it",
  "topic": "chemistry topic (e.g. Stoichiometry, Thermochemistry, Chemical Kinetics)",
  "difficulty": "easy" or "medium" or "hard",
  "solution": {
    "steps": [
      {
        "step_number": 1,
        "title": "Step title",
        "description": "What to do in detail",
        "formula": "Chemical formula or equation (optional)",
        "calculation": "Arithmetic (optional)"
      }
    ],
    "final_answer": "Complete final answer with units",
    "explanation": "Conceptual explanation of the problem and its solution",
    "methods": [
      {
        "method_name": "Alternative method name",
        "difficulty": "easy" or "medium" or "hard",
        "steps": [{"step_number": 1, "title": "...", "description": "..."}]
      }
    ]
  }
}

Rules:
- Always include at least 3 steps in the main solution
- Give chemical formulas where relevant
- Show detailed calculations
- Explain the concepts clearly
- Include at least 1 alternative method when possible"""


def _build_messages(kind: Kind, payload: str) -> list[dict]:
    if kind == Kind.PHOTO:
        user_content: str | list[dict] = [
            {
                "type": "text",
                "text": "Analyse this chemistry problem and give the complete structured solution:",
            },
            {"type": "image_url", "image_url": {"url": payload}},
        ]
    else:
        user_content = f"Solve this chemistry problem: {payload}"
    return [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": user_content},
    ]


def analyze_problem(kind: Kind, payload: str) -> dict:
    """Send a problem to the model and return the validated analysis.

    Parameters
    ----------
    kind: Kind
        ``photo`` when ``payload`` is an image URL (``data:`` URLs included),
        ``calculator`` when it is the problem text.

    Raises ``TimeoutError`` on timeouts, ``ValueError`` when the reply is not
    a valid analysis and ``RuntimeError`` for any other client failure.
    """

    client = _get_client()
    try:
        response = client.chat.completions.create(
            model=settings.openai_model,
            messages=_build_messages(kind, payload),
            response_format={"type": "json_object"},
            max_tokens=settings.openai_max_tokens,
            temperature=settings.openai_temperature,
            timeout=settings.openai_timeout,
        )
    except APITimeoutError as exc:
        raise TimeoutError("OpenAI request timed out") from exc
    except OpenAIError as exc:
        raise RuntimeError("OpenAI request failed") from exc

    try:
        content = response.choices[0].message.content
        data = json.loads(content)
        analysis = ProblemAnalysis.model_validate(data)
    except (KeyError, TypeError, IndexError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Malformed analysis reply: %s", exc)
        raise ValueError("Malformed analysis response") from exc

    return analysis.model_dump()


__all__ = [
    "SolutionStep",
    "SolutionMethod",
    "Solution",
    "ProblemAnalysis",
    "analyze_problem",
]
