"""AI company analysis.

The pipeline treats the model call as an opaque ``Analyzer``: company plus
preprocessed page text in, ``AnalysisResult`` out. ``AnthropicAnalyzer`` is
the shipped implementation.
"""

from __future__ import annotations

import json
import re
from typing import Protocol

import anthropic
import structlog
from bs4 import BeautifulSoup
from pydantic import ValidationError

from company_classifier.errors import AnalysisError
from company_classifier.models import B2B_INDICATORS, B2C_INDICATORS, AnalysisResult, Company

logger = structlog.get_logger()

MAX_CONTENT_CHARS = 8000


class Analyzer(Protocol):
    def __call__(self, company: Company, content: str) -> AnalysisResult: ...


def preprocess_content(content: str, max_chars: int = MAX_CONTENT_CHARS) -> str:
    """Strip markup, collapse whitespace and truncate with an ellipsis marker."""
    soup = BeautifulSoup(content, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = re.sub(r"\s+", " ", soup.get_text(" ")).strip()
    if len(text) > max_chars:
        text = text[:max_chars] + "..."
    return text


def keyword_indicators(keywords: list[str]) -> list[str]:
    """Map free-form keywords onto the known B2B/B2C indicator vocabulary."""
    vocabulary = B2B_INDICATORS | B2C_INDICATORS
    tags = []
    for keyword in keywords:
        tag = re.sub(r"[^a-z0-9]+", "_", keyword.lower()).strip("_")
        if tag in vocabulary:
            tags.append(tag)
    return tags


_PROMPT = """Analyze the following company website content.

Company: {name}
Website: {website}

Website content:
{content}

Known business-model indicator tags:
B2B: {b2b}
B2C: {b2c}

Respond in JSON format:
{{
    "summary": "a concise business description of the company",
    "branch": "the primary industry or sector",
    "scope": "the specific area of focus within the branch",
    "keywords": ["relevant business keywords"],
    "indicators": ["indicator tags from the lists above that the content supports"],
    "confidence": 0.0-1.0
}}"""


class AnthropicAnalyzer:
    """Analyzer backed by the Anthropic Messages API."""

    def __init__(self, api_key: str, model: str = "claude-haiku-4-5-20251001", max_tokens: int = 800):
        self.model = model
        self.max_tokens = max_tokens
        self._client = anthropic.Anthropic(api_key=api_key)

    def __call__(self, company: Company, content: str) -> AnalysisResult:
        prompt = _PROMPT.format(
            name=company.name,
            website=company.website,
            content=content,
            b2b=", ".join(sorted(B2B_INDICATORS)),
            b2c=", ".join(sorted(B2C_INDICATORS)),
        )
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.0,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            raise AnalysisError(
                f"Failed to analyze company with AI: {exc}", company=company, cause=exc
            ) from exc

        text = response.content[0].text
        return parse_analysis_response(text, company)


def parse_analysis_response(text: str, company: Company) -> AnalysisResult:
    json_match = re.search(r"\{.*\}", text, re.DOTALL)
    if not json_match:
        raise AnalysisError("AI response contained no JSON object", company=company)
    try:
        return AnalysisResult.model_validate(json.loads(json_match.group()))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise AnalysisError(
            f"AI response did not match the analysis schema: {exc}", company=company, cause=exc
        ) from exc
