"""Tests for AI analysis helpers and the Anthropic analyzer."""

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from company_classifier.errors import AnalysisError
from company_classifier.models import Company
from company_classifier.services.ai_analysis import (
    AnthropicAnalyzer,
    keyword_indicators,
    parse_analysis_response,
    preprocess_content,
)

COMPANY = Company(id=1, name="Acme", website="https://acme.com")

RESPONSE = """Here is the analysis:
{
    "summary": "Acme sells logistics software to enterprises.",
    "branch": "Software",
    "scope": "Logistics",
    "keywords": ["logistics", "Case Studies"],
    "indicators": ["case_studies"],
    "confidence": 0.85
}"""


class TestPreprocess:
    def test_strips_markup_and_scripts(self):
        html = "<html><head><style>p {}</style><script>alert(1)</script></head><body><p>Hello</p>\n\n<p>World</p></body></html>"
        assert preprocess_content(html) == "Hello World"

    def test_truncates(self):
        text = preprocess_content("<p>" + "a" * 50 + "</p>", max_chars=10)
        assert text == "a" * 10 + "..."


class TestKeywordIndicators:
    def test_maps_known_vocabulary(self):
        assert keyword_indicators(["Case Studies", "API-documentation", "shopping cart", "cloud"]) == [
            "case_studies", "api_documentation", "shopping_cart",
        ]


class TestParseResponse:
    def test_extracts_json(self):
        result = parse_analysis_response(RESPONSE, COMPANY)
        assert result.branch == "Software"
        assert result.confidence == 0.85

    def test_no_json(self):
        with pytest.raises(AnalysisError):
            parse_analysis_response("I cannot help with that.", COMPANY)

    def test_schema_mismatch(self):
        with pytest.raises(AnalysisError) as exc_info:
            parse_analysis_response('{"summary": "x", "confidence": 3}', COMPANY)
        assert exc_info.value.context()["company_id"] == 1


class FakeMessages:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


class TestAnthropicAnalyzer:
    def test_prompt_and_result(self):
        analyzer = AnthropicAnalyzer(api_key="sk-ant-test", model="test-model")
        messages = FakeMessages(text=RESPONSE)
        analyzer._client = SimpleNamespace(messages=messages)

        result = analyzer(COMPANY, "Acme builds software")
        assert result.scope == "Logistics"
        assert messages.kwargs["model"] == "test-model"
        prompt = messages.kwargs["messages"][0]["content"]
        assert "Acme builds software" in prompt
        assert "case_studies" in prompt

    def test_api_error_wrapped(self):
        analyzer = AnthropicAnalyzer(api_key="sk-ant-test")
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        error = anthropic.APIConnectionError(request=request)
        analyzer._client = SimpleNamespace(messages=FakeMessages(error=error))
        with pytest.raises(AnalysisError) as exc_info:
            analyzer(COMPANY, "content")
        assert exc_info.value.cause is error
