"""
Tests for AI portfolio analysis.

The OpenAI client is replaced by a fake exposing responses.create().
"""

import json
from types import SimpleNamespace

import pytest

from smartstock import analysis
from smartstock.analysis import (
    EMPTY_PORTFOLIO_MESSAGE,
    AnalysisError,
    analyze_portfolio,
    build_analysis_payload,
    build_prompt,
)
from smartstock.transaction_models import PositionSummary


class FakeResponses:
    def __init__(self, text="## Health check\nLooks fine.", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(output_text=self.text)


class FakeClient:
    def __init__(self, **kwargs):
        self.responses = FakeResponses(**kwargs)


def summaries():
    return [
        PositionSummary(ticker="2330.TW", name="TSMC", total_shares=10, total_cost=1000,
                        avg_cost=100, current_price=150, market_value=1500,
                        unrealized_pl=500, realized_pl=0, record_count=1),
        PositionSummary(ticker="AAPL", name="Apple", total_shares=5, total_cost=600,
                        avg_cost=120, current_price=100, market_value=500,
                        unrealized_pl=-100, realized_pl=20, record_count=2),
        PositionSummary(ticker="AMD", name="AMD", total_shares=0, realized_pl=300, record_count=1),
    ]


def test_payload_open_positions_only():
    """Closed positions are left out; weights share the open market value."""
    payload = build_analysis_payload(summaries())

    assert [p["ticker"] for p in payload] == ["2330.TW", "AAPL"]
    assert payload[0]["weight"] == "75.0%"
    assert payload[1]["weight"] == "25.0%"
    assert payload[0]["pl_percent"] == "50.00%"
    assert payload[1]["pl_percent"] == "-16.67%"
    assert payload[0]["avg_cost"] == "100.0"
    assert payload[0]["market_value"] == "1500"
    assert payload[1]["realized_pl"] == "20"


def test_build_prompt_placeholder_and_append():
    payload = [{"ticker": "AAPL"}]

    replaced = build_prompt("Review this:\n{{portfolio}}\nThanks", payload)
    appended = build_prompt("Review my holdings.", payload)

    assert "{{portfolio}}" not in replaced
    assert replaced.startswith("Review this:\n[")
    assert replaced.endswith("]\nThanks")
    assert appended.startswith("Review my holdings.\n\nPortfolio data:\n")
    assert json.loads(appended.split("Portfolio data:\n", 1)[1]) == payload


def test_analyze_portfolio_calls_model():
    print("\n🧪 Test: Portfolio analysis request")
    client = FakeClient()

    result = analyze_portfolio(summaries(), prompt_template="Be brief.", model="gpt-4.1", client=client)

    assert result == "## Health check\nLooks fine."
    call = client.responses.calls[0]
    assert call["model"] == "gpt-4.1"
    assert call["input"].startswith("Be brief.")
    assert '"ticker": "2330.TW"' in call["input"]
    assert "AMD" not in call["input"]
    print("   ✅ Prompt and model passed through")


def test_analyze_portfolio_defaults():
    client = FakeClient()

    analyze_portfolio(summaries(), client=client)

    call = client.responses.calls[0]
    assert call["model"] == analysis.DEFAULT_MODEL
    assert call["input"].startswith(analysis.DEFAULT_PORTFOLIO_PROMPT)


def test_empty_portfolio_skips_request():
    client = FakeClient()

    closed_only = [s for s in summaries() if s.total_shares == 0]

    assert analyze_portfolio(closed_only, client=client) == EMPTY_PORTFOLIO_MESSAGE
    assert analyze_portfolio([], client=client) == EMPTY_PORTFOLIO_MESSAGE
    assert client.responses.calls == []


def test_api_failure_raises_analysis_error():
    client = FakeClient(error=TimeoutError("request timed out"))

    with pytest.raises(AnalysisError) as exc_info:
        analyze_portfolio(summaries(), client=client)

    assert "timed out" in str(exc_info.value)


def test_blank_response():
    client = FakeClient(text="   ")

    assert analyze_portfolio(summaries(), client=client) == "No analysis generated."
