"""
AI Portfolio Analysis

Turns position summaries into a compact JSON payload and asks an LLM for a
portfolio health check. Consumes ledger output only; the ledger never sees
the response.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from openai import OpenAI

from .config_models import DEFAULT_PORTFOLIO_PROMPT
from .transaction_models import PositionSummary

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1-mini"
PORTFOLIO_PLACEHOLDER = "{{portfolio}}"
EMPTY_PORTFOLIO_MESSAGE = "No open positions to analyze."


class AnalysisError(Exception):
    """Raised when the analysis request fails."""


def build_analysis_payload(summaries: Sequence[PositionSummary]) -> List[Dict[str, Any]]:
    """
    Format open positions for the LLM.

    Numbers are pre-rounded strings so the model reads them as displayed
    on the dashboard; weight is each position's share of total market value.

    Returns:
        list: One dict per open position
    """
    open_positions = [s for s in summaries if s.total_shares > 0]
    total_market_value = sum(s.market_value for s in open_positions)

    payload = []
    for s in open_positions:
        weight = (s.market_value / total_market_value * 100) if total_market_value > 0 else 0.0
        payload.append({
            "ticker": s.ticker,
            "name": s.name,
            "avg_cost": f"{s.avg_cost:.1f}",
            "current_price": s.current_price,
            "total_shares": s.total_shares,
            "total_cost": f"{s.total_cost:.0f}",
            "market_value": f"{s.market_value:.0f}",
            "unrealized_pl": f"{s.unrealized_pl:.0f}",
            "realized_pl": f"{s.realized_pl:.0f}",
            "pl_percent": f"{s.unrealized_pl_percent:.2f}%",
            "weight": f"{weight:.1f}%",
        })
    return payload


def build_prompt(prompt_template: str, payload: List[Dict[str, Any]]) -> str:
    """
    Combine the prompt template with the portfolio JSON.

    The JSON replaces a {{portfolio}} placeholder when the template has one,
    otherwise it is appended after the template.
    """
    data = json.dumps(payload, indent=2, ensure_ascii=False)
    if PORTFOLIO_PLACEHOLDER in prompt_template:
        return prompt_template.replace(PORTFOLIO_PLACEHOLDER, data)
    return f"{prompt_template}\n\nPortfolio data:\n{data}"


def analyze_portfolio(
    summaries: Sequence[PositionSummary],
    prompt_template: Optional[str] = None,
    model: Optional[str] = None,
    client: Optional[OpenAI] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Request a free-text (Markdown) portfolio analysis.

    Args:
        summaries: Output of LotLedger.summarize()
        prompt_template: Instructions for the model (default prompt if empty)
        model: Model name (default: DEFAULT_MODEL)
        client: OpenAI client; one is created from OPENAI_API_KEY if omitted
        timeout: Request timeout in seconds for a created client

    Returns:
        str: Analysis report

    Raises:
        AnalysisError: If the API call fails
    """
    payload = build_analysis_payload(summaries)
    if not payload:
        logger.info("Portfolio analysis skipped: no open positions")
        return EMPTY_PORTFOLIO_MESSAGE

    prompt = build_prompt(prompt_template or DEFAULT_PORTFOLIO_PROMPT, payload)
    model = model or DEFAULT_MODEL

    logger.info(f"Requesting portfolio analysis for {len(payload)} positions with {model}")

    try:
        if client is None:
            client = OpenAI(timeout=timeout) if timeout else OpenAI()

        response = client.responses.create(model=model, input=prompt)
        text = (response.output_text or "").strip()

    except Exception as e:
        logger.error(f"Portfolio analysis failed: {e}", exc_info=True)
        raise AnalysisError(f"Portfolio analysis failed: {e}") from e

    if not text:
        logger.warning("Portfolio analysis returned no text")
        return "No analysis generated."

    logger.info(f"Portfolio analysis received ({len(text)} chars)")
    return text
