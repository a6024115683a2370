"""
Prompt and request-body construction for the AI analysis call.

Deterministic: the same whale, price, tier and on-chain context always
produce the same request. The body follows the generateContent shape
(contents, optional systemInstruction, generationConfig with a response
schema, safetySettings).
"""

from __future__ import annotations

from typing import Any

from backend_whalewatch.analysis_engine.deep_dive import DeepDiveResult
from backend_whalewatch.analysis_engine.models import WhaleTransaction
from backend_whalewatch.config.settings import TierParams
from backend_whalewatch.gateway.models import AddressProfile

BTC_TOTAL_SUPPLY = 21_000_000

THINKING_INSTRUCTION = (
    "You are an expert cryptocurrency analyst. Show your step-by-step reasoning process "
    "before providing your final analysis. Think through the transaction patterns, market "
    "context, and historical precedents carefully. Structure your thinking clearly with "
    'headings like "## Thinking Process" before the JSON output.'
)

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "transaction_type": {
            "type": "string",
            "enum": ["exchange_deposit", "exchange_withdrawal", "whale_to_whale", "unknown"],
        },
        "market_impact": {"type": "string", "enum": ["Bearish", "Bullish", "Neutral"]},
        "confidence": {"type": "number", "minimum": 0, "maximum": 100},
        "reasoning": {"type": "string"},
        "key_findings": {"type": "array", "items": {"type": "string"}, "minItems": 3, "maxItems": 10},
        "trader_action": {"type": "string"},
        "price_levels": {
            "type": "object",
            "properties": {
                "support": {"type": "array", "items": {"type": "number"}},
                "resistance": {"type": "array", "items": {"type": "number"}},
            },
        },
        "timeframe_analysis": {
            "type": "object",
            "properties": {"short_term": {"type": "string"}, "medium_term": {"type": "string"}},
        },
    },
    "required": [
        "transaction_type",
        "market_impact",
        "confidence",
        "reasoning",
        "key_findings",
        "trader_action",
    ],
}

_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def _profile_section(label: str, profile: AddressProfile) -> str:
    if profile.is_empty:
        return f"**{label} ({profile.address}):** blockchain data unavailable"
    entity = profile.known_entity
    entity_label = f"{entity.name} ({entity.category})" if entity else "None"
    recent = "\n".join(
        f"  {i}. {t.time[:10]} - {t.amount:.8f} BTC ({t.direction})"
        for i, t in enumerate(profile.recent_transactions, start=1)
    ) or "  No recent transactions"
    return f"""**{label} ({profile.address}):**
- Known Entity: {entity_label}
- Current Balance: {profile.balance:.8f} BTC
- Total Received: {profile.total_received:.8f} BTC
- Total Sent: {profile.total_sent:.8f} BTC
- Total Transactions: {profile.transaction_count}
- 30-Day Volume: {profile.volume_30d:.8f} BTC
- Recent Activity:
{recent}"""


def build_blockchain_section(deep_dive: DeepDiveResult) -> str:
    """On-chain context for both addresses, detected patterns, and data gaps."""
    p = deep_dive.patterns
    flag = {True: "yes", False: "no"}
    limitations = "\n".join(f"- {item}" for item in deep_dive.limitations) or "- None"
    source = _profile_section("Source Address", deep_dive.source)
    destination = _profile_section("Destination Address", deep_dive.destination)
    return f"""**Blockchain Data:**
{source}

{destination}

**Detected Patterns:**
- Accumulation: {flag[p.is_accumulation]}
- Distribution: {flag[p.is_distribution]}
- Mixing: {flag[p.is_mixing]}
- Exchange Flow: {p.exchange_flow.value}

**Data Limitations:**
{limitations}"""


def build_analysis_prompt(
    whale: WhaleTransaction,
    current_price: float,
    current_value_usd: float,
    deep_dive: DeepDiveResult | None = None,
) -> str:
    supply_pct = whale.amount / BTC_TOTAL_SUPPLY * 100
    blockchain = f"\n\n{build_blockchain_section(deep_dive)}" if deep_dive is not None else ""
    return f"""You are an expert cryptocurrency market analyst with deep knowledge of Bitcoin whale behavior, market psychology, and on-chain analytics. Analyze this Bitcoin whale transaction.

**Current Market Context:**
- Current Bitcoin Price: ${current_price:,.2f}
- Transaction Value at Current Price: ${current_value_usd:,.2f}
- Transaction represents {supply_pct:.4f}% of total Bitcoin supply

**Transaction Details:**
- Transaction Hash: {whale.tx_hash}
- Amount: {whale.amount:.8f} BTC (At detection: ${whale.amount_usd:,.2f})
- From Address: {whale.from_address}
- To Address: {whale.to_address}
- Timestamp: {whale.timestamp}
- Initial Classification: {whale.type.value}
- Description: {whale.description}{blockchain}

**Analysis Required:**
1. Transaction pattern analysis: what the size and addresses suggest.
2. Market context: exchange flow direction and recent whale activity.
3. Behavioral intent: accumulation, distribution, or repositioning.
4. Price levels: at least 2 support and 2 resistance levels.
5. Timeframes: 24-48 hour and 1-2 week outlook.
6. Trader action: a specific, actionable recommendation.

Respond with a single JSON object containing: transaction_type, market_impact (Bearish | Bullish | Neutral), confidence (0-100), reasoning, key_findings (3-10 strings), trader_action, price_levels {{support, resistance}}, timeframe_analysis {{short_term, medium_term}}."""


def build_request(
    whale: WhaleTransaction,
    current_price: float,
    current_value_usd: float,
    params: TierParams,
    *,
    enable_thinking: bool,
    deep_dive: DeepDiveResult | None = None,
) -> dict[str, Any]:
    """generateContent request body for one whale analysis, with on-chain context when given."""
    prompt = build_analysis_prompt(whale, current_price, current_value_usd, deep_dive)
    body: dict[str, Any] = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": params.temperature,
            "topK": params.top_k,
            "topP": params.top_p,
            "maxOutputTokens": params.max_output_tokens,
            "candidateCount": 1,
            "responseMimeType": "application/json",
            "responseSchema": ANALYSIS_SCHEMA,
        },
        "safetySettings": [
            {"category": category, "threshold": "BLOCK_ONLY_HIGH"} for category in _SAFETY_CATEGORIES
        ],
    }
    if enable_thinking:
        body["systemInstruction"] = {"parts": [{"text": THINKING_INSTRUCTION}]}
    return body
