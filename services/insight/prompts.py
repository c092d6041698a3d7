from __future__ import annotations

import json
from typing import Any, Dict

from schemas.narrative import MAX_SECTIONS, MIN_SECTIONS
from services.insight.types import FactBundle

NO_CLEAR_DRIVER = "No clear single driver"

SYSTEM_PROMPT = """
You write concise, finance-style market narratives that explain why a stock is moving today.
Return ONLY a JSON object that matches the provided schema.

Rules:
- Use only the provided facts. Do not invent events, numbers, deals, or dates.
- No financial advice or recommendation language.
- Short, factual sections; follow the writing rules in the user message exactly.
""".strip()

WRITING_RULES = [
    "Use ONLY the provided facts. DO NOT invent events, numbers, deals, or dates.",
    f"If the facts are insufficient to explain the move, say '{NO_CLEAR_DRIVER}' and focus on what IS known "
    "(e.g., earnings, guidance, analyst changes, insider activity).",
    "Short punchy writing. No more than 2 sentences per section.",
    f"Write between {MIN_SECTIONS} and {MAX_SECTIONS} sections. Headings should be short (2-6 words).",
    "sentiment is 'up', 'down' or 'flat' from the quote's change; use 'unknown' when there is no quote.",
    "updatedLabel is a short human label for facts.asOf, e.g. 'Updated Jan 5, 2:30 PM UTC'.",
    "When you mention a headline, include it in citations with its exact URL from facts.news. "
    "Never cite a URL that is not in facts.news.",
    "dataGaps lists sources that could not be fetched; do not speculate about them.",
]


def build_user_prompt(bundle: FactBundle) -> str:
    payload: Dict[str, Any] = {
        "goal": f"Generate a short 'Insight' story that explains why {bundle.symbol} is moving today.",
        "rules": WRITING_RULES,
        "facts": bundle.to_dict(),
    }
    return json.dumps(payload, default=str)
