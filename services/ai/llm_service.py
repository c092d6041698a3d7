# services/ai/llm_service.py
from __future__ import annotations

import json
from typing import Any, Dict, Optional, Protocol

import openai
from openai import AsyncOpenAI

from services.insight.errors import GenerationError


# ============================================================================
# PUBLIC INTERFACE
# ============================================================================

class LLMClient(Protocol):
    async def generate_json(
        self,
        *,
        system: str,
        user: str,
        response_format: Dict[str, Any],
    ) -> str:
        """Return raw text that should be one JSON object matching response_format."""


# ============================================================================
# PROVIDER CLIENTS
# ============================================================================

class OpenAIClient:
    """
    Chat Completions with structured outputs. The AsyncOpenAI client is built
    once at startup and shared; it owns connection pooling and the timeout.
    """

    def __init__(self, client: AsyncOpenAI, model: str, temperature: float = 0.3):
        self._client = client
        self.model = model
        self.temperature = temperature

    async def generate_json(
        self,
        *,
        system: str,
        user: str,
        response_format: Dict[str, Any],
    ) -> str:
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=self.temperature,
                response_format=response_format,
            )
        except openai.APITimeoutError as e:
            raise GenerationError("OpenAI request timed out") from e
        except openai.APIStatusError as e:
            raise GenerationError(f"OpenAI {e.status_code}: {e.message}") from e
        except openai.OpenAIError as e:
            raise GenerationError(f"OpenAI request failed: {e}") from e

        if not resp.choices:
            raise GenerationError("OpenAI returned no choices")
        message = resp.choices[0].message
        refusal = getattr(message, "refusal", None)
        if refusal:
            raise GenerationError(f"Model refused: {refusal}")
        return message.content or ""


def build_openai_client(api_key: str, *, timeout_s: float = 30.0) -> AsyncOpenAI:
    # retries are disabled; a failed generation surfaces to the caller
    return AsyncOpenAI(api_key=api_key, timeout=timeout_s, max_retries=0)


# ============================================================================
# HELPERS
# ============================================================================

def strip_code_fences(text: Optional[str]) -> str:
    t = (text or "").strip()
    if t.startswith("```"):
        lines = t.split("\n")
        # drop first fence line
        lines = lines[1:]
        # drop last fence line if present
        if lines and lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        t = "\n".join(lines).strip()
    return t


def parse_json_object(text: Optional[str]) -> Dict[str, Any]:
    """Parse model text into a dict; raises ValueError otherwise."""
    t = strip_code_fences(text)
    if not t:
        raise ValueError("Empty LLM response")
    try:
        data = json.loads(t)
    except RecursionError as e:
        raise ValueError("LLM response nests too deeply to parse") from e
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data
