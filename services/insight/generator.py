# services/insight/generator.py
from __future__ import annotations

import asyncio
import logging
import time

from schemas.narrative import NARRATIVE_SCHEMA, NarrativeSchema
from services.ai.llm_service import LLMClient
from services.insight.errors import GenerationError
from services.insight.prompts import SYSTEM_PROMPT, build_user_prompt
from services.insight.types import FactBundle

logger = logging.getLogger(__name__)


class NarrativeGenerator:
    """
    One non-streaming, schema-constrained model call per bundle. No retries:
    any failure is raised as GenerationError.
    """

    def __init__(
        self,
        llm: LLMClient,
        *,
        schema: NarrativeSchema = NARRATIVE_SCHEMA,
        timeout_s: float = 30.0,
    ):
        self._llm = llm
        self.schema = schema
        self._timeout_s = timeout_s

    async def generate(self, bundle: FactBundle) -> str:
        start = time.perf_counter()
        try:
            raw = await asyncio.wait_for(
                self._llm.generate_json(
                    system=SYSTEM_PROMPT,
                    user=build_user_prompt(bundle),
                    response_format=self.schema.response_format(),
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationError("Narrative generation timed out") from exc

        logger.info(
            "insight_generation_completed symbol=%s schema=%s chars=%d duration_ms=%.1f",
            bundle.symbol, self.schema.version, len(raw or ""),
            (time.perf_counter() - start) * 1000,
        )
        return raw
