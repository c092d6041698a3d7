import json
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai

from insight_fakes import FakeLLM, good_narrative_json
from schemas.narrative import NARRATIVE_SCHEMA
from services.ai.llm_service import OpenAIClient, parse_json_object, strip_code_fences
from services.insight.errors import GenerationError
from services.insight.generator import NarrativeGenerator
from services.insight.prompts import SYSTEM_PROMPT
from services.insight.types import FactBundle, NewsItem


def _bundle() -> FactBundle:
    return FactBundle(
        symbol="AAPL",
        as_of="2026-01-15T15:30:00Z",
        news=[NewsItem(headline="Apple rises", url="https://news.example.com/a", timestamp=1)],
        gaps=["price_target"],
    )


def _openai_mock(**create_kwargs) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(**create_kwargs)
    return client


def _completion(content=None, refusal=None):
    message = SimpleNamespace(content=content, refusal=refusal)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class NarrativeGeneratorTests(unittest.IsolatedAsyncioTestCase):
    async def test_request_carries_schema_constraint_and_facts(self):
        llm = FakeLLM(raw=good_narrative_json())

        raw = await NarrativeGenerator(llm).generate(_bundle())

        self.assertEqual(raw, good_narrative_json())
        self.assertEqual(len(llm.calls), 1)
        call = llm.calls[0]
        self.assertEqual(call["system"], SYSTEM_PROMPT)
        self.assertEqual(call["response_format"], NARRATIVE_SCHEMA.response_format())

        user = json.loads(call["user"])
        self.assertEqual(user["facts"]["symbol"], "AAPL")
        self.assertEqual(user["facts"]["news"][0]["url"], "https://news.example.com/a")
        self.assertEqual(user["facts"]["dataGaps"], ["price_target"])
        self.assertTrue(any("DO NOT invent" in r for r in user["rules"]))

    async def test_timeout_is_a_generation_error(self):
        llm = FakeLLM(raw=good_narrative_json(), delay_s=1.0)

        with self.assertRaises(GenerationError):
            await NarrativeGenerator(llm, timeout_s=0.01).generate(_bundle())

    async def test_client_failure_propagates_without_retry(self):
        llm = FakeLLM(error=GenerationError("OpenAI 500: boom"))

        with self.assertRaises(GenerationError):
            await NarrativeGenerator(llm).generate(_bundle())
        self.assertEqual(len(llm.calls), 1)


class OpenAIClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_structured_output_request(self):
        sdk = _openai_mock(return_value=_completion(content='{"title": "x"}'))
        client = OpenAIClient(sdk, model="gpt-4o-mini", temperature=0.2)

        out = await client.generate_json(
            system="sys", user="usr", response_format=NARRATIVE_SCHEMA.response_format(),
        )

        self.assertEqual(out, '{"title": "x"}')
        kwargs = sdk.chat.completions.create.await_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o-mini")
        self.assertEqual(kwargs["temperature"], 0.2)
        self.assertEqual(kwargs["messages"][0], {"role": "system", "content": "sys"})
        self.assertEqual(kwargs["messages"][1], {"role": "user", "content": "usr"})
        self.assertEqual(kwargs["response_format"]["type"], "json_schema")

    async def test_refusal_is_a_generation_error(self):
        sdk = _openai_mock(return_value=_completion(refusal="I can't help with that."))

        with self.assertRaises(GenerationError) as ctx:
            await OpenAIClient(sdk, model="m").generate_json(system="s", user="u", response_format={})
        self.assertIn("refused", str(ctx.exception))

    async def test_sdk_errors_become_generation_errors(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        sdk = _openai_mock(side_effect=openai.APIConnectionError(request=request))

        with self.assertRaises(GenerationError):
            await OpenAIClient(sdk, model="m").generate_json(system="s", user="u", response_format={})

    async def test_no_choices_is_a_generation_error(self):
        sdk = _openai_mock(return_value=SimpleNamespace(choices=[]))

        with self.assertRaises(GenerationError):
            await OpenAIClient(sdk, model="m").generate_json(system="s", user="u", response_format={})


class JsonHelpersTests(unittest.TestCase):
    def test_strip_code_fences(self):
        self.assertEqual(strip_code_fences('```json\n{"a": 1}\n```'), '{"a": 1}')
        self.assertEqual(strip_code_fences('  {"a": 1}  '), '{"a": 1}')
        self.assertEqual(strip_code_fences(None), "")

    def test_parse_json_object_rejects_non_objects(self):
        self.assertEqual(parse_json_object('{"a": 1}'), {"a": 1})
        for raw in ("[1, 2]", "", "not json", "42", "[" * 100000 + "]" * 100000):
            with self.subTest(raw=raw[:20]):
                with self.assertRaises(ValueError):
                    parse_json_object(raw)


if __name__ == "__main__":
    unittest.main()
