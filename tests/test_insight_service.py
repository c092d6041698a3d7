import unittest
from unittest.mock import MagicMock

import httpx

from config.settings import InsightSettings
from insight_fakes import FakeFinnhub, FakeLLM, failing_everything, good_narrative_json, make_service
from schemas.narrative import NARRATIVE_SCHEMA
from services.insight.errors import ConfigurationError, GenerationError, SymbolValidationError
from services.insight.insight_service import build_insight_service


class InsightServiceTests(unittest.IsolatedAsyncioTestCase):
    async def test_symbol_is_trimmed_and_uppercased(self):
        finnhub = FakeFinnhub()
        svc = make_service(finnhub, FakeLLM(raw=good_narrative_json()))

        result = await svc.explain("  aapl \n")

        self.assertEqual(result.document.symbol, "AAPL")
        self.assertEqual(result.bundle.symbol, "AAPL")
        self.assertTrue(all(r.url.params["symbol"] == "AAPL" for r in finnhub.requests))

    async def test_blank_symbol_short_circuits(self):
        for symbol in (None, "", "   ", "\t\n"):
            with self.subTest(symbol=symbol):
                finnhub, llm = FakeFinnhub(), FakeLLM(raw=good_narrative_json())
                svc = make_service(finnhub, llm)

                with self.assertRaises(SymbolValidationError):
                    await svc.explain(symbol)
                self.assertEqual(finnhub.requests, [])
                self.assertEqual(llm.calls, [])

    async def test_single_failed_source_still_reaches_generation(self):
        llm = FakeLLM(raw=good_narrative_json())
        svc = make_service(FakeFinnhub(fail={"/stock/price-target": 500}), llm)

        result = await svc.explain("AAPL")

        self.assertEqual(len(llm.calls), 1)
        self.assertFalse(result.fallback_used)
        self.assertIsNone(result.bundle.price_target)
        self.assertEqual(result.bundle.gaps, ["price_target"])

    async def test_total_outage_returns_fallback_without_model_call(self):
        llm = FakeLLM(raw=good_narrative_json())
        svc = make_service(failing_everything(), llm)

        result = await svc.explain("ZZZZ")

        self.assertEqual(llm.calls, [])
        self.assertTrue(result.fallback_used)
        self.assertEqual(result.document.symbol, "ZZZZ")
        self.assertEqual(result.document.sections[0].heading, "No clear single driver")

    async def test_unparseably_nested_output_falls_back(self):
        svc = make_service(FakeFinnhub(), FakeLLM(raw='{"title":' + "[" * 100000))

        result = await svc.explain("AAPL")

        self.assertTrue(result.fallback_used)
        self.assertEqual(result.document.sentiment, "unknown")

    async def test_generation_error_propagates(self):
        svc = make_service(FakeFinnhub(), FakeLLM(error=GenerationError("OpenAI 500: boom")))

        with self.assertRaises(GenerationError):
            await svc.explain("AAPL")

    async def test_repeated_calls_always_conform(self):
        outputs = [
            good_narrative_json(),
            good_narrative_json(title="Apple edges higher", sentiment="flat"),
            "not json at all",
        ]
        for raw in outputs:
            with self.subTest(raw=raw[:20]):
                result = await make_service(FakeFinnhub(), FakeLLM(raw=raw)).explain("AAPL")
                body = result.document.model_dump()
                self.assertEqual(body.pop("symbol"), "AAPL")
                NARRATIVE_SCHEMA.validate(body)

    async def test_collect_facts_skips_the_model(self):
        llm = FakeLLM(raw=good_narrative_json())
        svc = make_service(FakeFinnhub(), llm)

        bundle = await svc.collect_facts("msft")

        self.assertEqual(bundle.symbol, "MSFT")
        self.assertEqual(llm.calls, [])


class BuildInsightServiceTests(unittest.TestCase):
    def test_missing_credentials_fail_before_any_io(self):
        calls = []
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: calls.append(r) or httpx.Response(200)))
        cases = {
            "no openai key": InsightSettings(finnhub_api_key="f", openai_api_key=""),
            "no finnhub key": InsightSettings(finnhub_api_key="", openai_api_key="o"),
            "neither": InsightSettings(),
            "blank keys": InsightSettings(finnhub_api_key="  ", openai_api_key="\t"),
        }
        for name, settings in cases.items():
            with self.subTest(case=name):
                with self.assertRaises(ConfigurationError):
                    build_insight_service(settings, http=http, openai_client=MagicMock())
        self.assertEqual(calls, [])

    def test_builds_with_both_credentials(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        settings = InsightSettings(finnhub_api_key="f", openai_api_key="o", include_earnings=False)

        svc = build_insight_service(settings, http=http, openai_client=MagicMock())

        self.assertEqual(len(svc.aggregator.sources), 6)
        self.assertEqual(svc.cache_control, "s-maxage=60, stale-while-revalidate=120")


if __name__ == "__main__":
    unittest.main()
