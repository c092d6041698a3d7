import os
import unittest
from unittest.mock import patch

from config.settings import DEFAULT_CACHE_CONTROL, InsightSettings


def _from_env(env: dict) -> InsightSettings:
    with patch.dict(os.environ, env, clear=True), patch("config.settings.load_dotenv"):
        return InsightSettings.from_env()


class InsightSettingsFromEnvTests(unittest.TestCase):
    def test_defaults_when_nothing_is_set(self):
        s = _from_env({})

        self.assertEqual(s.finnhub_api_key, "")
        self.assertEqual(s.openai_api_key, "")
        self.assertEqual(s.finnhub_timeout_s, 5.0)
        self.assertEqual(s.fetch_timeout_s, 8.0)
        self.assertEqual(s.caps.news, 10)
        self.assertEqual(s.windows.insider_days, 60)
        self.assertTrue(s.include_earnings)
        self.assertEqual(s.cache_control, DEFAULT_CACHE_CONTROL)

    def test_blank_values_fall_back_to_defaults(self):
        s = _from_env({
            "FINNHUB_TIMEOUT_S": "",
            "INSIGHT_FETCH_TIMEOUT_S": " ",
            "OPENAI_TIMEOUT_S": "",
            "AI_TEMPERATURE": "",
            "INSIGHT_MAX_NEWS": "",
            "INSIGHT_NEWS_DAYS": "  ",
            "OPENAI_MODEL": "",
            "INSIGHT_CACHE_CONTROL": "",
        })

        self.assertEqual(s.finnhub_timeout_s, 5.0)
        self.assertEqual(s.fetch_timeout_s, 8.0)
        self.assertEqual(s.openai_timeout_s, 30.0)
        self.assertEqual(s.temperature, 0.3)
        self.assertEqual(s.caps.news, 10)
        self.assertEqual(s.windows.news_days, 2)
        self.assertEqual(s.openai_model, "gpt-4o-mini")
        self.assertEqual(s.cache_control, DEFAULT_CACHE_CONTROL)

    def test_explicit_values_are_parsed(self):
        s = _from_env({
            "FINNHUB_TIMEOUT_S": "2.5",
            "INSIGHT_MAX_NEWS": "4",
            "INSIGHT_INCLUDE_EARNINGS": "0",
        })

        self.assertEqual(s.finnhub_timeout_s, 2.5)
        self.assertEqual(s.caps.news, 4)
        self.assertFalse(s.include_earnings)

    def test_keys_are_stripped_and_whitespace_only_counts_as_missing(self):
        s = _from_env({"FINNHUB_API_KEY": "   ", "FINNHUB_TOKEN": " tok ", "OPENAI_API_KEY": "\t"})

        self.assertEqual(s.finnhub_api_key, "tok")
        self.assertEqual(s.openai_api_key, "")


if __name__ == "__main__":
    unittest.main()
