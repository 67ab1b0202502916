"""
Tests for the summary pipeline.

The reader service and the language model are mocked at the HTTP layer with
respx, so the real httpx and groq clients run end to end.
"""
import json
from collections.abc import AsyncGenerator
from unittest.mock import patch

import httpx
import pytest
import respx

from core.config import Settings
from core.rate_limit_config import QuotaConfig
from core.rate_limiter import QuotaLimiter
from services.summary_service import (
    FALLBACK_MESSAGES,
    MAX_CONTENT_LENGTH,
    MAX_SUMMARY_TOKENS,
    SYSTEM_PROMPT,
    TEMPERATURE,
    SummaryErrorKind,
    SummaryPipeline,
    clean_reader_content,
    is_fallback_summary,
    truncate_content,
)

PAGE_URL = "https://example.com/article"
READER_HOST = "r.jina.ai"
GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"

ARTICLE = (
    "Title: Example Article\n"
    "URL Source: https://example.com/article\n\n"
    "Markdown Content:\n"
    "# Why Caching Matters\n\n\n\n"
    "Caching stores the results of **expensive** operations so that later requests "
    "can reuse them. See the [guide](https://example.com/guide) for details. "
    "![diagram](https://example.com/diagram.png)\n\n"
    "Done well, a cache cuts latency and load on the origin at the same time."
)
GOOD_SUMMARY = "Caching reuses the results of expensive operations to cut latency and load."


def completion(content: str | None) -> httpx.Response:
    """Chat-completion response body in the provider's wire format."""
    return httpx.Response(
        200,
        json={
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "created": 1700000000,
            "model": "llama-3.1-8b-instant",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": content},
                    "finish_reason": "stop",
                    "logprobs": None,
                },
            ],
            "usage": {"prompt_tokens": 100, "completion_tokens": 20, "total_tokens": 120},
        },
    )


def api_error(status: int) -> httpx.Response:
    return httpx.Response(status, json={"error": {"message": "upstream said no", "type": "error"}})


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def summary_settings(settings: Settings) -> Settings:
    return settings.model_copy(
        update={"groq_api_key": "test-groq-key", "jina_api_key": "test-jina-key"},
    )


def make_limiter(
    max_requests: int = 50,
    min_interval_seconds: float = 0.0,
    clock: FakeClock | None = None,
) -> QuotaLimiter:
    config = QuotaConfig(
        service="summary",
        max_requests=max_requests,
        window_seconds=3600,
        min_interval_seconds=min_interval_seconds,
    )
    return QuotaLimiter(config, clock=clock or FakeClock())


@pytest.fixture
async def pipeline(summary_settings: Settings) -> AsyncGenerator[SummaryPipeline]:
    summary_pipeline = SummaryPipeline(summary_settings, make_limiter())
    yield summary_pipeline
    await summary_pipeline.aclose()


class TestSummarize:
    """Tests for SummaryPipeline.summarize happy path and request shape."""

    @respx.mock
    async def test__summarize__success(self, pipeline: SummaryPipeline) -> None:
        reader = respx.get(host=READER_HOST).mock(return_value=httpx.Response(200, text=ARTICLE))
        llm = respx.post(GROQ_URL).mock(return_value=completion(f"  {GOOD_SUMMARY}\n"))

        result = await pipeline.summarize(PAGE_URL)

        assert result == GOOD_SUMMARY
        assert not is_fallback_summary(result)

        reader_request = reader.calls.last.request
        assert str(reader_request.url) == f"https://r.jina.ai/{PAGE_URL}"
        assert reader_request.headers["Authorization"] == "Bearer test-jina-key"
        assert reader_request.headers["Accept"] == "text/plain"

        body = json.loads(llm.calls.last.request.content)
        assert body["temperature"] == TEMPERATURE
        assert body["max_tokens"] == MAX_SUMMARY_TOKENS
        assert body["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        user_content = body["messages"][1]["content"]
        assert user_content.startswith("Why Caching Matters")
        assert "Title:" not in user_content
        assert "**" not in user_content
        assert "https://example.com/guide" not in user_content

    @respx.mock
    async def test__summarize__reader_without_key(
        self, summary_settings: Settings,
    ) -> None:
        reader = respx.get(host=READER_HOST).mock(return_value=httpx.Response(200, text=ARTICLE))
        respx.post(GROQ_URL).mock(return_value=completion(GOOD_SUMMARY))
        no_reader_key = summary_settings.model_copy(update={"jina_api_key": None})
        summary_pipeline = SummaryPipeline(no_reader_key, make_limiter())

        assert await summary_pipeline.summarize(PAGE_URL) == GOOD_SUMMARY
        assert "Authorization" not in reader.calls.last.request.headers
        await summary_pipeline.aclose()

    @respx.mock
    async def test__summarize__long_content_truncated(self, pipeline: SummaryPipeline) -> None:
        respx.get(host=READER_HOST).mock(return_value=httpx.Response(200, text="word " * 2000))
        llm = respx.post(GROQ_URL).mock(return_value=completion(GOOD_SUMMARY))

        await pipeline.summarize(PAGE_URL)

        user_content = json.loads(llm.calls.last.request.content)["messages"][1]["content"]
        assert user_content.endswith("...")
        assert len(user_content) <= MAX_CONTENT_LENGTH + 3


class TestSummarizeFallbacks:
    """Every failure yields a fallback sentence instead of an exception."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (429, "Summary temporarily unavailable due to rate limiting."),
            (401, "Summary temporarily unavailable due to authentication error."),
            (500, "Summary temporarily unavailable."),
            (503, "Summary temporarily unavailable."),
            (404, "Summary temporarily unavailable."),
        ],
    )
    @pytest.mark.respx(assert_all_called=False)
    async def test__summarize__reader_status(
        self,
        pipeline: SummaryPipeline,
        respx_mock: respx.MockRouter,
        status: int,
        expected: str,
    ) -> None:
        respx_mock.get(host=READER_HOST).mock(return_value=httpx.Response(status))
        llm = respx_mock.post(GROQ_URL).mock(return_value=completion(GOOD_SUMMARY))

        assert await pipeline.summarize(PAGE_URL) == expected
        assert not llm.called

    @respx.mock
    async def test__summarize__reader_timeout(self, pipeline: SummaryPipeline) -> None:
        respx.get(host=READER_HOST).mock(side_effect=httpx.ReadTimeout("slow"))

        assert await pipeline.summarize(PAGE_URL) == "Summary temporarily unavailable."

    @pytest.mark.respx(assert_all_called=False)
    async def test__summarize__content_too_short(
        self, pipeline: SummaryPipeline, respx_mock: respx.MockRouter,
    ) -> None:
        respx_mock.get(host=READER_HOST).mock(
            return_value=httpx.Response(200, text="Markdown Content:\n# Hi\n\nToo short."),
        )
        llm = respx_mock.post(GROQ_URL).mock(return_value=completion(GOOD_SUMMARY))

        assert await pipeline.summarize(PAGE_URL) == "Summary not available for this URL."
        assert not llm.called

    @pytest.mark.respx(assert_all_called=False)
    async def test__summarize__model_not_configured(
        self, summary_settings: Settings, respx_mock: respx.MockRouter,
    ) -> None:
        respx_mock.get(host=READER_HOST).mock(return_value=httpx.Response(200, text=ARTICLE))
        llm = respx_mock.post(GROQ_URL).mock(return_value=completion(GOOD_SUMMARY))
        no_model_key = summary_settings.model_copy(update={"groq_api_key": None})

        result = await SummaryPipeline(no_model_key, make_limiter()).summarize(PAGE_URL)

        assert result == "Summary service not configured."
        assert not llm.called

    @pytest.mark.parametrize("content", [None, "", "   ", "Too brief."])
    @respx.mock
    async def test__summarize__model_output_missing_or_short(
        self, pipeline: SummaryPipeline, content: str | None,
    ) -> None:
        respx.get(host=READER_HOST).mock(return_value=httpx.Response(200, text=ARTICLE))
        respx.post(GROQ_URL).mock(return_value=completion(content))

        assert await pipeline.summarize(PAGE_URL) == "Unable to generate summary."

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (429, "Summary temporarily unavailable due to rate limiting."),
            (401, "Summary temporarily unavailable due to authentication error."),
            (500, "Summary temporarily unavailable."),
            (400, "Summary temporarily unavailable."),
        ],
    )
    @respx.mock
    async def test__summarize__model_error_status(
        self, pipeline: SummaryPipeline, status: int, expected: str,
    ) -> None:
        respx.get(host=READER_HOST).mock(return_value=httpx.Response(200, text=ARTICLE))
        respx.post(GROQ_URL).mock(return_value=api_error(status))

        assert await pipeline.summarize(PAGE_URL) == expected

    @respx.mock
    async def test__summarize__unexpected_error(self, pipeline: SummaryPipeline) -> None:
        respx.get(host=READER_HOST).mock(return_value=httpx.Response(200, text=ARTICLE))

        with patch(
            "services.summary_service.clean_reader_content", side_effect=RuntimeError("boom"),
        ):
            result = await pipeline.summarize(PAGE_URL)

        assert result == FALLBACK_MESSAGES[SummaryErrorKind.UNKNOWN]


class TestSummarizeRateLimit:
    """The local quota is checked before any outbound call."""

    @respx.mock
    async def test__summarize__hourly_quota_exhausted(self, summary_settings: Settings) -> None:
        reader = respx.get(host=READER_HOST).mock(return_value=httpx.Response(200, text=ARTICLE))
        respx.post(GROQ_URL).mock(return_value=completion(GOOD_SUMMARY))
        summary_pipeline = SummaryPipeline(summary_settings, make_limiter(max_requests=1))

        assert await summary_pipeline.summarize(PAGE_URL) == GOOD_SUMMARY
        second = await summary_pipeline.summarize(PAGE_URL)

        assert second == "Summary temporarily unavailable due to rate limiting."
        assert reader.call_count == 1
        await summary_pipeline.aclose()

    @respx.mock
    async def test__summarize__calls_too_close_together(self, summary_settings: Settings) -> None:
        reader = respx.get(host=READER_HOST).mock(return_value=httpx.Response(200, text=ARTICLE))
        respx.post(GROQ_URL).mock(return_value=completion(GOOD_SUMMARY))
        clock = FakeClock()
        summary_pipeline = SummaryPipeline(
            summary_settings, make_limiter(min_interval_seconds=2.0, clock=clock),
        )

        assert await summary_pipeline.summarize(PAGE_URL) == GOOD_SUMMARY
        clock.now += 1.0
        assert is_fallback_summary(await summary_pipeline.summarize(PAGE_URL))
        clock.now += 1.5
        assert await summary_pipeline.summarize(PAGE_URL) == GOOD_SUMMARY

        assert reader.call_count == 2
        await summary_pipeline.aclose()


class TestCleanReaderContent:
    """Tests for clean_reader_content function."""

    def test__clean_reader_content__strips_header_and_markdown(self) -> None:
        cleaned = clean_reader_content(ARTICLE)

        assert cleaned.startswith("Why Caching Matters")
        assert "URL Source" not in cleaned
        assert "expensive operations" in cleaned
        assert "See the guide for details." in cleaned
        assert "diagram" not in cleaned
        assert "\n\n\n" not in cleaned

    def test__clean_reader_content__without_marker(self) -> None:
        assert clean_reader_content("## Plain *emphasis* here") == "Plain emphasis here"

    def test__clean_reader_content__keeps_list_bullets(self) -> None:
        assert clean_reader_content("* first\n* second") == "* first\n* second"

    def test__clean_reader_content__empty(self) -> None:
        assert clean_reader_content("Markdown Content:\n\n\n") == ""


class TestTruncateContent:
    """Tests for truncate_content function."""

    def test__truncate_content__short_unchanged(self) -> None:
        assert truncate_content("short", max_length=10) == "short"

    def test__truncate_content__exact_length_unchanged(self) -> None:
        assert truncate_content("x" * 10, max_length=10) == "x" * 10

    def test__truncate_content__long_marked(self) -> None:
        assert truncate_content("abcdefghijkl", max_length=5) == "abcde..."


class TestIsFallbackSummary:
    """Tests for is_fallback_summary function."""

    @pytest.mark.parametrize("message", list(FALLBACK_MESSAGES.values()))
    def test__is_fallback_summary__every_fallback(self, message: str) -> None:
        assert is_fallback_summary(message) is True

    def test__is_fallback_summary__missing(self) -> None:
        assert is_fallback_summary(None) is True
        assert is_fallback_summary("") is True

    def test__is_fallback_summary__real_summary(self) -> None:
        assert is_fallback_summary(GOOD_SUMMARY) is False
