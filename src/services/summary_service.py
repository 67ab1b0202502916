"""
Summary pipeline: reader service -> content cleanup -> language model.

`SummaryPipeline.summarize()` never raises. Each failure point raises a
`SummaryError` carrying one `SummaryErrorKind`, and the pipeline boundary maps
that kind to its user-facing sentence exactly once, via FALLBACK_MESSAGES.

Stages (no retries; any stage may end the pipeline with a fallback):
    RateLimitCheck -> ContentFetch -> ContentClean -> LengthGate
    -> Truncate -> Summarize -> Validate -> Done
"""
import logging
import re
from enum import StrEnum

import groq
import httpx
from groq import AsyncGroq

from core.config import Settings
from core.rate_limiter import QuotaLimiter

logger = logging.getLogger(__name__)

READER_TIMEOUT = 15.0
LLM_TIMEOUT = 30.0
READER_USER_AGENT = 'LinkSaver/1.0'

# Reader responses carry a metadata header (Title:, URL Source:, ...) before this marker
CONTENT_MARKER = 'Markdown Content:'
MIN_CONTENT_LENGTH = 100
MAX_CONTENT_LENGTH = 4000
TRUNCATION_SUFFIX = '...'
MIN_SUMMARY_LENGTH = 20

SYSTEM_PROMPT = (
    "You are a helpful assistant that summarizes web pages. "
    "Summarize the provided content in 1-2 clear, informative sentences. "
    "Respond with the summary only, without any preamble."
)
TEMPERATURE = 0.3
MAX_SUMMARY_TOKENS = 150


class SummaryErrorKind(StrEnum):
    """Why a summary could not be produced."""

    RATE_LIMITED = "rate_limited"
    UNAUTHENTICATED = "unauthenticated"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    CONTENT_TOO_SHORT = "content_too_short"
    NOT_CONFIGURED = "not_configured"
    EMPTY_RESULT = "empty_result"
    UNKNOWN = "unknown"


FALLBACK_MESSAGES: dict[SummaryErrorKind, str] = {
    SummaryErrorKind.RATE_LIMITED: "Summary temporarily unavailable due to rate limiting.",
    SummaryErrorKind.UNAUTHENTICATED: (
        "Summary temporarily unavailable due to authentication error."
    ),
    SummaryErrorKind.UPSTREAM_UNAVAILABLE: "Summary temporarily unavailable.",
    SummaryErrorKind.CONTENT_TOO_SHORT: "Summary not available for this URL.",
    SummaryErrorKind.NOT_CONFIGURED: "Summary service not configured.",
    SummaryErrorKind.EMPTY_RESULT: "Unable to generate summary.",
    SummaryErrorKind.UNKNOWN: "Summary temporarily unavailable.",
}


class SummaryError(Exception):
    """Raised inside the pipeline at the point where a stage fails."""

    def __init__(self, kind: SummaryErrorKind, detail: str = "") -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


def fallback_message(kind: SummaryErrorKind) -> str:
    """User-facing sentence stored in place of a summary."""
    return FALLBACK_MESSAGES[kind]


def is_fallback_summary(summary: str | None) -> bool:
    """True when a stored summary is missing or is one of the fallback sentences."""
    if not summary:
        return True
    return summary.strip() in FALLBACK_MESSAGES.values()


_IMAGE_PATTERN = re.compile(r'!\[([^\]]*)\]\([^)]*\)')
_LINK_PATTERN = re.compile(r'\[([^\]]*)\]\([^)]*\)')
_BOLD_PATTERN = re.compile(r'(\*\*|__)(.+?)\1')
_ITALIC_PATTERN = re.compile(r'(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])')
_HEADING_PATTERN = re.compile(r'^[ \t]*#{1,6}[ \t]+', re.MULTILINE)
_BLANK_LINES_PATTERN = re.compile(r'\n[ \t]*(?:\n[ \t]*)+')


def clean_reader_content(raw: str) -> str:
    """
    Turn reader-service output into plain prose.

    Pure function with no I/O:
    - drops the metadata header up to and including CONTENT_MARKER, when present
    - removes images and converts markdown links to their anchor text
    - strips bold/italic markers and heading hashes
    - collapses runs of blank lines into a single blank line
    """
    text = raw
    marker_at = text.find(CONTENT_MARKER)
    if marker_at != -1:
        text = text[marker_at + len(CONTENT_MARKER):]

    text = _IMAGE_PATTERN.sub('', text)
    text = _LINK_PATTERN.sub(r'\1', text)
    text = _BOLD_PATTERN.sub(r'\2', text)
    text = _ITALIC_PATTERN.sub(r'\1', text)
    text = _HEADING_PATTERN.sub('', text)
    text = _BLANK_LINES_PATTERN.sub('\n\n', text)
    return text.strip()


def truncate_content(text: str, max_length: int = MAX_CONTENT_LENGTH) -> str:
    """Cap content at max_length characters, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[:max_length].rstrip() + TRUNCATION_SUFFIX


def _reader_status_error(status_code: int) -> SummaryError:
    if status_code == 429:
        return SummaryError(SummaryErrorKind.RATE_LIMITED, "reader returned 429")
    if status_code == 401:
        return SummaryError(SummaryErrorKind.UNAUTHENTICATED, "reader returned 401")
    if status_code >= 500:
        return SummaryError(
            SummaryErrorKind.UPSTREAM_UNAVAILABLE, f"reader returned {status_code}",
        )
    return SummaryError(SummaryErrorKind.UNKNOWN, f"reader returned {status_code}")


def _llm_error_kind(error: groq.APIError) -> SummaryErrorKind:
    if isinstance(error, groq.RateLimitError):
        return SummaryErrorKind.RATE_LIMITED
    if isinstance(error, groq.AuthenticationError | groq.PermissionDeniedError):
        return SummaryErrorKind.UNAUTHENTICATED
    if isinstance(error, groq.InternalServerError):
        return SummaryErrorKind.UPSTREAM_UNAVAILABLE
    return SummaryErrorKind.UNKNOWN


class SummaryPipeline:
    """
    Produce a short summary for a URL, degrading to a fallback sentence.

    One instance is built per process (in the application lifespan) so the
    quota limiter and the language-model client are shared across requests.
    """

    def __init__(
        self,
        settings: Settings,
        rate_limiter: QuotaLimiter,
        llm_client: AsyncGroq | None = None,
    ) -> None:
        self._settings = settings
        self._rate_limiter = rate_limiter
        self._llm_client = llm_client

    async def summarize(self, url: str) -> str:
        """Return a 1-2 sentence summary of `url`, or a fallback sentence. Never raises."""
        try:
            return await self._run(url)
        except SummaryError as e:
            logger.warning(
                "summary_unavailable",
                extra={"url": url, "kind": e.kind.value, "detail": e.detail},
            )
            return fallback_message(e.kind)
        except Exception:
            logger.exception("Unexpected error generating summary for %s", url)
            return fallback_message(SummaryErrorKind.UNKNOWN)

    async def _run(self, url: str) -> str:
        quota = await self._rate_limiter.acquire()
        if not quota.allowed:
            raise SummaryError(
                SummaryErrorKind.RATE_LIMITED, f"local quota, retry after {quota.retry_after}s",
            )

        raw = await self.fetch_readable_content(url)
        content = clean_reader_content(raw)
        if len(content) < MIN_CONTENT_LENGTH:
            raise SummaryError(
                SummaryErrorKind.CONTENT_TOO_SHORT, f"{len(content)} characters after cleanup",
            )

        summary = await self.complete(truncate_content(content))
        summary = (summary or '').strip()
        if len(summary) < MIN_SUMMARY_LENGTH:
            raise SummaryError(SummaryErrorKind.EMPTY_RESULT, f"model returned {len(summary)} characters")
        return summary

    async def fetch_readable_content(self, url: str) -> str:
        """Ask the reader service for the page's readable text."""
        headers = {'Accept': 'text/plain', 'User-Agent': READER_USER_AGENT}
        if self._settings.jina_api_key:
            headers['Authorization'] = f'Bearer {self._settings.jina_api_key}'
        else:
            logger.debug("JINA_API_KEY not configured, using the unauthenticated reader endpoint")

        reader_url = f"{self._settings.reader_base_url.rstrip('/')}/{url}"
        try:
            async with httpx.AsyncClient(timeout=READER_TIMEOUT, headers=headers) as client:
                response = await client.get(reader_url)
        except httpx.TimeoutException as e:
            raise SummaryError(SummaryErrorKind.UNKNOWN, "reader request timed out") from e
        except httpx.HTTPError as e:
            raise SummaryError(SummaryErrorKind.UNKNOWN, f"reader request failed: {e}") from e

        if not response.is_success:
            raise _reader_status_error(response.status_code)
        return response.text

    def _get_llm_client(self) -> AsyncGroq:
        if self._llm_client is None:
            self._llm_client = AsyncGroq(
                api_key=self._settings.groq_api_key,
                max_retries=0,
                timeout=LLM_TIMEOUT,
            )
        return self._llm_client

    async def complete(self, content: str) -> str | None:
        """Condense content with one chat completion."""
        if not self._settings.groq_api_key:
            raise SummaryError(SummaryErrorKind.NOT_CONFIGURED, "GROQ_API_KEY is not set")

        try:
            completion = await self._get_llm_client().chat.completions.create(
                model=self._settings.groq_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": content},
                ],
                temperature=TEMPERATURE,
                max_tokens=MAX_SUMMARY_TOKENS,
            )
        except groq.APIError as e:
            raise SummaryError(_llm_error_kind(e), f"language model error: {e}") from e

        if not completion.choices:
            return None
        return completion.choices[0].message.content

    async def aclose(self) -> None:
        """Release the language-model client's connection pool."""
        if self._llm_client is not None:
            await self._llm_client.close()
            self._llm_client = None
