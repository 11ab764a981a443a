"""
OpenRouter section generation service.

Generates one report section per request through the OpenRouter chat
completions API. The model is asked for a JSON object with an
``htmlContent`` display payload and a ``pdfData`` structured payload;
responses that don't follow that shape degrade to display-only content.

Features:
- Rate limiting with a token bucket
- In-call retry of rate-limited (429) requests using tenacity
- Status code mapping onto the ServiceError classes
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from sectionforge.config.environment import get_api_key
from sectionforge.config.models import ServiceConfig
from sectionforge.models.sections import SectionDefinition
from sectionforge.service.base import (
    AuthenticationError,
    ContentGenerationService,
    GenerationResult,
    PermanentServiceError,
    RateLimitError,
    ResponseParseError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)


OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_CHAT_ENDPOINT = "/chat/completions"

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*")

SECTION_PROMPT = """You are a business consultant. Generate content for a report section in STRICT JSON format.

SECTION: {title}
DOCUMENT: {document_name}
DESCRIPTION: {description}
{requester_block}
CRITICAL: You MUST respond with ONLY a valid JSON object. No other text before or after.

The JSON must have this EXACT structure:
{{
  "htmlContent": "<div class='section'>HTML content with CSS styling for web display</div>",
  "pdfData": {{
    "title": "Section Title",
    "keyMetrics": [
      {{"label": "ROI Improvement", "value": "25%", "description": "Expected return on investment"}}
    ],
    "mainPoints": [
      "Key business insight with specific details"
    ],
    "implementationSteps": [
      {{"step": 1, "title": "Initial Assessment", "description": "Conduct comprehensive evaluation", "timeline": "2-3 weeks"}}
    ],
    "risks": [
      {{"risk": "Implementation delays", "impact": "Medium", "mitigation": "Establish clear timelines"}}
    ],
    "recommendations": [
      "Implement automated quality control systems"
    ]
  }}
}}

REQUIREMENTS:
- htmlContent: Complete HTML with embedded CSS for web display
- pdfData: Clean structured data with specific metrics, steps, and recommendations
- All fields must contain realistic business content
- No placeholder text or generic examples
- Focus on {document_name} specifics

RESPOND WITH ONLY THE JSON OBJECT - NO MARKDOWN, NO EXPLANATIONS, NO OTHER TEXT."""


def build_section_prompt(section: SectionDefinition, context: dict[str, Any]) -> str:
    """Render the generation prompt for a section.

    Args:
        section: Section to generate
        context: Run context; ``document_name`` names the document and
            an optional ``requester`` mapping adds requester details

    Returns:
        Prompt text
    """
    requester = context.get("requester") or {}
    requester_block = ""
    if requester:
        lines = [f"- {key}: {value}" for key, value in requester.items() if value]
        if lines:
            requester_block = "\nPREPARED FOR:\n" + "\n".join(lines) + "\n"

    return SECTION_PROMPT.format(
        title=section.title,
        document_name=context.get("document_name", "Business Automation Report"),
        description=section.description or section.title,
        requester_block=requester_block,
    )


def parse_section_payload(text: str) -> GenerationResult:
    """Parse a model response into display and structured payloads.

    Markdown fences are stripped and the outermost ``{...}`` is decoded.
    A decoded object needs both ``htmlContent`` and ``pdfData``;
    anything else falls back to display-only mode with the raw text.

    Args:
        text: Raw response text

    Returns:
        GenerationResult

    Raises:
        ResponseParseError: If the text is blank
    """
    raw = (text or "").strip()
    if not raw:
        raise ResponseParseError("Empty response from generation service")

    cleaned = _FENCE_PATTERN.sub("", raw) if "```" in raw else raw
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(f"Structured payload not parseable, using display-only content: {e}")
        return GenerationResult(display_payload=raw)

    if not isinstance(parsed, dict):
        logger.warning("Structured payload is not an object, using display-only content")
        return GenerationResult(display_payload=raw)

    html_content = parsed.get("htmlContent")
    pdf_data = parsed.get("pdfData")
    if not html_content or not isinstance(html_content, str) or not isinstance(pdf_data, dict):
        logger.warning("Structured payload missing htmlContent or pdfData, using display-only content")
        return GenerationResult(display_payload=raw)

    return GenerationResult(display_payload=html_content, structured_data=pdf_data)


class RateLimiter:
    """Simple rate limiter using token bucket algorithm.

    Limits requests per minute to avoid API rate limits.
    """

    def __init__(self, requests_per_minute: int = 60) -> None:
        self._rpm = requests_per_minute
        self._tokens = float(requests_per_minute)
        self._last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until a request can be made."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_update
            self._tokens = min(self._rpm, self._tokens + elapsed * (self._rpm / 60.0))
            self._last_update = now

            if self._tokens < 1:
                wait_time = (1 - self._tokens) * (60.0 / self._rpm)
                await asyncio.sleep(wait_time)
                self._tokens = 0
                self._last_update = time.monotonic()
            else:
                self._tokens -= 1


class OpenRouterSectionService(ContentGenerationService):
    """Section generation over the OpenRouter chat completions API.

    Example:
        async with OpenRouterSectionService(model="anthropic/claude-sonnet-4") as service:
            result = await service.generate(section, {"document_name": "Finance"})
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = OPENROUTER_BASE_URL,
        model: str = "anthropic/claude-sonnet-4",
        max_tokens: int = 4000,
        temperature: float = 0.7,
        timeout: float = 120.0,
        rate_limit_retries: int = 3,
        requests_per_minute: int = 60,
        app_title: str = "SectionForge",
        http_referer: str | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            api_key: OpenRouter API key (defaults to OPENROUTER_API_KEY)
            base_url: Base URL for the OpenRouter API
            model: Model identifier
            max_tokens: Maximum tokens per section
            temperature: Sampling temperature
            timeout: Request timeout in seconds
            rate_limit_retries: Attempts for a rate-limited request
            requests_per_minute: Client-side rate limit
            app_title: X-Title header
            http_referer: Optional HTTP-Referer header
            retry_wait: tenacity wait strategy between 429 retries
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout
        self._rate_limit_retries = rate_limit_retries
        self._rate_limiter = RateLimiter(requests_per_minute)
        self._app_title = app_title
        self._http_referer = http_referer
        self._retry_wait = retry_wait or wait_exponential(multiplier=2, min=4, max=120)
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls,
        config: ServiceConfig,
        api_key: str | None = None,
    ) -> OpenRouterSectionService:
        """Build a service from the ``service`` configuration section."""
        return cls(
            api_key=api_key,
            base_url=config.base_url,
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            timeout=config.timeout_seconds,
            rate_limit_retries=config.rate_limit_retries,
            requests_per_minute=config.requests_per_minute,
            app_title=config.app_title,
        )

    @property
    def model(self) -> str:
        return self._model

    async def __aenter__(self) -> OpenRouterSectionService:
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._client is None:
            api_key = self._api_key or get_api_key()
            if not api_key:
                raise AuthenticationError(
                    "OpenRouter API key not found. Set OPENROUTER_API_KEY "
                    "environment variable or pass api_key to constructor.",
                    status_code=None,
                )

            headers = {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "X-Title": self._app_title,
            }
            if self._http_referer:
                headers["HTTP-Referer"] = self._http_referer

            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _build_request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }

    async def generate(
        self,
        section: SectionDefinition,
        context: dict[str, Any],
    ) -> GenerationResult:
        """Generate content for one section.

        Raises:
            AuthenticationError: If the API key is missing or rejected
            RateLimitError: If still rate limited after the in-call retries
            PermanentServiceError: For other 4xx responses
            TransientServiceError: For 5xx, timeouts and transport failures
            ResponseParseError: If the response has no usable content
        """
        client = await self._ensure_client()
        body = self._build_request_body(build_section_prompt(section, context))

        logger.info(f"Generating section {section.id} with {self._model}")
        start_time = time.monotonic()

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._rate_limit_retries),
            wait=self._retry_wait,
            retry=retry_if_exception_type(RateLimitError),
            reraise=True,
        ):
            with attempt:
                await self._rate_limiter.acquire()
                attempt_num = attempt.retry_state.attempt_number
                logger.debug(
                    f"API call for section {section.id} "
                    f"(attempt {attempt_num}/{self._rate_limit_retries})"
                )
                try:
                    response = await client.post(OPENROUTER_CHAT_ENDPOINT, json=body)
                except httpx.TimeoutException as e:
                    raise TransientServiceError(
                        f"Request timed out after {self._timeout}s", code="timeout"
                    ) from e
                except httpx.TransportError as e:
                    raise TransientServiceError(f"Transport error: {e}", code="transport") from e
                text = self._handle_response(response)

        latency_ms = int((time.monotonic() - start_time) * 1000)
        result = parse_section_payload(text)
        result.model = self._model
        logger.info(
            f"Section {section.id} generated ({len(result.display_payload)} chars, "
            f"{'display-only' if result.is_display_only else 'structured'}, {latency_ms}ms)"
        )
        return result

    def _handle_response(self, response: httpx.Response) -> str:
        """Map the HTTP response to message text or a ServiceError."""
        status = response.status_code

        if status in (401, 403):
            raise AuthenticationError(self._error_message(response), status_code=status)
        elif status == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(f"Rate limited! Retry-After: {retry_after or 'unknown'}s")
            raise RateLimitError(retry_after=retry_after)
        elif status >= 500:
            raise TransientServiceError(
                self._error_message(response), code="server_error", status_code=status
            )
        elif status >= 400:
            raise PermanentServiceError(
                self._error_message(response), code="client_error", status_code=status
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise ResponseParseError(f"Invalid JSON response: {e}") from e

        choices = data.get("choices") or []
        if not choices:
            raise ResponseParseError("No choices in response")

        return choices[0].get("message", {}).get("content") or ""

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            error = response.json().get("error", {})
        except (json.JSONDecodeError, AttributeError):
            return response.text or f"HTTP {response.status_code}"
        if isinstance(error, dict):
            return error.get("message") or response.text
        return str(error)
