import asyncio
from typing import Any, Dict, Optional

import httpx
from google import genai
from google.genai import types
from httpx import HTTPStatusError, TimeoutException

from app.core.config import LLMSettings
from app.core.exceptions import APIClientError, APITimeoutError, ConfigurationError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseLLMClient:
    """HTTP transport for chat-completion providers.

    Handles retries with exponential backoff, timeouts and error logging.
    Client errors (4xx) are not retried, except for rate limiting (429).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: int = 2,
    ):
        """Initialize the transport.

        Args:
            api_key: API key for authentication
            base_url: Full endpoint URL
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts
            retry_delay: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def call_api(
        self,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the parsed JSON response.

        Raises:
            APIClientError: If the call fails after retries
            APITimeoutError: If the call times out after retries
        """
        request_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if headers:
            request_headers.update(headers)

        LOGGER.debug(
            f"Calling completion API: {self.base_url}",
            extra={"timeout": self.timeout},
        )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(
                        self.base_url, headers=request_headers, json=payload
                    )
                    response.raise_for_status()
                    return response.json()
                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt)
                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt)
                except httpx.HTTPError as e:
                    await self._handle_transport_error(e, attempt)

        raise APIClientError(
            f"Failed to call API {self.base_url} after {self.max_retries} attempts"
        )

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int):
        status_code = error.response.status_code
        error_body = error.response.text

        LOGGER.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={
                "url": self.base_url,
                "status_code": status_code,
                "error_body": error_body[:500],
            },
        )

        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"API Client Error {status_code}: {error_body}", error) from error

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API HTTP Error {status_code} after retries", error) from error

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int):
        LOGGER.warning(
            f"API Timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": self.base_url},
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(
                f"API Timeout after {self.max_retries} attempts", error
            ) from error

    async def _handle_transport_error(self, error: httpx.HTTPError, attempt: int):
        LOGGER.warning(
            f"API transport error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": self.base_url, "error": str(error)},
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API Error: {error}", error) from error

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        await asyncio.sleep(self.retry_delay * (2**attempt))


class OpenRouterClient:
    """Chat-completion client for OpenRouter (OpenAI-compatible API)."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 3,
    ):
        self.model = model
        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        LOGGER.info(f"Initialized OpenRouter client with model {self.model}")

    async def generate_content(
        self,
        contents: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate a completion for a single user prompt.

        Args:
            contents: User prompt
            system_instruction: Optional system message
            generation_config: temperature, max_output_tokens, response_mime_type

        Returns:
            Raw text of the first choice ("" when the provider returns nothing)
        """
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": contents})

        config = generation_config or {}
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": config.get("temperature", 0.0),
        }
        if "max_output_tokens" in config:
            payload["max_tokens"] = config["max_output_tokens"]
        if config.get("response_mime_type") == "application/json":
            payload["response_format"] = {"type": "json_object"}

        response = await self.client.call_api(payload=payload)

        choices = response.get("choices") or []
        if not choices:
            LOGGER.error(
                "Unexpected OpenRouter response format",
                extra={"response_keys": list(response.keys())},
            )
            raise APIClientError("Invalid response format from OpenRouter")

        content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            LOGGER.warning("Empty response from OpenRouter")
        return content


class GeminiClient:
    """Wrapper for the Google Gemini async API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: int = 60,
        max_retries: int = 3,
    ):
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.client = genai.Client(api_key=api_key)
        LOGGER.info(f"Initialized Gemini client with model {self.model}")

    async def generate_content(
        self,
        contents: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using the Gemini model.

        Raises:
            APIClientError: If generation fails after retries
        """
        config = types.GenerateContentConfig(temperature=0.0)
        if generation_config:
            if "temperature" in generation_config:
                config.temperature = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                config.max_output_tokens = generation_config["max_output_tokens"]
            if "response_mime_type" in generation_config:
                config.response_mime_type = generation_config["response_mime_type"]
            if "response_schema" in generation_config:
                config.response_schema = generation_config["response_schema"]
        if system_instruction:
            config.system_instruction = system_instruction

        for attempt in range(self.max_retries):
            try:
                response = await asyncio.wait_for(
                    self.client.aio.models.generate_content(
                        model=self.model, contents=contents, config=config
                    ),
                    timeout=self.timeout,
                )
                if not response.text:
                    LOGGER.warning("Empty response from Gemini")
                    return ""
                return response.text
            except Exception as e:
                LOGGER.warning(
                    f"Gemini API error (Attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2**attempt)
                    continue
                LOGGER.error(f"Gemini generation failed after retries: {e}", exc_info=True)
                if isinstance(e, asyncio.TimeoutError):
                    raise APITimeoutError(f"Gemini generation timed out: {e}", e) from e
                raise APIClientError(f"Gemini generation failed: {e}", e) from e

        raise APIClientError("Gemini generation failed")


def create_llm_client(llm_settings: LLMSettings):
    """Create the provider client selected by configuration.

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing
    """
    provider = llm_settings.provider.lower()

    if provider == "openrouter":
        if not llm_settings.openrouter_api_key:
            raise ConfigurationError("OPENROUTER_API_KEY is required for the openrouter provider")
        return OpenRouterClient(
            api_key=llm_settings.openrouter_api_key,
            model=llm_settings.openrouter_model,
            base_url=llm_settings.openrouter_api_url,
            timeout=llm_settings.timeout,
            max_retries=llm_settings.max_retries,
        )

    if provider == "gemini":
        if not llm_settings.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is required for the gemini provider")
        return GeminiClient(
            api_key=llm_settings.gemini_api_key,
            model=llm_settings.gemini_model,
            timeout=llm_settings.timeout,
            max_retries=llm_settings.max_retries,
        )

    raise ConfigurationError(f"Unsupported LLM provider: {llm_settings.provider}")
