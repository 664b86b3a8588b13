"""Completion service contract and its LLM-backed implementation."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from app.core.config import LLMSettings, settings
from app.core.exceptions import APIClientError, ConfigurationError, UpstreamServiceError
from app.core.llm_client import create_llm_client
from app.utils.json_parser import parse_json_safely
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class CompletionService(ABC):
    """Structured-output completion capability.

    Tests inject deterministic fakes; production code depends only on this
    contract.
    """

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        system_instruction: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return the completion parsed as a JSON object.

        Raises:
            UpstreamServiceError: If the call fails or the content is not a JSON object
        """


class LLMCompletionService(CompletionService):
    """CompletionService backed by the configured LLM provider client."""

    def __init__(self, client=None, llm_settings: Optional[LLMSettings] = None):
        self.llm_settings = llm_settings or settings.llm
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = create_llm_client(self.llm_settings)
        return self._client

    async def complete(
        self,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        system_instruction: Optional[str] = None,
    ) -> Dict[str, Any]:
        generation_config = {
            "temperature": self.llm_settings.temperature,
            "max_output_tokens": self.llm_settings.max_output_tokens,
            "response_mime_type": "application/json",
        }
        # Only Gemini enforces a response schema; OpenRouter uses JSON object mode
        if schema is not None and self.llm_settings.provider.lower() == "gemini":
            generation_config["response_schema"] = schema

        try:
            client = self.client
        except ConfigurationError as e:
            LOGGER.error("Completion provider is not configured", extra={"error": e.message})
            raise UpstreamServiceError(f"Completion service unavailable: {e.message}", e) from e

        try:
            content = await client.generate_content(
                contents=prompt,
                system_instruction=system_instruction,
                generation_config=generation_config,
            )
        except APIClientError as e:
            LOGGER.error("Completion call failed", extra={"error": str(e)})
            raise UpstreamServiceError(f"Completion service failed: {e.message}", e) from e

        parsed = parse_json_safely(content)
        if not isinstance(parsed, dict):
            LOGGER.error(
                "Completion returned unparsable content",
                extra={"preview": (content or "")[:200]},
            )
            raise UpstreamServiceError("Completion service returned no JSON object")

        return parsed
