"""OpenRouter vision client."""

import base64
from typing import Any, Dict, Optional

import httpx

from sugarop.core.config import LLMSettings
from sugarop.core.exceptions import APIClientError, ConfigurationError
from sugarop.core.llm_client import BaseLLMClient
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)


def image_to_data_url(content: bytes, mime_type: str) -> str:
    """Inline an image as a base64 ``data:`` URL."""
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class OpenRouterVisionClient:
    """Sends one text instruction plus one inline image to an OpenRouter model.

    The model is chosen per call, so a single client serves the whole
    fallback chain.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: int = 30,
        max_retries: int = 1,
        temperature: float = 0.1,
        max_tokens: int = 1024,
        site_url: str = "http://localhost:3000",
        app_title: str = "Sugarcane Dashboard",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize OpenRouter vision client.

        Args:
            api_key: OpenRouter API key; an empty key leaves the client unconfigured
            base_url: Chat completions endpoint
            timeout: Request timeout in seconds
            max_retries: Attempts per model call
            temperature: Sampling temperature
            max_tokens: Completion token limit
            site_url: Sent as HTTP-Referer for OpenRouter attribution
            app_title: Sent as X-Title for OpenRouter attribution
            http_client: Optional pre-built httpx client
        """
        self.api_key = (api_key or "").strip()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = BaseLLMClient(
            api_key=self.api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            default_headers={"HTTP-Referer": site_url, "X-Title": app_title},
            http_client=http_client,
        )

        if self.is_configured:
            LOGGER.info("Initialized OpenRouter vision client", extra={"base_url": base_url})
        else:
            LOGGER.warning("OPENROUTER_API_KEY missing. OCR features will be disabled.")

    @classmethod
    def from_settings(cls, llm: LLMSettings) -> "OpenRouterVisionClient":
        return cls(
            api_key=llm.openrouter_api_key,
            base_url=llm.openrouter_api_url,
            timeout=llm.timeout,
            max_retries=llm.max_retries,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
            site_url=llm.site_url,
            app_title=llm.app_title,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        await self.client.aclose()

    def build_payload(self, model: str, prompt: str, image: bytes, mime_type: str) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_to_data_url(image, mime_type)}},
                    ],
                }
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    async def generate_content(self, model: str, prompt: str, image: bytes, mime_type: str) -> str:
        """Run one vision completion.

        Returns:
            The text content of the first choice, or "" when the model returned none

        Raises:
            ConfigurationError: If no API key is configured
            APIClientError: If the request fails or the response is malformed
        """
        if not self.is_configured:
            raise ConfigurationError("AI client not configured (missing OPENROUTER_API_KEY)")

        response = await self.client.call_api(payload=self.build_payload(model, prompt, image, mime_type))

        choices = response.get("choices") if isinstance(response, dict) else None
        if not choices:
            error = response.get("error") if isinstance(response, dict) else None
            if error:
                message = error.get("message", error) if isinstance(error, dict) else error
                raise APIClientError(f"OpenRouter error: {message}")
            LOGGER.error(f"Unexpected OpenRouter response format: {response}")
            raise APIClientError("Invalid response format from OpenRouter")

        content = (choices[0] or {}).get("message", {}).get("content")
        if isinstance(content, list):
            # Some providers return content parts instead of a plain string
            content = "".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            )
        if not content:
            LOGGER.warning(f"Empty response from OpenRouter model {model}")
            return ""
        return content
