"""
Purpose: Thin client wrapper around the OpenRouter chat completions endpoint
(OpenAI-compatible, so the openai SDK does the transport). One place for
auth, base URL, timeouts and response normalization.

No retries: a failed send surfaces as an error message and the user resends.

Testing: Mock the AsyncOpenAI client; assert content extraction, the
"No response received." fallback and error mapping.
"""

from __future__ import annotations
from typing import Optional

from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI

from ..errors import CompletionError
from ..models import NO_RESPONSE_TEXT


class OpenRouterCompletionClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        if not self.api_key and client is None:
            raise RuntimeError("Missing OPENROUTER_API_KEY")
        self.client = client or AsyncOpenAI(
            api_key=self.api_key, base_url=base_url, timeout=timeout, max_retries=0
        )

    async def complete(self, model: str, messages: list[dict[str, str]]) -> str:
        try:
            cc = await self.client.chat.completions.create(
                model=model, messages=messages
            )
        except APIStatusError as e:
            raise CompletionError(
                f"{e.status_code} {e.message}", status_code=e.status_code
            ) from e
        except APIConnectionError as e:
            raise CompletionError(f"Network error: {e}") from e
        except APIError as e:
            raise CompletionError(str(e)) from e

        choices = getattr(cc, "choices", None) or []
        if not choices:
            return NO_RESPONSE_TEXT
        message = getattr(choices[0], "message", None)
        text = getattr(message, "content", None) if message else None
        return text or NO_RESPONSE_TEXT
