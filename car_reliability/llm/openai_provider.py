"""
OpenAI provider implementation.
"""
import logging
from typing import Dict, List, Optional

from openai import OpenAI, APIError

from car_reliability.core.config import (
    OPENAI_API_KEY,
    OPENAI_MODEL,
    OPENAI_TIMEOUT_SECONDS,
    OPENAI_MAX_RETRIES,
)
from car_reliability.llm.provider import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 2000


class OpenAIProvider(LLMProvider):
    """
    OpenAI provider using official OpenAI SDK.

    Requests carry a timeout; the SDK retries transient failures with
    exponential backoff and jitter up to ``max_retries`` times.
    """
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = OPENAI_TIMEOUT_SECONDS,
        max_retries: int = OPENAI_MAX_RETRIES,
    ):
        self.api_key = api_key or OPENAI_API_KEY
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not configured")
        self.client = OpenAI(api_key=self.api_key, timeout=timeout, max_retries=max_retries)
        logger.info("OpenAI provider initialized")
    
    def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = OPENAI_MODEL,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens or DEFAULT_MAX_TOKENS,
            )
        except APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise
        
        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            tokens_in=usage.prompt_tokens if usage else 0,
            tokens_out=usage.completion_tokens if usage else 0,
            model=model,
        )
