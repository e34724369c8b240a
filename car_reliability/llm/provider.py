"""
Language model provider interface used by report generation.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class LLMResponse:
    """Completion text plus token usage."""
    content: str
    tokens_in: int = 0
    tokens_out: int = 0
    model: str = ""


class LLMProvider(ABC):
    """Chat completion backend."""

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Generate a chat completion.

        Raises:
            openai.APIError: provider failure after the client's retries
        """
