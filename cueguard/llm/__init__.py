"""cueguard LLM integration module.

Provides a thin async wrapper around the Anthropic API and the prompt
templates used for classification and bot replies.
"""

from cueguard.llm.client import LLMClient, LLMResponse

__all__ = [
    "LLMClient",
    "LLMResponse",
]
