"""
LLM Factory - Centralized LLM instance creation

Single point of configuration for the planning assistant's language model.
The model is an opaque collaborator: the chat service hands it a message
list and reads back text.

Provider: Groq (https://console.groq.com)
Integration: langchain-groq
"""
import logging
from typing import Optional

from langchain_groq import ChatGroq

from app.core.config import settings

logger = logging.getLogger(__name__)


class LLMFactory:
    """Factory for Groq chat model instances."""

    @staticmethod
    def create_planning_llm(
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatGroq:
        """
        Create the planning assistant model.
        Falls back to default settings for any unspecified parameters.

        Args:
            model: Model name (defaults to LLM_DEFAULT_MODEL)
            temperature: Temperature setting (defaults to LLM_TEMPERATURE)
            max_tokens: Maximum tokens (defaults to LLM_MAX_TOKENS)

        Returns:
            ChatGroq: Configured LLM instance
        """
        model = model or settings.LLM_DEFAULT_MODEL
        logger.debug("Creating ChatGroq model %s", model)
        return ChatGroq(
            model=model,
            groq_api_key=settings.GROQ_API_KEY,
            temperature=temperature if temperature is not None else settings.LLM_TEMPERATURE,
            max_tokens=max_tokens or settings.LLM_MAX_TOKENS,
        )


def get_llm(
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> ChatGroq:
    """Get a planning assistant LLM instance."""
    return LLMFactory.create_planning_llm(model, temperature, max_tokens)
