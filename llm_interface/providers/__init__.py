from llm_interface.providers.base import HTTPProvider, LLMProvider, shape_response
from llm_interface.providers.gemini import Gemini
from llm_interface.providers.llamacpp import LlamaCPP
from llm_interface.providers.mock_provider import MockProvider
from llm_interface.providers.openai_provider import OpenAIProvider
from llm_interface.providers.writer import Writer

__all__ = [
    "LLMProvider",
    "HTTPProvider",
    "Gemini",
    "LlamaCPP",
    "MockProvider",
    "OpenAIProvider",
    "Writer",
    "shape_response",
]
