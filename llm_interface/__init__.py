from llm_interface.cache import ResponseCache, get_response_cache, reset_response_cache
from llm_interface.config import ConfigStore, ProviderConfig, get_config_store, reset_config_store
from llm_interface.errors import (
    ConfigurationError,
    LLMInterfaceError,
    MessageFormatError,
    ProviderError,
)
from llm_interface.interface import (
    PROVIDERS,
    LLMInterface,
    get_interface,
    reset_interface,
    send_message,
    stream_message,
)
from llm_interface.models import (
    CanonicalRequest,
    Conversation,
    InterfaceOptions,
    Message,
    ResponseFormat,
    Role,
)
from llm_interface.providers import LLMProvider

__all__ = [
    "CanonicalRequest",
    "ConfigStore",
    "ConfigurationError",
    "Conversation",
    "InterfaceOptions",
    "LLMInterface",
    "LLMInterfaceError",
    "LLMProvider",
    "Message",
    "MessageFormatError",
    "PROVIDERS",
    "ProviderConfig",
    "ProviderError",
    "ResponseCache",
    "ResponseFormat",
    "Role",
    "get_config_store",
    "get_interface",
    "get_response_cache",
    "reset_config_store",
    "reset_interface",
    "reset_response_cache",
    "send_message",
    "stream_message",
]
