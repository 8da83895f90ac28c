"""
Error taxonomy for the LLM interface layer.

- ProviderError:       transport failure, non-2xx response or provider-side
                       exception. Retryable until the attempt budget is spent.
- ConfigurationError:  unknown provider, missing credential, invalid option.
                       Raised immediately, never retried.
- MessageFormatError:  the caller's message cannot be normalized.
                       Raised immediately, never retried.

Malformed JSON in a json_object response is NOT an error: it degrades to a
None result (see providers.base.shape_response).
"""

from __future__ import annotations

from typing import Any


class LLMInterfaceError(Exception):
    """Base class for every error raised by this package."""


class ProviderError(LLMInterfaceError):
    """A single provider invocation failed."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        response_data: Any = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.response_data = response_data

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "provider": self.provider,
            "status_code": self.status_code,
            "response_data": self.response_data,
        }


class ConfigurationError(LLMInterfaceError, ValueError):
    """Unknown provider, missing credential or invalid call option."""


class MessageFormatError(LLMInterfaceError, ValueError):
    """The message could not be turned into a canonical request."""


TERMINAL_ERRORS: tuple[type[Exception], ...] = (ConfigurationError, MessageFormatError)
