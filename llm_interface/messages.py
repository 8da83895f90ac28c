"""
Message normalization.

Turns whatever the caller handed us (a bare string, a Conversation, or a
plain mapping with a ``messages`` list) into a CanonicalRequest:

1. Wrap / validate the input into an ordered list of Message objects.
2. Apply the provider's MessagePolicy (strict providers reject
   system-first or non-alternating conversations).
3. Resolve the model: per-call model > option model > provider default,
   each looked up in the provider's alias table.
4. Merge caller sampling options over the provider defaults.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from llm_interface.errors import ConfigurationError, MessageFormatError
from llm_interface.models import (
    CanonicalRequest,
    Conversation,
    Message,
    ResponseFormat,
    Role,
)

DEFAULT_MAX_TOKENS = 150
DEFAULT_SAMPLING: dict[str, int | float] = {"temperature": 0.9}

GENERIC_SYSTEM_GREETING = "You are a helpful assistant."
PLACEHOLDER_USER_MESSAGE = "Hello!"

# Option keys that are not sampling knobs.
_RESERVED_OPTIONS = frozenset({"model", "max_tokens", "response_format", "stream"})

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass(frozen=True)
class MessagePolicy:
    """
    Provider-specific message-shape rules, applied in declaration order.

    force_alternation relabels by position parity only. A conversation that
    legitimately opens with assistant context gets its roles rewritten; this
    matches what strict providers have always received from us.
    """

    drop_generic_greeting: bool = False
    prepend_user_before_system: bool = False
    force_alternation: bool = False
    relabel_first_as_user: bool = False

    def apply(self, messages: Sequence[Message]) -> tuple[Message, ...]:
        result = list(messages)

        if (
            self.drop_generic_greeting
            and result
            and result[0].role is Role.SYSTEM
            and result[0].content == GENERIC_SYSTEM_GREETING
        ):
            result.pop(0)

        if self.prepend_user_before_system and result and result[0].role is Role.SYSTEM:
            result.insert(0, Message(role=Role.USER, content=PLACEHOLDER_USER_MESSAGE))

        if self.force_alternation:
            result = [
                msg.model_copy(update={"role": Role.USER if i % 2 == 0 else Role.ASSISTANT})
                for i, msg in enumerate(result)
            ]

        if self.relabel_first_as_user and result and result[0].role is not Role.USER:
            result[0] = result[0].model_copy(update={"role": Role.USER})

        return tuple(result)


PASSTHROUGH = MessagePolicy()
STRICT_ALTERNATION = MessagePolicy(
    drop_generic_greeting=True,
    prepend_user_before_system=True,
    force_alternation=True,
)
FIRST_TURN_USER = MessagePolicy(relabel_first_as_user=True)


def to_conversation(raw_message: Any) -> Conversation:
    """Wrap a bare string as a single user message; validate anything else."""
    if isinstance(raw_message, Conversation):
        return raw_message
    if isinstance(raw_message, str):
        return Conversation(messages=[Message(role=Role.USER, content=raw_message)])
    if isinstance(raw_message, Mapping):
        try:
            return Conversation.model_validate(dict(raw_message))
        except ValidationError as exc:
            raise MessageFormatError(f"Invalid message object: {exc}") from exc
    raise MessageFormatError(
        f"Message must be a string or a conversation, got {type(raw_message).__name__}"
    )


def resolve_model(
    per_call_model: str | None,
    option_model: str | None,
    default_model: str,
    aliases: Mapping[str, str],
) -> str:
    for candidate in (per_call_model, option_model):
        if candidate:
            return aliases.get(candidate, candidate)
    return aliases.get(default_model, default_model)


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def build_sampling(
    options: Mapping[str, Any], defaults: Mapping[str, int | float]
) -> dict[str, int | float]:
    """Caller values always win, including falsy ones such as temperature=0."""
    sampling = dict(defaults)
    for key, value in options.items():
        name = _snake_case(key)
        if name in _RESERVED_OPTIONS or value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        sampling[name] = value
    return sampling


def normalize(
    raw_message: Any,
    options: Mapping[str, Any] | None = None,
    *,
    default_model: str,
    model_aliases: Mapping[str, str] | None = None,
    policy: MessagePolicy = PASSTHROUGH,
    default_sampling: Mapping[str, int | float] | None = None,
    default_max_tokens: int = DEFAULT_MAX_TOKENS,
) -> CanonicalRequest:
    # camelCase keys (maxTokens, responseFormat) are read as snake_case
    options = {_snake_case(key): value for key, value in (options or {}).items()}
    conversation = to_conversation(raw_message)

    messages = policy.apply(conversation.messages)
    if not messages:
        raise MessageFormatError("Conversation has no messages to send")

    model = resolve_model(
        conversation.model,
        options.get("model"),
        default_model,
        model_aliases or {},
    )

    max_tokens = options.get("max_tokens")
    if max_tokens is None:
        max_tokens = default_max_tokens

    sampling = build_sampling(
        options,
        DEFAULT_SAMPLING if default_sampling is None else default_sampling,
    )

    try:
        return CanonicalRequest(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            response_format=ResponseFormat.coerce(options.get("response_format")),
            sampling=sampling,
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid request options: {exc}") from exc
