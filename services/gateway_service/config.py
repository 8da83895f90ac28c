from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class GatewayConfig:
    log_level: str
    default_provider: str
    cache_ttl_seconds: float | None
    retry_attempts: int
    retry_multiplier: float

    @classmethod
    def from_env(cls) -> GatewayConfig:
        ttl = os.environ.get("LLM_CACHE_TTL_SECONDS", "")
        return cls(
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            default_provider=os.environ.get("LLM_PROVIDER", "mock").lower(),
            cache_ttl_seconds=float(ttl) if ttl else None,
            retry_attempts=int(os.environ.get("LLM_RETRY_ATTEMPTS", "0") or 0),
            retry_multiplier=float(os.environ.get("LLM_RETRY_MULTIPLIER", "0.3") or 0.3),
        )

    def interface_defaults(self) -> dict[str, float | int | None]:
        return {
            "cache_timeout_seconds": self.cache_ttl_seconds,
            "retry_attempts": self.retry_attempts,
            "retry_multiplier": self.retry_multiplier,
        }
