from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from fastapi import Response


llm_requests = Counter(
    "llm_requests_total",
    "Total provider calls by outcome (success, error, cache_hit)",
    ["provider", "outcome"],
)

llm_retries = Counter(
    "llm_retries_total",
    "Retry attempts scheduled after a failed provider call",
    ["provider"],
)

llm_cache_lookups = Counter(
    "llm_cache_lookups_total",
    "Response cache lookups",
    ["provider", "result"],
)

llm_request_latency = Histogram(
    "llm_request_latency_seconds",
    "Wall-clock time of a provider call including retries",
    ["provider"],
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)


def metrics_response() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
