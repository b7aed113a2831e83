from .client import (
    DEFAULT_HEADERS,
    RetryingHttpClient,
    build_http_clients,
    merge_default_headers,
    read_json,
)

__all__ = [
    "DEFAULT_HEADERS",
    "RetryingHttpClient",
    "build_http_clients",
    "merge_default_headers",
    "read_json",
]
