"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

APP_VERSION = "0.1.0"

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "sharesniffer",
    "environment": "dev",
    "http": {
        "timeout_seconds": 5.0,
        "max_connections": 100,
        "max_keepalive_connections": 20,
        "keepalive_expiry_seconds": 90.0,
        "retry_count": 1,
        "backoff_seconds": 1.0,
    },
    "playwright": {
        "enabled": True,
        "headless": True,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "api": {
        "host": "0.0.0.0",
        "port": 60204,
        "max_batch_urls": 10_000,
    },
    "check": {
        "workers": 8,
        "queue_size": 10_000,
        "result_queue_size": 100,
        "default_timeout_seconds": 15.0,
        "heavy_timeout_seconds": 30.0,
        "long_timeout_seconds": 10.0,
        "name_timeout_seconds": 3.0,
        "heavy_max_concurrent": 2,
    },
    "batch": {
        "chunk_size": 500,
        "chunk_pause_seconds": 0.5,
        "submit_attempts": 5,
        "submit_backoff_seconds": 0.3,
        "drain_timeout_seconds": None,
    },
}
