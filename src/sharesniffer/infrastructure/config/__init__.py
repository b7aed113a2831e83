from __future__ import annotations

from .load import load_config
from .schema import AppConfig, BatchConfig, CheckConfig, EnvOverrides

__all__ = ["AppConfig", "BatchConfig", "CheckConfig", "EnvOverrides", "load_config"]
