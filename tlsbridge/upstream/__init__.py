from .config import (
    ConfigError,
    MalformedUpstreamError,
    Scheme,
    SchemeNotAllowedError,
    UpstreamConfig,
    parse,
)

__all__ = [
    "ConfigError",
    "MalformedUpstreamError",
    "Scheme",
    "SchemeNotAllowedError",
    "UpstreamConfig",
    "parse",
]
