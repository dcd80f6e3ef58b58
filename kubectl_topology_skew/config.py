"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass, field

from kubectl_topology_skew.errors import InvalidInputError
from kubectl_topology_skew.resources import ResourceKind
from kubectl_topology_skew.selector import Selector
from kubectl_topology_skew.topology import ZONE_LABEL

OUTPUT_FORMATS = ("text", "yaml", "json", "tree")
LOG_LEVELS = ("debug", "info", "warning", "error")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"TOPOLOGY_SKEW_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError:
        raise InvalidInputError(f"TOPOLOGY_SKEW_{key} must be an integer, got {raw!r}") from None
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def validate_output(value: str) -> str:
    if value.lower() not in OUTPUT_FORMATS:
        raise InvalidInputError(
            f"Invalid output format: {value}. Must be one of {', '.join(OUTPUT_FORMATS)}"
        )
    return value.lower()


def validate_log_level(value: str) -> str:
    if value.lower() not in LOG_LEVELS:
        raise InvalidInputError(f"Invalid log level: {value}. Must be one of {LOG_LEVELS}")
    return value.lower()


@dataclass(frozen=True)
class Settings:
    topology_key: str = ZONE_LABEL
    output: str = "text"
    request_timeout: int = 30
    max_workers: int = 4
    log_level: str = "warning"


def load_settings() -> Settings:
    """Load defaults from TOPOLOGY_SKEW_* environment variables."""
    return Settings(
        topology_key=_env("TOPOLOGY_KEY", ZONE_LABEL) or ZONE_LABEL,
        output=validate_output(_env("OUTPUT", "text")),
        request_timeout=_env_int("REQUEST_TIMEOUT", 30, min_val=1, max_val=600),
        max_workers=_env_int("MAX_WORKERS", 4, min_val=1, max_val=16),
        log_level=validate_log_level(_env("LOG_LEVEL", "warning")),
    )


@dataclass(frozen=True)
class SkewOptions:
    """
    Everything the engine needs to know about one invocation.
    `namespace=None` means all namespaces.
    """

    mode: ResourceKind
    topology_key: str = ZONE_LABEL
    namespace: str | None = None
    selector: Selector = field(default_factory=Selector)
    name: str | None = None
    include_inactive: bool = False
    max_hops: int | None = None
