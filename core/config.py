# core/config.py
# Session configuration: fixed for the lifetime of a session, supplied once at start.
from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Mapping

from core.errors import InvalidConfigError

_LOG = logging.getLogger(__name__)

# Nested config file keys (audio.*, leds.*, beat.*) -> field names
_NESTED_KEYS = {
    ("audio", "sample-rate"): "sample_rate",
    ("audio", "buffer-size"): "buffer_size",
    ("audio", "fft-size"): "fft_size",
    ("leds", "count"): "light_count",
    ("leds", "update-rate-ms"): "update_interval_ms",
    ("leds", "query-timeout-ms"): "query_timeout_ms",
    ("beat", "history-size"): "beat_history_size",
}


@dataclass(frozen=True)
class SessionConfig:
    sample_rate: int = 44100
    buffer_size: int = 2048
    fft_size: int = 2048
    light_count: int = 10
    update_interval_ms: int = 50
    beat_history_size: int = 43      # ~1 s of frames at typical update rates
    query_timeout_ms: int = 100

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfigError(f"{f.name} must be an integer, got {value!r}")
        for name in ("sample_rate", "buffer_size", "fft_size", "light_count", "beat_history_size"):
            if getattr(self, name) <= 0:
                raise InvalidConfigError(f"{name} must be > 0, got {getattr(self, name)}")
        if self.update_interval_ms < 0 or self.query_timeout_ms < 0:
            raise InvalidConfigError("update_interval_ms and query_timeout_ms must be >= 0")
        if self.fft_size < self.buffer_size:
            raise InvalidConfigError(
                f"fft_size ({self.fft_size}) must be >= buffer_size ({self.buffer_size})"
            )
        if self.fft_size & (self.fft_size - 1):
            _LOG.warning("fft_size %d is not a power of two; FFT will be slower", self.fft_size)

    @property
    def update_interval(self) -> float:
        """Update interval in seconds."""
        return self.update_interval_ms / 1000.0

    @property
    def query_timeout(self) -> float:
        return self.query_timeout_ms / 1000.0

    @property
    def bin_width(self) -> float:
        return self.sample_rate / self.fft_size

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SessionConfig":
        """
        Build a config from a plain mapping.

        Accepts flat snake_case keys (``{"sample_rate": 48000}``) and the nested
        layout ``{"audio": {"sample-rate": ...}, "leds": {"count": ...}}``.
        Unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in mapping.items():
            if isinstance(value, Mapping):
                for sub_key, sub_value in value.items():
                    name = _NESTED_KEYS.get((key, sub_key))
                    if name is None:
                        raise InvalidConfigError(f"Unknown config key: {key}.{sub_key}")
                    kwargs[name] = sub_value
            elif key in known:
                kwargs[key] = value
            else:
                raise InvalidConfigError(f"Unknown config key: {key}")
        return cls(**kwargs)
