"""Core utilities shared across Key Gate."""

from key_gate.core.clock import Clock, from_epoch_ms, to_epoch_ms, utc_now


__all__ = [
    "Clock",
    "from_epoch_ms",
    "to_epoch_ms",
    "utc_now",
]
