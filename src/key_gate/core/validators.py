"""Parsing helpers for list-valued settings."""

from collections.abc import Iterable


def parse_comma_separated(value: str | Iterable[str]) -> list[str]:
    """Turn ``"a, b,,c"`` (or an already split list) into ``["a", "b", "c"]``."""
    items = value.split(",") if isinstance(value, str) else value
    return [item.strip() for item in items if item and item.strip()]
