"""Input validation helpers."""

from __future__ import annotations

from typing import Optional


def require_non_empty(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("Value must not be empty")
    return value.strip()


def require_unit_interval(value: float, *, name: str = "value") -> float:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")
    return value


def require_positive(value: int, *, name: str = "value") -> int:
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    return value


def optional_header(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
