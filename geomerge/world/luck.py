"""Deterministic [0, 1) draws keyed by strings.

A luck function must be stateless: the same key always yields the same draw.
"""

from __future__ import annotations

from typing import Callable

LuckFn = Callable[[str], float]

_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619
_U32 = 0xFFFFFFFF


def fnv1a_32(s: str) -> int:
    h = _FNV_OFFSET
    for ch in s:
        h ^= ord(ch)
        h = (h * _FNV_PRIME) & _U32
    return h


def hash01(s: str) -> float:
    """FNV-1a hash of `s` mapped to [0, 1)."""

    h = fnv1a_32(s)
    # Only h == 0xFFFFFFFF reaches 1.0; keep the range half-open.
    return min(h / _U32, 0.9999999999999999)


def seeded_luck(seed: str) -> LuckFn:
    """Luck source parameterised by a seed; different seeds give different worlds."""

    prefix = f"{seed}|"

    def _luck(key: str) -> float:
        return hash01(prefix + key)

    return _luck


def luck_for_seed(seed: str | None) -> LuckFn:
    return hash01 if seed is None else seeded_luck(seed)
