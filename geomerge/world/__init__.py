"""World-state model: deterministic generation plus the player's overlay."""

from __future__ import annotations
