"""Scoring rules for tennis: counters and set/match policies."""

from . import policies, tennis

__all__ = [
    "policies",
    "tennis",
]
