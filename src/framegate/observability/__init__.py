"""
Observability Module
====================

Stats reporting for FrameGate.

This module provides:
    - build_stats_snapshot: Combines admission and dispatch counters

DESIGN RULES:
    - Does NOT influence admission or dispatch
    - Reads counters only through public getters
"""

from framegate.observability.stats import build_stats_snapshot


__all__ = [
    "build_stats_snapshot",
]
