"""
Runner Module
=============

Scheduling of the capture → admit → dispatch cycle.
"""

from framegate.runner.loop import DetectionListener, DetectionLoop


__all__ = [
    "DetectionListener",
    "DetectionLoop",
]
